"""Contains UI methods for localcert operations."""
import logging

from cryptography import x509

from localcert import crypto_util
from localcert import errors
from localcert import interfaces
from localcert.display import util as display_util

logger = logging.getLogger(__name__)


def prompt_accept_terms(uri: str, agree_tos: bool = False) -> None:
    """Ask the operator to accept the authority's Terms of Service.

    Blocks until the operator answers.

    :param str uri: location of the Terms of Service document
    :param bool agree_tos: True if the terms were accepted ahead of
        time with ``--agree-tos``

    :raises errors.Error: if the operator declines the terms
    :raises errors.MissingCommandlineFlag: if no operator can be asked

    """
    if agree_tos:
        logger.info("Accepting Terms of Service at %s (--agree-tos)", uri)
        return
    msg = ("Please read the Terms of Service at:\n"
           f"{uri}\n"
           "You must agree in order to register with the ACME server. "
           "Do you agree?")
    if not display_util.yesno(msg, "Agree", "Cancel", cli_flag="--agree-tos",
                              force_interactive=True):
        raise errors.Error(
            "Registration cannot proceed without accepting Terms of Service.")


def report_new_domain(old_domain: str, new_domain: str) -> None:
    """Tell the operator the authority bound the account to another domain."""
    display_util.notify(
        "The localcert server has assigned you a new domain!\n\n"
        f"  Old domain: {old_domain!r}\n"
        f"  New domain: {new_domain!r}\n")


def report_certificate(config: interfaces.Config, cert: x509.Certificate) -> None:
    """Print the certificate summary shown at the end of every successful run.

    :param config: provides `certificate_file` and `key_file`
    :param cert: the current leaf certificate

    """
    expires = crypto_util.not_after(cert)
    display_util.notify(
        f"\nCertificate expires {expires}\n\n"
        f"Certificate (chain):  {config.certificate_file}\n"
        f"Certificate privkey:  {config.key_file}")
