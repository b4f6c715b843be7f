"""Certificate lifecycle: renew-or-skip, registration, domain lookup, issuance.

`provision` is the single entry point. Every stage either returns its
result or raises `.ProvisionError` labelled with the failing phase, so
a run stops at the first unrecoverable problem. The only recoverable
conditions are a missing certificate file (first provisioning) and a
single Terms of Service acceptance during registration.

"""
import contextlib
import datetime
import logging
from typing import Iterator
from typing import NamedTuple
from typing import Optional

from cryptography import x509

from localcert import crypto_util
from localcert import errors
from localcert import interfaces
from localcert import util
from localcert._internal import constants
from localcert.display import ops as display_ops
from localcert.display import util as display_util

logger = logging.getLogger(__name__)

SKIPPED = "skipped"
ISSUED = "issued"


class ProvisionResult(NamedTuple):
    """Outcome of a successful run.

    :ivar str outcome: `SKIPPED` if the existing certificate is still
        valid, `ISSUED` if a new certificate was written.
    :ivar certificate: the certificate stored once the run completes

    """
    outcome: str
    certificate: x509.Certificate


@contextlib.contextmanager
def _phase(label: str) -> Iterator[None]:
    """Turn any error raised in the block into a `.ProvisionError` for label."""
    try:
        yield
    except errors.ProvisionError:
        raise
    except Exception as error:  # pylint: disable=broad-except
        logger.debug("%s", label, exc_info=True)
        raise errors.ProvisionError(label, error) from error


def provision(config: interfaces.Config, client: interfaces.Client,
              force_renew: bool = False, agree_tos: bool = False) -> ProvisionResult:
    """Obtain or renew the certificate for the account's domain.

    :param config: on-disk state of the installation
    :param client: connection to the authority
    :param bool force_renew: renew even if the certificate is not close
        to expiring
    :param bool agree_tos: accept the Terms of Service without prompting

    :returns: what happened and the resulting certificate
    :rtype: ProvisionResult

    :raises .ProvisionError: if the run can't be completed

    """
    cert = read_existing_certificate(config)

    cert_domain = ""
    if cert is not None:
        cert_domain = crypto_util.get_common_name(cert)
        config.write_domain_file(cert_domain)
        display_util.notify(f"Found existing certificate for domain {cert_domain!r}")

    if not should_renew(cert, force_renew):
        assert cert is not None
        display_ops.report_certificate(config, cert)
        return ProvisionResult(SKIPPED, cert)

    ensure_registration(config, client, agree_tos)
    domain = resolve_domain(config, client, cert_domain)
    cert = issue_certificate(config, client, domain, force_renew)

    display_ops.report_certificate(config, cert)
    return ProvisionResult(ISSUED, cert)


def read_existing_certificate(config: interfaces.Config) -> Optional[x509.Certificate]:
    """Load the stored certificate, or None if there isn't one yet."""
    try:
        return config.read_certificate()
    except errors.CertificateNotFound:
        logger.debug("No existing certificate at %s", config.certificate_file)
        return None
    except Exception as error:  # pylint: disable=broad-except
        raise errors.ProvisionError(
            f"Error reading existing certificate {config.certificate_file!r}", error
        ) from error


def should_renew(cert: Optional[x509.Certificate], force_renew: bool,
                 now: Optional[datetime.datetime] = None) -> bool:
    """Decide whether a certificate must be (re)issued.

    Certificates expiring within `constants.RENEWAL_WINDOW` are renewed,
    as are expired ones. A missing certificate is always provisioned and
    `force_renew` overrides the expiration check.

    :param cert: existing certificate, if any
    :param bool force_renew: renew regardless of expiration
    :param now: current time, defaults to the system clock

    :rtype: bool

    """
    if cert is None or force_renew:
        return True

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    expires_in = crypto_util.not_after(cert) - now
    logger.debug("Existing certificate expires in %s", expires_in)

    if expires_in > constants.RENEWAL_WINDOW:
        display_util.notify(
            "Existing certificate expires in > 30 days and doesn't need to be renewed")
        return False
    if expires_in > datetime.timedelta(0):
        display_util.notify("Existing certificate expires in < 30 days and will be renewed")
    else:
        display_util.notify("Existing certificate has expired and will be renewed")
    return True


def ensure_registration(config: interfaces.Config, client: interfaces.Client,
                        agree_tos: bool = False) -> interfaces.Account:
    """Make sure the ACME account is registered and persist it.

    If the authority reports that its Terms of Service haven't been
    accepted, the operator is asked once to accept them and the
    registration is retried exactly one more time.

    :returns: the registered account
    :rtype: `.interfaces.Account`

    :raises .ProvisionError: if registration fails or the account file
        can't be written

    """
    terms_retry = False
    while True:
        try:
            account = client.ensure_registration(config.accepted_terms, config.key_id)
        except errors.TermsNotAcceptedError as error:
            if terms_retry:
                raise errors.ProvisionError("Registration error", error) from error
            logger.info("Terms of Service at %s need to be accepted", error.uri)
            with _phase("Registration error"):
                display_ops.prompt_accept_terms(error.uri, agree_tos)
            config.accepted_terms = error.uri
            terms_retry = True
            continue
        except Exception as error:  # pylint: disable=broad-except
            raise errors.ProvisionError("Registration error", error) from error
        break

    config.key_id = account.uri
    logger.debug("Registered account %s", account.uri)

    with _phase(f"Error writing acmeAccount file {config.acme_account_file!r}"):
        config.write_acme_account_file()
    return account


def resolve_domain(config: interfaces.Config, client: interfaces.Client,
                   cert_domain: str) -> str:
    """Ask the authority which domain the account is bound to.

    The domain hint file is rewritten with `cert_domain`, the domain of
    the certificate found at the start of the run, whatever the lookup
    returns.

    :param str cert_domain: domain of the existing certificate, or ""

    :returns: the domain to provision
    :rtype: str

    :raises .ProvisionError: if the domain can't be determined

    """
    with _phase("Error getting localcert domain name"):
        try:
            domain = client.get_domain()
        finally:
            config.write_domain_file(cert_domain)
        if not domain:
            raise errors.Error("the server did not assign a domain")

    if cert_domain and cert_domain != domain:
        logger.info("Domain changed from %s to %s", cert_domain, domain)
        display_ops.report_new_domain(cert_domain, domain)
    return domain


def issue_certificate(config: interfaces.Config, client: interfaces.Client,
                      domain: str, force_renew: bool = False) -> x509.Certificate:
    """Order, download and store a certificate for domain.

    The certificate file is only replaced once the whole chain has been
    fetched, its leaf parsed and its PEM encoding built.

    :returns: the new leaf certificate
    :rtype: `cryptography.x509.Certificate`

    :raises .ProvisionError: if any step fails

    """
    verb = "Reprovisioning" if force_renew else "Provisioning"
    display_util.notify(f"{verb} domain {domain!r}...")
    with _phase(f"Error {verb.lower()} domain"):
        order = client.provision_domain(domain)

    with _phase("Certificate key error"):
        cert_key = config.read_or_generate_certificate_key()

    display_util.notify("Domain provisioned; waiting for certificate generation...")
    with _phase("Error fetching certificate"):
        chain = client.get_certificate(order, cert_key)
        if not chain:
            raise errors.Error("the server returned an empty certificate chain")
    logger.debug("Received certificate chain with %d entries", len(chain))

    with _phase("Error parsing generated certificate"):
        cert = x509.load_der_x509_certificate(chain[0])

    with _phase("Error writing certificate"):
        chain_pem = crypto_util.encode_pem_chain(chain)
        util.atomic_write(config.certificate_file, chain_pem,
                          chmod=constants.CERTIFICATE_FILE_MODE)
    logger.info("Wrote certificate for %s to %s", domain, config.certificate_file)
    return cert
