"""localcert user-supplied configuration and on-disk state."""
import argparse
import logging
import os
from typing import Any
from typing import Optional
from urllib import parse

from cryptography import x509

from localcert import crypto_util
from localcert import errors
from localcert import interfaces
from localcert import util
from localcert._internal import account
from localcert._internal import constants

logger = logging.getLogger(__name__)


class NamespaceConfig(interfaces.Config):
    """Configuration wrapper around :class:`argparse.Namespace`.

    Besides exposing the parsed command line options as attributes,
    this class implements :class:`localcert.interfaces.Config`: the
    following paths are dynamically resolved using `config_dir` and the
    file names defined in :py:mod:`localcert._internal.constants`:

      - `certificate_file` (unless ``--cert-path`` is set)
      - `key_file` (unless ``--key-path`` is set)
      - `acme_account_file`
      - `domain_file`

    The ACME account record is loaded lazily from `acme_account_file`.
    When no record exists yet, a new account key is generated in memory
    and only written once `write_acme_account_file` is called.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        object.__setattr__(self, 'namespace', namespace)
        object.__setattr__(self, '_account', None)

        self.namespace.config_dir = _abspath(self.namespace.config_dir)
        self.namespace.logs_dir = _abspath(self.namespace.logs_dir)
        if self.namespace.cert_path is not None:
            self.namespace.cert_path = _abspath(self.namespace.cert_path)
        if self.namespace.key_path is not None:
            self.namespace.key_path = _abspath(self.namespace.key_path)

        # Check command line parameters sanity, and error out in case of problem.
        check_config_sanity(self)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if isinstance(getattr(type(self), name, None), property):
            object.__setattr__(self, name, value)
        else:
            setattr(self.namespace, name, value)

    @property
    def certificate_file(self) -> str:
        if self.namespace.cert_path is not None:
            return self.namespace.cert_path
        return os.path.join(self.namespace.config_dir, constants.CERTIFICATE_FILENAME)

    @property
    def key_file(self) -> str:
        if self.namespace.key_path is not None:
            return self.namespace.key_path
        return os.path.join(self.namespace.config_dir, constants.KEY_FILENAME)

    @property
    def acme_account_file(self) -> str:
        return os.path.join(self.namespace.config_dir, constants.ACME_ACCOUNT_FILENAME)

    @property
    def domain_file(self) -> str:
        return os.path.join(self.namespace.config_dir, constants.DOMAIN_FILENAME)

    @property
    def acme_account(self) -> account.ACMEAccount:
        """The ACME account record, loaded or generated on first access."""
        if self._account is None:
            try:
                acc = account.load(self.acme_account_file)
            except errors.AccountNotFound:
                logger.debug("No account file at %s, generating a new account key",
                             self.acme_account_file)
                acc = account.generate(self.namespace.rsa_key_size)
            object.__setattr__(self, '_account', acc)
        return self._account

    @property
    def accepted_terms(self) -> Optional[str]:
        return self.acme_account.accepted_terms

    @accepted_terms.setter
    def accepted_terms(self, value: Optional[str]) -> None:
        object.__setattr__(self, '_account', self.acme_account.update(accepted_terms=value))

    @property
    def key_id(self) -> Optional[str]:
        return self.acme_account.key_id

    @key_id.setter
    def key_id(self, value: Optional[str]) -> None:
        object.__setattr__(self, '_account', self.acme_account.update(key_id=value))

    def ensure_config_dir(self) -> None:
        """Create `config_dir` with restrictive permissions if needed."""
        try:
            util.make_or_verify_dir(self.namespace.config_dir, constants.CONFIG_DIR_MODE,
                                    self.namespace.strict_permissions)
        except OSError as error:
            raise errors.Error(util.PERM_ERR_FMT.format(error))

    def read_certificate(self) -> x509.Certificate:
        try:
            with open(self.certificate_file, "rb") as cert_file:
                cert_pem = cert_file.read()
        except FileNotFoundError:
            raise errors.CertificateNotFound(
                f"No certificate at {self.certificate_file}")
        except OSError as error:
            raise errors.CertStorageError(error)

        try:
            return crypto_util.load_certificate(cert_pem)
        except ValueError as error:
            raise errors.CertStorageError(f"Invalid certificate: {error}")

    def write_acme_account_file(self) -> None:
        self.ensure_config_dir()
        account.save(self.acme_account, self.acme_account_file)

    def read_or_generate_certificate_key(self) -> util.Key:
        try:
            with open(self.key_file, "rb") as key_file:
                key_pem = key_file.read()
        except FileNotFoundError:
            return self._generate_certificate_key()
        except OSError as error:
            raise errors.Error(f"Unable to read private key {self.key_file}: {error}")

        if not crypto_util.valid_privkey(key_pem):
            raise errors.Error(f"The private key {self.key_file} is invalid")
        logger.debug("Using existing certificate key %s", self.key_file)
        return util.Key(file=self.key_file, pem=key_pem)

    def _generate_certificate_key(self) -> util.Key:
        key_pem = crypto_util.make_key(
            bits=self.namespace.rsa_key_size,
            key_type=self.namespace.key_type,
            elliptic_curve=self.namespace.elliptic_curve,
        )
        self.ensure_config_dir()
        try:
            util.atomic_write(self.key_file, key_pem, chmod=constants.PRIVATE_FILE_MODE)
        except OSError as error:
            raise errors.Error(f"Unable to write private key {self.key_file}: {error}")
        logger.info("Generated new %s certificate key %s", self.namespace.key_type, self.key_file)
        return util.Key(file=self.key_file, pem=key_pem)

    def write_domain_file(self, domain: str) -> None:
        try:
            self.ensure_config_dir()
            with open(self.domain_file, "w") as domain_file:
                domain_file.write(domain)
        except (OSError, errors.Error) as error:
            logger.warning("Unable to write domain file %s: %s", self.domain_file, error)
        else:
            logger.debug("Wrote domain hint %r to %s", domain, self.domain_file)


def _abspath(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def check_config_sanity(config: NamespaceConfig) -> None:
    """Validate command line options and display error message if
    requirements are not met.

    :param config: NamespaceConfig instance holding user configuration
    :type args: :class:`localcert.configuration.NamespaceConfig`

    """
    if not config.server:
        raise errors.ConfigurationError(
            "No ACME server configured. Set --server (or \"server\" in cli.ini) "
            "to the directory URL of your localcert authority")
    parsed = parse.urlparse(config.server)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise errors.ConfigurationError(
            f"--server must be an http(s) ACME directory URL, not {config.server!r}")

    root_domain = config.root_domain.strip(".")
    if not root_domain or " " in root_domain:
        raise errors.ConfigurationError(f"Invalid --root-domain {config.root_domain!r}")
    config.namespace.root_domain = root_domain.lower()

    if config.key_type not in ("rsa", "ecdsa"):
        raise errors.ConfigurationError(
            "Invalid --key-type {}. Use [rsa|ecdsa]".format(config.key_type))

    if config.issuance_timeout <= 0:
        raise errors.ConfigurationError("--issuance-timeout must be positive")
