"""localcert public interfaces.

The provisioning flow talks to its collaborators only through the
abstract classes defined here, so that the authority client and the
on-disk store can be replaced independently.

"""
from abc import ABCMeta
from abc import abstractmethod
from typing import Any
from typing import NamedTuple
from typing import Optional

from cryptography import x509

from localcert import util


class Account(NamedTuple):
    """Registration returned by the authority.

    :ivar str uri: Account URL, persisted as the account key ID.
    :ivar str terms_of_service: Terms of Service URL advertised by the
        authority, if any.

    """
    uri: str
    terms_of_service: Optional[str] = None


class Config(metaclass=ABCMeta):
    """Persistent state of a localcert installation.

    Every attribute is expected to be a resolved, absolute location.

    """

    accepted_terms: Optional[str]
    """Terms of Service URL accepted for the ACME account."""

    key_id: Optional[str]
    """Account URL of the registered ACME account."""

    @property
    @abstractmethod
    def certificate_file(self) -> str:
        """Path of the PEM certificate chain."""

    @property
    @abstractmethod
    def key_file(self) -> str:
        """Path of the certificate private key."""

    @property
    @abstractmethod
    def acme_account_file(self) -> str:
        """Path of the ACME account record."""

    @property
    @abstractmethod
    def domain_file(self) -> str:
        """Path of the domain hint file."""

    @abstractmethod
    def read_certificate(self) -> x509.Certificate:
        """Load the leaf of the stored certificate chain.

        :raises .CertificateNotFound: if no certificate has been stored
        :raises .CertStorageError: if the certificate can't be read

        """

    @abstractmethod
    def write_acme_account_file(self) -> None:
        """Persist the ACME account, including `accepted_terms` and `key_id`.

        :raises .AccountStorageError: if the file can't be written

        """

    @abstractmethod
    def read_or_generate_certificate_key(self) -> util.Key:
        """Load the certificate private key, creating it when missing.

        :raises .errors.Error: if the key can't be read or generated

        """

    @abstractmethod
    def write_domain_file(self, domain: str) -> None:
        """Record the last known domain. Never raises."""


class Client(metaclass=ABCMeta):
    """Access to the ACME-style authority."""

    @abstractmethod
    def ensure_registration(self, accepted_terms: Optional[str],
                            key_id: Optional[str]) -> Account:
        """Register the account, or look up the existing registration.

        :param str accepted_terms: Terms of Service URL already accepted
        :param str key_id: Account URL of a previous registration

        :raises .TermsNotAcceptedError: if the authority requires
            acceptance of different Terms of Service
        :raises Exception: on any other registration problem

        """

    @abstractmethod
    def get_domain(self) -> str:
        """Domain currently assigned to the account."""

    @abstractmethod
    def provision_domain(self, domain: str) -> Any:
        """Create an order for domain.

        :returns: an order to be passed to `get_certificate`

        """

    @abstractmethod
    def get_certificate(self, order: Any, key: util.Key) -> list[bytes]:
        """Wait for the order to be issued and download the chain.

        :returns: DER encoded certificates, leaf first
        :rtype: list

        """
