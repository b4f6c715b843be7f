"""localcert client errors."""
from typing import Optional


class Error(Exception):
    """Generic localcert client error."""


class AccountStorageError(Error):
    """Generic ACME account file error."""


class AccountNotFound(AccountStorageError):
    """Account file not found error."""


class CertStorageError(Error):
    """Generic certificate file error."""


class CertificateNotFound(CertStorageError):
    """No certificate has been provisioned yet."""


class TermsNotAcceptedError(Error):
    """The authority requires acceptance of its Terms of Service.

    :ivar str uri: Location of the Terms of Service document that must
        be accepted before registration can succeed.

    """
    def __init__(self, uri: str) -> None:
        super().__init__(
            f"The Terms of Service at {uri} must be accepted before registering")
        self.uri = uri


class ProvisionError(Error):
    """A provisioning run failed and cannot continue.

    :ivar str phase: Human readable label of the failing step.
    :ivar Exception cause: Underlying error, if any.

    """
    def __init__(self, phase: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(phase, cause)
        self.phase = phase
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.phase
        return f"{self.phase}: {self.cause}"


class ConfigurationError(Error):
    """Configuration sanity error."""

# NoninteractiveDisplay error:

class MissingCommandlineFlag(Error):
    """A command line argument was missing in noninteractive usage"""
