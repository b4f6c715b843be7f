"""Persisted ACME account record."""
import base64
import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from localcert import errors
from localcert import util
from localcert._internal import constants

logger = logging.getLogger(__name__)


class ACMEAccount(jose.JSONObjectWithFields):
    """ACME account as stored in the account file.

    :ivar .JWK key: Authorized Account Key
    :ivar str key_id: Account URL assigned by the authority on registration.
    :ivar str accepted_terms: Terms of Service URL accepted by the operator.

    """
    key: jose.JWK = jose.field("key", decoder=jose.JWK.from_json)
    key_id: Optional[str] = jose.field("keyID", omitempty=True)
    accepted_terms: Optional[str] = jose.field("acceptedTerms", omitempty=True)

    @property
    def thumbprint(self) -> bytes:
        """SHA-256 JWK thumbprint of the account key (RFC 7638)."""
        return self.key.thumbprint(hash_function=hashes.SHA256)

    @property
    def slug(self) -> str:
        """Short account identification string, useful for UI."""
        return base64.b32encode(self.thumbprint).decode("ascii").rstrip("=").lower()


def generate(rsa_key_size: int = 2048) -> ACMEAccount:
    """Create a new, unregistered account with a fresh RSA key.

    :param int rsa_key_size: account key size in bits

    """
    rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=rsa_key_size)
    key = jose.JWKRSA(key=jose.ComparableRSAKey(rsa_key))
    logger.debug("Generated new %d bit account key", rsa_key_size)
    return ACMEAccount(key=key, key_id=None, accepted_terms=None)


def load(path: str) -> ACMEAccount:
    """Read the account file at path.

    :raises .AccountNotFound: if the file does not exist
    :raises .AccountStorageError: if the file can't be read or decoded

    """
    try:
        with open(path) as account_file:
            contents = account_file.read()
    except FileNotFoundError:
        raise errors.AccountNotFound(f"Account file {path} does not exist")
    except OSError as error:
        raise errors.AccountStorageError(error)

    try:
        return ACMEAccount.json_loads(contents)
    except (ValueError, jose.DeserializationError) as error:
        raise errors.AccountStorageError(f"Invalid account file {path}: {error}")


def save(account: ACMEAccount, path: str) -> None:
    """Write account to path, replacing any previous record.

    :raises .AccountStorageError: if the file can't be written

    """
    try:
        util.atomic_write(path, account.json_dumps(indent=2).encode(),
                          chmod=constants.PRIVATE_FILE_MODE)
    except OSError as error:
        raise errors.AccountStorageError(error)
    logger.debug("Saved account %s to %s", account.key_id, path)
