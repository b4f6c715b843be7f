"""localcert client crypto utility functions."""
import base64
import datetime
import logging
import textwrap
from typing import Iterable
from typing import Optional
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import NoEncryption
from cryptography.hazmat.primitives.serialization import PrivateFormat

from localcert import errors
from localcert._internal import constants

logger = logging.getLogger(__name__)


def make_key(bits: int = 2048, key_type: str = "rsa",
             elliptic_curve: Optional[str] = None) -> bytes:
    """Generate PEM encoded RSA|EC key.

    :param int bits: Number of bits if key_type=rsa. At least 2048 for RSA.
    :param str key_type: The type of key to generate, but be rsa or ecdsa
    :param str elliptic_curve: The elliptic curve to use.

    :returns: new RSA or ECDSA key in PEM form with specified number of bits
              or of type ec_curve when key_type ecdsa is used.
    :rtype: bytes

    """
    key: Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
    if key_type == 'rsa':
        if bits < 2048:
            raise errors.Error("Unsupported RSA key length: {}".format(bits))

        key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    elif key_type == 'ecdsa':
        if not elliptic_curve:
            raise errors.Error("When key_type == ecdsa, elliptic_curve must be set.")
        name = elliptic_curve.upper()
        if name not in ('SECP256R1', 'SECP384R1', 'SECP521R1'):
            raise errors.Error("Unsupported elliptic curve: {}".format(elliptic_curve))
        try:
            key = ec.generate_private_key(curve=getattr(ec, name)())
        except UnsupportedAlgorithm as e:
            raise errors.Error(str(e)) from e
    else:
        raise errors.Error("Invalid key_type specified: {}.  Use [rsa|ecdsa]".format(key_type))
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


def valid_privkey(privkey: Union[str, bytes]) -> bool:
    """Is valid private key?

    :param privkey: Private key file contents in PEM

    :returns: Validity of private key.
    :rtype: bool

    """
    if isinstance(privkey, str):
        privkey = privkey.encode()
    try:
        serialization.load_pem_private_key(privkey, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return False
    else:
        return True


def load_certificate(cert_pem: bytes) -> x509.Certificate:
    """Load the leaf certificate of a PEM chain.

    :param bytes cert_pem: one or more concatenated PEM certificates

    :returns: the first certificate found
    :rtype: `cryptography.x509.Certificate`

    :raises ValueError: if no certificate can be parsed

    """
    return x509.load_pem_x509_certificate(cert_pem)


def get_common_name(cert: x509.Certificate) -> str:
    """Subject CommonName of cert, or the empty string if it has none."""
    names = cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not names:
        return ""
    value = names[0].value
    return value.decode() if isinstance(value, bytes) else value


def not_after(cert: x509.Certificate) -> datetime.datetime:
    """When does cert stop being valid?

    :returns: timezone aware notAfter value
    :rtype: :class:`datetime.datetime`

    """
    return cert.not_valid_after_utc


def encode_pem_chain(chain: Iterable[bytes]) -> bytes:
    """Encode DER certificates as concatenated PEM blocks.

    Entries are armored as-is, in order; they are not parsed.

    :param chain: DER encoded certificates, leaf first

    :returns: PEM encoded chain
    :rtype: bytes

    """
    return b"".join(_pem_block(constants.CERTIFICATE_PEM_TYPE, der) for der in chain)


def decode_pem_chain(chain_pem: Union[str, bytes]) -> list[bytes]:
    """Split a PEM certificate chain into DER blobs.

    :param chain_pem: concatenated PEM certificates

    :returns: DER encoded certificates, in file order
    :rtype: list

    :raises ValueError: if the chain holds no parsable certificate

    """
    if isinstance(chain_pem, str):
        chain_pem = chain_pem.encode()
    return [cert.public_bytes(Encoding.DER)
            for cert in x509.load_pem_x509_certificates(chain_pem)]


def _pem_block(pem_type: str, der: bytes) -> bytes:
    body = "\n".join(textwrap.wrap(base64.b64encode(der).decode("ascii"), 64))
    return (f"-----BEGIN {pem_type}-----\n{body}\n-----END {pem_type}-----\n").encode("ascii")
