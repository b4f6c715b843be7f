"""Test utilities."""
import argparse
import datetime
import logging
import shutil
import tempfile
import unittest
from typing import Optional
from unittest import mock

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from localcert import configuration
from localcert._internal import constants


def make_cert(common_name: Optional[str] = "example.localcert.net",
              lifetime: datetime.timedelta = datetime.timedelta(days=90),
              not_before: Optional[datetime.datetime] = None) -> x509.Certificate:
    """Return a self-signed certificate valid for lifetime from not_before.

    :param common_name: subject CommonName, omitted if None
    :param lifetime: time between notBefore and notAfter
    :param not_before: defaults to one day ago

    """
    if not_before is None:
        not_before = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=1)
    key = ec.generate_private_key(ec.SECP256R1())
    attributes = []
    if common_name is not None:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    name = x509.Name(attributes)
    return x509.CertificateBuilder(
        issuer_name=name,
        subject_name=name,
        public_key=key.public_key(),
        serial_number=x509.random_serial_number(),
        not_valid_before=not_before,
        not_valid_after=not_before + lifetime,
    ).sign(
        private_key=key,
        algorithm=hashes.SHA256(),
    )


def expiring_in(delta: datetime.timedelta,
                common_name: Optional[str] = "example.localcert.net") -> x509.Certificate:
    """Return a certificate whose notAfter is delta from now."""
    not_before = datetime.datetime.now(datetime.timezone.utc) + delta - datetime.timedelta(days=2)
    return make_cert(common_name, lifetime=datetime.timedelta(days=2), not_before=not_before)


def der(cert: x509.Certificate) -> bytes:
    """DER encoding of cert."""
    return cert.public_bytes(serialization.Encoding.DER)


def pem(cert: x509.Certificate) -> bytes:
    """PEM encoding of cert."""
    return cert.public_bytes(serialization.Encoding.PEM)


def make_namespace(tempdir: str, **kwargs) -> argparse.Namespace:
    """Namespace holding the CLI defaults with paths inside tempdir."""
    values = dict(constants.CLI_DEFAULTS)
    values.update(
        config_dir=tempdir + "/config",
        logs_dir=tempdir + "/logs",
        server="https://acme.example.com/directory",
        rsa_key_size=2048,
    )
    values.update(kwargs)
    return argparse.Namespace(**values)


def patch_display_util() -> mock.MagicMock:
    """Patch localcert.display.util to use a mock display utility.

    The mock returned by the patched function is used as the display
    utility, so tests can inspect ``mock_get_utility().notification``
    and ``mock_get_utility().yesno``.

    """
    return mock.patch('localcert._internal.display.obj.get_display',
                      return_value=mock.MagicMock())


def notified(mock_get_utility: mock.MagicMock) -> list[str]:
    """Messages passed to the display utility's notification method."""
    return [call[0][0] for call in mock_get_utility().notification.call_args_list]


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self) -> None:
        """Execute before test"""
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        """Execute after test"""
        # Cleanup opened resources after a test. logging closes its handlers
        # at exit, which happens too late for tearDown.
        logging.shutdown()
        # Remove logging handlers that have been closed so they won't be
        # accidentally used in future tests.
        logging.getLogger().handlers = []

        shutil.rmtree(self.tempdir)


class ConfigTestCase(TempDirTestCase):
    """Test class which sets up a NamespaceConfig object."""
    def setUp(self) -> None:
        super().setUp()
        self.config = configuration.NamespaceConfig(make_namespace(self.tempdir))
