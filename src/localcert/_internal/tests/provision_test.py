"""Tests for localcert._internal.provision."""
import datetime
import json
import os
import unittest
from unittest import mock

import pytest

from localcert import configuration
from localcert import crypto_util
from localcert import errors
from localcert import interfaces
from localcert._internal import provision
import localcert._internal.tests.util as test_util

ACCOUNT_URI = "https://ca.example/acct/1"


class FakeClient(interfaces.Client):
    """Client recording every call, answering from canned values."""

    def __init__(self, domain="abc123.example", chain=None, registration_errors=()):
        self.domain = domain
        self.chain = chain
        self.registration_errors = list(registration_errors)
        self.calls = []

    def ensure_registration(self, accepted_terms, key_id):
        self.calls.append(("ensure_registration", accepted_terms, key_id))
        if self.registration_errors:
            raise self.registration_errors.pop(0)
        return interfaces.Account(uri=ACCOUNT_URI, terms_of_service=accepted_terms)

    def get_domain(self):
        self.calls.append(("get_domain",))
        if isinstance(self.domain, Exception):
            raise self.domain
        return self.domain

    def provision_domain(self, domain):
        self.calls.append(("provision_domain", domain))
        return mock.sentinel.order

    def get_certificate(self, order, key):
        self.calls.append(("get_certificate", order, key))
        if self.chain is None:
            leaf = test_util.make_cert(self.domain)
            return [test_util.der(leaf)]
        return self.chain

    def names(self):
        return [call[0] for call in self.calls]


class ProvisionTestCase(test_util.ConfigTestCase):
    """Base class storing certificates in the test config."""

    def setUp(self):
        super().setUp()
        self.config.ensure_config_dir()

    def _store_cert(self, cert):
        with open(self.config.certificate_file, "wb") as f:
            f.write(test_util.pem(cert))

    def _read_domain_file(self):
        with open(self.config.domain_file) as f:
            return f.read()

    def _call(self, client, **kwargs):
        return provision.provision(self.config, client, **kwargs)


class ProvisionTest(ProvisionTestCase):
    """Tests for localcert._internal.provision.provision."""

    @test_util.patch_display_util()
    def test_first_provisioning(self, mock_get_utility):
        client = FakeClient(domain="abc123.example")

        result = self._call(client)

        assert result.outcome == provision.ISSUED
        assert crypto_util.get_common_name(result.certificate) == "abc123.example"
        assert client.names() == [
            "ensure_registration", "get_domain", "provision_domain", "get_certificate"]
        with open(self.config.certificate_file, "rb") as f:
            contents = f.read()
        assert contents.count(b"-----BEGIN CERTIFICATE-----") == 1
        assert self._read_domain_file() == ""
        messages = test_util.notified(mock_get_utility)
        assert "Provisioning domain 'abc123.example'..." in messages
        assert "Domain provisioned; waiting for certificate generation..." in messages
        assert not any("new domain" in msg for msg in messages)

    @test_util.patch_display_util()
    def test_account_persisted(self, unused_mock_get_utility):
        self._call(FakeClient())

        with open(self.config.acme_account_file) as f:
            record = json.load(f)
        assert record["keyID"] == ACCOUNT_URI
        assert "key" in record

    @test_util.patch_display_util()
    def test_valid_certificate_skipped(self, mock_get_utility):
        cert = test_util.expiring_in(datetime.timedelta(days=60), "abc123.example")
        self._store_cert(cert)
        client = mock.MagicMock(spec=interfaces.Client)

        result = self._call(client)

        assert result.outcome == provision.SKIPPED
        assert result.certificate == cert
        assert client.method_calls == []
        assert self._read_domain_file() == "abc123.example"
        messages = test_util.notified(mock_get_utility)
        assert messages[0] == "Found existing certificate for domain 'abc123.example'"
        assert messages[1] == (
            "Existing certificate expires in > 30 days and doesn't need to be renewed")
        assert "Certificate expires" in messages[-1]
        assert self.config.certificate_file in messages[-1]
        assert not os.path.exists(self.config.acme_account_file)

    @test_util.patch_display_util()
    def test_expiring_certificate_renewed(self, mock_get_utility):
        self._store_cert(test_util.expiring_in(datetime.timedelta(days=10), "abc123.example"))
        client = FakeClient(domain="abc123.example")

        result = self._call(client)

        assert result.outcome == provision.ISSUED
        assert "provision_domain" in client.names()
        messages = test_util.notified(mock_get_utility)
        assert "Existing certificate expires in < 30 days and will be renewed" in messages
        assert not any("new domain" in msg for msg in messages)
        assert crypto_util.not_after(result.certificate) > (
            datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=30))

    @test_util.patch_display_util()
    def test_expired_certificate_renewed(self, mock_get_utility):
        self._store_cert(test_util.expiring_in(datetime.timedelta(days=-3), "abc123.example"))
        client = FakeClient(domain="abc123.example")

        assert self._call(client).outcome == provision.ISSUED
        assert ("Existing certificate has expired and will be renewed"
                in test_util.notified(mock_get_utility))

    @test_util.patch_display_util()
    def test_force_renew(self, mock_get_utility):
        self._store_cert(test_util.expiring_in(datetime.timedelta(days=60), "abc123.example"))
        client = FakeClient(domain="abc123.example")

        assert self._call(client, force_renew=True).outcome == provision.ISSUED
        assert "Reprovisioning domain 'abc123.example'..." in test_util.notified(mock_get_utility)

    @test_util.patch_display_util()
    def test_domain_reassigned(self, mock_get_utility):
        self._store_cert(test_util.expiring_in(datetime.timedelta(days=10), "old.example"))
        client = FakeClient(domain="new.example")

        result = self._call(client)

        assert ("provision_domain", "new.example") in client.calls
        assert crypto_util.get_common_name(result.certificate) == "new.example"
        notices = [msg for msg in test_util.notified(mock_get_utility)
                   if "assigned you a new domain" in msg]
        assert len(notices) == 1
        assert "'old.example'" in notices[0]
        assert "'new.example'" in notices[0]
        # the hint keeps the domain of the certificate found at startup
        assert self._read_domain_file() == "old.example"

    @test_util.patch_display_util()
    def test_certificate_without_common_name(self, mock_get_utility):
        self._store_cert(test_util.expiring_in(datetime.timedelta(days=10), None))

        self._call(FakeClient(domain="new.example"))

        assert not any("new domain" in msg for msg in test_util.notified(mock_get_utility))

    @test_util.patch_display_util()
    def test_chain_round_trip(self, unused_mock_get_utility):
        leaf = test_util.make_cert("abc123.example")
        intermediate = test_util.make_cert("Intermediate CA")
        root = test_util.make_cert("Root CA")
        chain = [test_util.der(leaf), test_util.der(intermediate), test_util.der(root)]

        self._call(FakeClient(domain="abc123.example", chain=chain))

        with open(self.config.certificate_file, "rb") as f:
            assert crypto_util.decode_pem_chain(f.read()) == chain
        assert self.config.read_certificate() == leaf

    @test_util.patch_display_util()
    def test_unreadable_certificate(self, unused_mock_get_utility):
        with open(self.config.certificate_file, "wb") as f:
            f.write(b"not a certificate")
        client = FakeClient()

        with pytest.raises(errors.ProvisionError) as excinfo:
            self._call(client)

        assert excinfo.value.phase == (
            f"Error reading existing certificate {self.config.certificate_file!r}")
        assert client.calls == []


class RegistrationTest(ProvisionTestCase):
    """Tests for the Terms of Service handling of registration."""

    TOS = "https://ca.example/tos/2"

    @test_util.patch_display_util()
    def test_terms_accepted_on_prompt(self, mock_get_utility):
        mock_get_utility().yesno.return_value = True
        client = FakeClient(registration_errors=[errors.TermsNotAcceptedError(self.TOS)])

        provision.ensure_registration(self.config, client)

        registrations = [call for call in client.calls if call[0] == "ensure_registration"]
        assert registrations == [
            ("ensure_registration", None, None),
            ("ensure_registration", self.TOS, None),
        ]
        assert mock_get_utility().yesno.call_count == 1
        assert self.TOS in mock_get_utility().yesno.call_args[0][0]
        with open(self.config.acme_account_file) as f:
            record = json.load(f)
        assert record["acceptedTerms"] == self.TOS
        assert record["keyID"] == ACCOUNT_URI

    @test_util.patch_display_util()
    def test_agree_tos_skips_prompt(self, mock_get_utility):
        client = FakeClient(registration_errors=[errors.TermsNotAcceptedError(self.TOS)])

        account = provision.ensure_registration(self.config, client, agree_tos=True)

        assert account.uri == ACCOUNT_URI
        assert mock_get_utility().yesno.called is False
        assert self.config.accepted_terms == self.TOS

    @test_util.patch_display_util()
    def test_second_terms_failure_is_fatal(self, mock_get_utility):
        mock_get_utility().yesno.return_value = True
        client = FakeClient(registration_errors=[
            errors.TermsNotAcceptedError(self.TOS),
            errors.TermsNotAcceptedError("https://ca.example/tos/3"),
        ])

        with pytest.raises(errors.ProvisionError) as excinfo:
            provision.ensure_registration(self.config, client)

        assert excinfo.value.phase == "Registration error"
        assert isinstance(excinfo.value.cause, errors.TermsNotAcceptedError)
        assert client.names() == ["ensure_registration", "ensure_registration"]
        assert mock_get_utility().yesno.call_count == 1
        assert not os.path.exists(self.config.acme_account_file)

    @test_util.patch_display_util()
    def test_terms_declined(self, mock_get_utility):
        mock_get_utility().yesno.return_value = False
        client = FakeClient(registration_errors=[errors.TermsNotAcceptedError(self.TOS)])

        with pytest.raises(errors.ProvisionError) as excinfo:
            provision.ensure_registration(self.config, client)

        assert excinfo.value.phase == "Registration error"
        assert client.names() == ["ensure_registration"]

    @test_util.patch_display_util()
    def test_other_registration_error(self, unused_mock_get_utility):
        client = FakeClient(registration_errors=[RuntimeError("connection refused")])

        with pytest.raises(errors.ProvisionError) as excinfo:
            provision.provision(self.config, client)

        assert str(excinfo.value) == "Registration error: connection refused"
        assert client.names() == ["ensure_registration"]

    @test_util.patch_display_util()
    def test_account_write_failure(self, unused_mock_get_utility):
        with mock.patch.object(configuration.NamespaceConfig, "write_acme_account_file",
                               side_effect=errors.AccountStorageError("disk full")):
            with pytest.raises(errors.ProvisionError) as excinfo:
                provision.ensure_registration(self.config, FakeClient())

        assert excinfo.value.phase == (
            f"Error writing acmeAccount file {self.config.acme_account_file!r}")


class ResolveDomainTest(ProvisionTestCase):
    """Tests for localcert._internal.provision.resolve_domain."""

    @test_util.patch_display_util()
    def test_lookup_failure(self, unused_mock_get_utility):
        client = FakeClient(domain=RuntimeError("boom"))

        with pytest.raises(errors.ProvisionError) as excinfo:
            provision.resolve_domain(self.config, client, "old.example")

        assert excinfo.value.phase == "Error getting localcert domain name"
        assert self._read_domain_file() == "old.example"

    @test_util.patch_display_util()
    def test_empty_domain(self, unused_mock_get_utility):
        with pytest.raises(errors.ProvisionError) as excinfo:
            provision.resolve_domain(self.config, FakeClient(domain=""), "")

        assert excinfo.value.phase == "Error getting localcert domain name"

    @test_util.patch_display_util()
    def test_same_domain(self, mock_get_utility):
        domain = provision.resolve_domain(self.config, FakeClient(domain="a.example"),
                                          "a.example")

        assert domain == "a.example"
        assert test_util.notified(mock_get_utility) == []


class IssueCertificateTest(ProvisionTestCase):
    """Tests for localcert._internal.provision.issue_certificate."""

    def _issue(self, client, **kwargs):
        return provision.issue_certificate(self.config, client, client.domain, **kwargs)

    @test_util.patch_display_util()
    def test_provision_failure(self, unused_mock_get_utility):
        client = FakeClient()
        with mock.patch.object(client, "provision_domain", side_effect=RuntimeError("nope")):
            with pytest.raises(errors.ProvisionError) as excinfo:
                self._issue(client)
            assert excinfo.value.phase == "Error provisioning domain"
            with pytest.raises(errors.ProvisionError) as excinfo:
                self._issue(client, force_renew=True)
            assert excinfo.value.phase == "Error reprovisioning domain"

    @test_util.patch_display_util()
    def test_key_failure(self, unused_mock_get_utility):
        with open(self.config.key_file, "wb") as f:
            f.write(b"garbage")

        with pytest.raises(errors.ProvisionError) as excinfo:
            self._issue(FakeClient())

        assert excinfo.value.phase == "Certificate key error"

    @test_util.patch_display_util()
    def test_empty_chain(self, unused_mock_get_utility):
        with pytest.raises(errors.ProvisionError) as excinfo:
            self._issue(FakeClient(chain=[]))

        assert excinfo.value.phase == "Error fetching certificate"
        assert not os.path.exists(self.config.certificate_file)

    @test_util.patch_display_util()
    def test_unparsable_leaf(self, unused_mock_get_utility):
        old = test_util.expiring_in(datetime.timedelta(days=5))
        self._store_cert(old)

        with pytest.raises(errors.ProvisionError) as excinfo:
            self._issue(FakeClient(chain=[b"junk"]))

        assert excinfo.value.phase == "Error parsing generated certificate"
        assert self.config.read_certificate() == old

    @test_util.patch_display_util()
    def test_write_failure(self, unused_mock_get_utility):
        self.config.read_or_generate_certificate_key()
        with mock.patch("localcert._internal.provision.util.atomic_write",
                        side_effect=OSError("read-only file system")):
            with pytest.raises(errors.ProvisionError) as excinfo:
                self._issue(FakeClient())

        assert str(excinfo.value) == "Error writing certificate: read-only file system"

    @test_util.patch_display_util()
    def test_key_generated_once(self, unused_mock_get_utility):
        client = FakeClient()
        self._issue(client)
        key = client.calls[-1][2]
        self._issue(client)

        assert client.calls[-1][2] == key
        assert os.path.exists(self.config.key_file)


class ShouldRenewTest(unittest.TestCase):
    """Tests for localcert._internal.provision.should_renew."""

    def setUp(self):
        self.now = datetime.datetime.now(datetime.timezone.utc)
        self.cert = test_util.make_cert(
            not_before=self.now - datetime.timedelta(days=1),
            lifetime=datetime.timedelta(days=91))

    def _call(self, cert, force_renew=False, now=None):
        with test_util.patch_display_util():
            return provision.should_renew(cert, force_renew, now or self.now)

    def test_missing_certificate(self):
        assert self._call(None) is True

    def test_far_from_expiry(self):
        assert self._call(self.cert) is False

    def test_force_renew(self):
        assert self._call(self.cert, force_renew=True) is True

    def test_window_boundary(self):
        expiry = crypto_util.not_after(self.cert)
        assert self._call(self.cert, now=expiry - datetime.timedelta(days=30, seconds=1)) is False
        assert self._call(self.cert, now=expiry - datetime.timedelta(days=30)) is True
        assert self._call(self.cert, now=expiry) is True
        assert self._call(self.cert, now=expiry + datetime.timedelta(days=1)) is True


if __name__ == '__main__':
    unittest.main()  # pragma: no cover
