"""localcert ACME client."""
import datetime
import logging
import platform
from typing import Optional

from acme import challenges
from acme import client as acme_client
from acme import crypto_util as acme_crypto_util
from acme import errors as acme_errors
from acme import messages
import josepy as jose
import requests

import localcert
from localcert import configuration
from localcert import crypto_util
from localcert import errors
from localcert import interfaces
from localcert import util

logger = logging.getLogger(__name__)


def acme_from_config_key(config: configuration.NamespaceConfig, key: jose.JWK,
                         regr: Optional[messages.RegistrationResource] = None
                         ) -> acme_client.ClientV2:
    """Wrangle ACME client construction"""
    net = acme_client.ClientNetwork(key, account=regr, verify_ssl=True,
                                    user_agent=determine_user_agent())
    directory = acme_client.ClientV2.get_directory(config.server, net)
    return acme_client.ClientV2(directory, net)


def determine_user_agent() -> str:
    """
    Build the User-Agent sent to the ACME server.

    :returns: the client's User-Agent string
    :rtype: `str`
    """
    return "localcert/{0} ({1} {2}) Python/{3}".format(
        localcert.__version__, platform.system(), platform.release(),
        platform.python_version())


def _is_user_action_required(error: messages.Error) -> bool:
    return str(error.typ).rsplit(':', maxsplit=1)[-1] == 'userActionRequired'


class AcmeClient(interfaces.Client):
    """localcert's client.

    The connection to the ACME server is opened on first use, so runs
    that end up not renewing anything never touch the network.

    :ivar .NamespaceConfig config: Client configuration, also holding
        the ACME account key.
    :ivar acme.client.ClientV2 acme: Optional ACME client API handle.

    """

    def __init__(self, config: configuration.NamespaceConfig,
                 acme: Optional[acme_client.ClientV2] = None) -> None:
        self.config = config
        self._acme = acme

    @property
    def acme(self) -> acme_client.ClientV2:
        """ACME client API handle, created on first access."""
        if self._acme is None:
            logger.debug("Connecting to ACME server %s", self.config.server)
            self._acme = acme_from_config_key(self.config, self.config.acme_account.key)
        return self._acme

    def terms_of_service(self) -> Optional[str]:
        """Terms of Service URL advertised in the ACME directory, if any."""
        directory = self.acme.directory
        if hasattr(directory, 'meta') and hasattr(directory.meta, 'terms_of_service'):
            return directory.meta.terms_of_service or None
        return None

    def ensure_registration(self, accepted_terms: Optional[str],
                            key_id: Optional[str]) -> interfaces.Account:
        terms = self.terms_of_service()
        if terms and terms != accepted_terms:
            raise errors.TermsNotAcceptedError(terms)

        try:
            if key_id:
                regr = self._query_registration(key_id)
            else:
                regr = self.acme.new_account(messages.NewRegistration.from_data(
                    terms_of_service_agreed=bool(terms)))
        except acme_errors.ConflictError as error:
            logger.debug("Account key is already registered at %s", error.location)
            regr = self._query_registration(error.location)
        except messages.Error as error:
            if _is_user_action_required(error):
                raise errors.TermsNotAcceptedError(terms or self.config.server) from error
            raise

        logger.info("Account registered at %s", regr.uri)
        return interfaces.Account(uri=regr.uri, terms_of_service=terms)

    def _query_registration(self, uri: str) -> messages.RegistrationResource:
        regr = messages.RegistrationResource(uri=uri, body=messages.Registration())
        return self.acme.query_registration(regr)

    def get_domain(self) -> str:
        """Subdomain of `root_domain` bound to the account key.

        The label is the base32 encoded SHA-256 thumbprint of the
        account key, so it changes if and only if the key does.

        """
        return "{0}.{1}".format(self.config.acme_account.slug, self.config.root_domain)

    def provision_domain(self, domain: str) -> messages.OrderResource:
        """Create an order for domain and answer its challenges.

        The authority serves the dns-01 validation records of its own
        subdomains, so answering the challenge is all that is needed.

        :returns: the pending order
        :rtype: `acme.messages.OrderResource`

        """
        new_order = messages.NewOrder(identifiers=[
            messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain)])
        response = self._post(self.acme.directory['newOrder'], new_order)
        body = messages.Order.from_json(response.json())

        authorizations = []
        for url in body.authorizations:
            authzr = messages.AuthorizationResource(
                body=messages.Authorization.from_json(self._post(url, None).json()),
                uri=url)
            if authzr.body.status == messages.STATUS_PENDING:
                self._answer_dns01(authzr)
            authorizations.append(authzr)

        return messages.OrderResource(
            body=body,
            uri=response.headers.get('Location'),
            authorizations=authorizations)

    def _answer_dns01(self, authzr: messages.AuthorizationResource) -> None:
        for challb in authzr.body.challenges:
            if isinstance(challb.chall, challenges.DNS01):
                logger.debug("Answering dns-01 challenge for %s", authzr.body.identifier.value)
                self.acme.answer_challenge(challb, challb.chall.response(self.acme.net.key))
                return
        raise errors.Error(
            "The server offered no dns-01 challenge for {0}".format(
                authzr.body.identifier.value))

    def _post(self, url: str, obj: Optional[jose.JSONDeSerializable]) -> requests.Response:
        return self.acme.net.post(url, obj, new_nonce_url=self.acme.directory['newNonce'])

    def get_certificate(self, order: messages.OrderResource, key: util.Key) -> list[bytes]:
        domains = [identifier.value for identifier in order.body.identifiers]
        csr_pem = acme_crypto_util.make_csr(key.pem, domains)
        deadline = datetime.datetime.now() + datetime.timedelta(
            seconds=self.config.issuance_timeout)
        orderr = self.acme.poll_and_finalize(order.update(csr_pem=csr_pem), deadline)
        return crypto_util.decode_pem_chain(orderr.fullchain_pem)
