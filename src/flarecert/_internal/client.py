"""ACME client API."""
import datetime
import hashlib
import logging
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acme import challenges
from acme import client as acme_client
from acme import crypto_util as acme_crypto_util
from acme import messages
from flarecert import crypto_util
from flarecert import errors
from flarecert._internal import constants
from flarecert._internal import san

if TYPE_CHECKING:
    from flarecert._internal import configuration
    from flarecert._internal import dns_cloudflare

logger = logging.getLogger(__name__)


class CertificateResult(NamedTuple):
    """What a successful issuance hands back.

    :ivar bytes certificate: leaf certificate, PEM
    :ivar bytes private_key: private key of the leaf, PEM
    :ivar bytes issuer_certificate: intermediate chain, PEM
    :ivar datetime.datetime not_after: notAfter of the leaf (UTC)

    """
    certificate: bytes
    private_key: bytes
    issuer_certificate: bytes
    not_after: datetime.datetime


def get_record(domain: str, key_authorization: str) -> Tuple[str, str]:
    """Name and value of the TXT record answering a DNS-01 challenge.

    :param str domain: domain being validated, without a wildcard prefix
    :param str key_authorization: key authorization of the challenge

    :returns: fully qualified record name (with trailing dot) and the
        base64url encoded SHA-256 digest of ``key_authorization``
    :rtype: tuple

    """
    digest = hashlib.sha256(key_authorization.encode("utf-8")).digest()
    return ("{0}.{1}.".format(constants.ACME_CHALLENGE_LABEL, domain),
            jose.b64encode(digest).decode("ascii"))


def acme_from_config(config: "configuration.Config") -> acme_client.ClientV2:
    """Create an ACME client with a fresh account key and register it."""
    key = jose.JWKRSA(key=rsa.generate_private_key(
        public_exponent=65537, key_size=constants.ACCOUNT_KEY_BITS))
    net = acme_client.ClientNetwork(key, user_agent=constants.USER_AGENT)
    logger.debug("Fetching ACME directory from %s", config.server)
    directory = acme_client.ClientV2.get_directory(config.server, net)
    acme = acme_client.ClientV2(directory, net=net)

    logger.info("Registering ACME account for %s", config.email)
    regr = acme.new_account(messages.NewRegistration.from_data(
        email=config.email, terms_of_service_agreed=True))
    logger.debug("Registered account %s", regr.uri)
    return acme


def select_dns01_chall(authzr: messages.AuthorizationResource) -> messages.ChallengeBody:
    """Pick the DNS-01 challenge among those offered for an authorization.

    :raises errors.IssuanceError: if the server did not offer DNS-01

    """
    for challb in authzr.body.challenges:
        if isinstance(challb.chall, challenges.DNS01):
            return challb
    raise errors.IssuanceError(
        "DNS-01 challenge was not offered by the CA server for {0}".format(
            authzr.body.identifier.value))


class Client:
    """Obtains certificates by answering DNS-01 challenges.

    :ivar .Config config: FlareCert configuration
    :ivar .ChallengeProvider provider: creates and removes challenge records
    :ivar acme: registered ACME client, created on first use

    """
    def __init__(self, config: "configuration.Config",
                 provider: "dns_cloudflare.ChallengeProvider",
                 acme: Optional[acme_client.ClientV2] = None) -> None:
        self.config = config
        self.provider = provider
        self.acme = acme

    def _get_acme(self) -> acme_client.ClientV2:
        if self.acme is None:
            self.acme = acme_from_config(self.config)
        return self.acme

    def obtain_certificate(self, domains: List[str]) -> CertificateResult:
        """Obtain a certificate covering ``domains``.

        A new private key of the configured type is generated for each
        call. Every challenge record that was presented is cleaned up,
        whether or not issuance succeeds.

        :raises errors.IssuanceError: if the CA rejects the order, the
            validation fails or times out, or the ACME exchange fails for
            any reason not already reported as an `errors.Error`
        :raises errors.Error: if a challenge record cannot be created

        """
        key_pem = crypto_util.make_key(self.config.key_type)
        csr_pem = acme_crypto_util.make_csr(key_pem, domains)
        logger.debug("CSR for %s generated", san.display(domains))

        try:
            acme = self._get_acme()
            orderr = acme.new_order(csr_pem)
        except errors.Error:
            raise
        except Exception as error:  # pylint: disable=broad-except
            raise errors.IssuanceError(
                "Failed to create an order for {0}: {1}".format(san.display(domains), error))

        presented: List[Tuple[str, str, str]] = []
        try:
            for authzr in orderr.authorizations:
                domain = authzr.body.identifier.value
                challb = select_dns01_chall(authzr)
                token = challb.chall.encode("token")
                key_authorization = challb.chall.key_authorization(acme.net.key)

                self.provider.present(domain, token, key_authorization)
                presented.append((domain, token, key_authorization))
                acme.answer_challenge(challb, challb.response(acme.net.key))

            timeout, _ = self.provider.timeout()
            deadline = datetime.datetime.now() + datetime.timedelta(seconds=timeout)
            logger.debug("Will poll for certificate issuance until %s", deadline)
            orderr = acme.poll_and_finalize(orderr, deadline)
        except errors.Error:
            raise
        except Exception as error:  # pylint: disable=broad-except
            raise errors.IssuanceError(
                "Failed to obtain certificate for {0}: {1}".format(
                    san.display(domains), error))
        finally:
            self._cleanup(presented)

        cert, chain = crypto_util.cert_and_chain_from_fullchain(orderr.fullchain_pem)
        cert_pem = cert.encode()
        return CertificateResult(
            certificate=cert_pem,
            private_key=key_pem,
            issuer_certificate=chain.encode(),
            not_after=crypto_util.notAfter(cert_pem),
        )

    def _cleanup(self, presented: List[Tuple[str, str, str]]) -> None:
        for domain, token, key_authorization in presented:
            try:
                self.provider.cleanup(domain, token, key_authorization)
            except errors.Error as error:
                logger.warning("Failed to clean up challenge record for %s: %s",
                               domain, error)
