"""Tools for managing certificates."""
import datetime
import logging
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import TYPE_CHECKING

import pytz

from flarecert import crypto_util
from flarecert import errors
from flarecert._internal import constants
from flarecert._internal import renewal
from flarecert._internal import san
from flarecert._internal import storage
from flarecert._internal.display import obj as display_obj
from flarecert._internal.display import util as display_util

if TYPE_CHECKING:
    from flarecert._internal import client
    from flarecert._internal import configuration

logger = logging.getLogger(__name__)

STATUS_VALID = "Valid"
STATUS_EXPIRES_SOON = "Expires Soon"
STATUS_EXPIRED = "Expired"

MAX_DOMAINS_WIDTH = 40


class Manager:
    """Issues, renews and replaces certificates under one storage root.

    :ivar .Config config: FlareCert configuration
    :ivar display: asks for confirmation and reports progress
    :ivar .Client client: obtains signed certificates

    """
    def __init__(self, config: "configuration.Config", display: display_obj.Display,
                 acme_client: "client.Client") -> None:
        self.config = config
        self.display = display
        self.client = acme_client

    def generate_certificate(self, domains: Iterable[str],
                             force: Optional[bool] = None
                             ) -> Optional[storage.CertificateMetadata]:
        """Obtain a certificate for ``domains`` if one is needed.

        :param domains: requested domain names, the first being the primary
        :param bool force: override ``config.force``

        :returns: the metadata written for the new certificate, or None if
            the operator chose not to proceed
        :rtype: CertificateMetadata

        :raises errors.ConfigurationError: for an empty or invalid domain list
        :raises errors.CertStorageError: if the slot cannot be prepared or
            the new certificate cannot be written
        :raises errors.Error: if issuance fails

        """
        requested = san.DomainSet(san.validate_domain(domain) for domain in domains)
        if not requested:
            raise errors.ConfigurationError("At least one domain must be specified.")

        store = storage.CertificateStore.for_domains(self.config.cert_dir, requested)
        store.ensure_layout()

        engine = renewal.RenewalDecisionEngine(
            self.display, self.config.force if force is None else force)
        action = engine.decide(requested, store)
        if action is renewal.Action.SKIP:
            self.display.notification(
                "Certificate generation for {0} skipped.".format(requested.primary))
            return None

        prior = store.load_metadata()

        logger.info("Requesting a certificate for %s", requested)
        result = self.client.obtain_certificate(requested.names)

        archived = store.archive_current()
        if archived:
            logger.info("Archived the previous certificate of %s", store.name)
        store.save(result.certificate, result.private_key, result.issuer_certificate)

        if action is renewal.Action.RENEW and prior is not None:
            renewal_count = prior.renewal_count + 1
        else:
            renewal_count = 0

        metadata = storage.CertificateMetadata(
            domain=requested.primary,
            domains=requested.names,
            is_wildcard=requested.is_wildcard(),
            key_type=self.config.key_type,
            created_at=datetime.datetime.now(pytz.UTC).replace(microsecond=0),
            expires_at=result.not_after,
            issuer=crypto_util.get_issuer_from_cert(result.certificate),
            serial_number=crypto_util.get_serial_from_cert(result.certificate),
            fingerprint=crypto_util.sha256_fingerprint(result.certificate),
            acme_server=self.config.server,
            renewal_count=renewal_count,
        )
        try:
            store.save_metadata(metadata)
        except errors.CertStorageError as error:
            logger.warning("Failed to save certificate metadata: %s", error)

        try:
            removed = store.cleanup_archive(self.config.archive_retention_days)
        except errors.CertStorageError as error:
            logger.warning("Failed to cleanup old archives: %s", error)
        else:
            if removed:
                logger.info("Removed %d archived file(s) older than %d days",
                            len(removed), self.config.archive_retention_days)

        self.display.notification(
            "Certificate successfully generated for {0}\n"
            "Certificate is saved at: {1}\n"
            "Key is saved at:         {2}\n"
            "This certificate expires on {3}.".format(
                requested, store.paths.fullchain, store.paths.privkey,
                result.not_after.strftime("%Y-%m-%d")), wrap=False)
        return metadata


class CertificateInfo(NamedTuple):
    """A stored certificate as shown by the ``list`` command."""
    name: str
    domains: List[str]
    expires_at: datetime.datetime
    status: str


def certificate_status(expires_at: datetime.datetime, now: datetime.datetime) -> str:
    """``Expired``, ``Expires Soon`` or ``Valid``."""
    if expires_at <= now:
        return STATUS_EXPIRED
    if renewal.days_remaining(expires_at, now) <= constants.RENEWAL_WINDOW_DAYS:
        return STATUS_EXPIRES_SOON
    return STATUS_VALID


def certificates(cert_dir: str,
                 now: Optional[datetime.datetime] = None) -> List[CertificateInfo]:
    """Information about every certificate stored under ``cert_dir``.

    Slots whose certificate cannot be parsed are logged and skipped.

    :raises errors.CertStorageError: if ``cert_dir`` cannot be read

    """
    if now is None:
        now = datetime.datetime.now(pytz.UTC)

    infos = []
    for store in storage.list_stores(cert_dir):
        try:
            names, expires_at = store.certificate_info()
        except errors.Error as e:
            logger.warning("Certificate %s produced an unexpected error: %s. Skipping.",
                           store.paths.cert, e)
            continue
        infos.append(CertificateInfo(store.name, names, expires_at,
                                     certificate_status(expires_at, now)))
    return infos


def _truncate(text: str, width: int = MAX_DOMAINS_WIDTH) -> str:
    if len(text) > width:
        return text[:width - 3] + "..."
    return text


def describe_certificates(display: display_obj.Display, cert_dir: str,
                          infos: List[CertificateInfo]) -> None:
    """Print ``infos`` as a table."""
    if not infos:
        display.notification("No certificates found in {0}".format(cert_dir))
        return

    rows = [(info.name,
             _truncate(", ".join(info.domains)),
             info.expires_at.strftime("%Y-%m-%d %H:%M:%S"),
             info.status) for info in infos]
    lines = display_util.format_table(("DOMAIN", "DOMAINS", "EXPIRATION", "STATUS"), rows)
    display.notification("\n".join(lines), wrap=False)
