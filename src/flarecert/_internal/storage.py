"""On-disk certificate storage."""
import datetime
import logging
import os
import stat
import time
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple

from acme import fields as acme_fields
import josepy as jose

from flarecert import crypto_util
from flarecert import errors
from flarecert._internal import constants
from flarecert._internal import san

logger = logging.getLogger(__name__)

CERT_MODE = 0o600
"""Mode for every PEM file written to ``current/``."""

METADATA_MODE = 0o644
DIR_MODE = 0o755


class CertificatePaths(NamedTuple):
    """All file paths of one certificate slot."""
    cert_dir: str
    current_dir: str
    archive_dir: str
    logs_dir: str
    cert: str
    privkey: str
    chain: str
    fullchain: str
    info: str

    def current_files(self) -> List[str]:
        """The five files making up the current generation."""
        return [self.cert, self.privkey, self.chain, self.fullchain, self.info]


def slot_name(domain: str) -> str:
    """Directory name for a primary domain, with wildcard markers made safe."""
    name = san.normalize(domain).replace("*.", "wildcard.")
    return name.replace("*", "wildcard")


def paths_for_slot(root: str, slot: str) -> CertificatePaths:
    """Return the paths of the slot directory ``root/slot``."""
    cert_dir = os.path.join(root, slot)
    current_dir = os.path.join(cert_dir, constants.CURRENT_DIR)
    return CertificatePaths(
        cert_dir=cert_dir,
        current_dir=current_dir,
        archive_dir=os.path.join(cert_dir, constants.ARCHIVE_DIR),
        logs_dir=os.path.join(cert_dir, constants.LOGS_DIR),
        cert=os.path.join(current_dir, constants.CERT_FILE),
        privkey=os.path.join(current_dir, constants.KEY_FILE),
        chain=os.path.join(current_dir, constants.CHAIN_FILE),
        fullchain=os.path.join(current_dir, constants.FULLCHAIN_FILE),
        info=os.path.join(current_dir, constants.INFO_FILE),
    )


def paths(root: str, domains: Iterable[str]) -> CertificatePaths:
    """Compute the slot paths for a requested domain list.

    When the list contains a wildcard, the slot is named after the
    wildcard entry rather than the apex, so ``example.com`` +
    ``*.example.com`` lands in ``root/wildcard.example.com``.

    :param str root: storage root
    :param domains: requested domain names
    :rtype: CertificatePaths

    """
    return paths_for_slot(root, slot_name(san.DomainSet(domains).wildcard()))


def ensure_layout(cert_paths: CertificatePaths) -> None:
    """Create ``current/``, ``archive/`` and ``logs/`` if absent.

    :raises errors.CertStorageError: if a directory cannot be created

    """
    for directory in (cert_paths.current_dir, cert_paths.archive_dir, cert_paths.logs_dir):
        try:
            os.makedirs(directory, DIR_MODE, exist_ok=True)
        except OSError as error:
            raise errors.CertStorageError(
                "Failed to create directory {0}: {1}".format(directory, error))


def archive_current(cert_paths: CertificatePaths,
                    now: Optional[datetime.datetime] = None) -> List[str]:
    """Move the current generation into ``archive/``.

    Does nothing when ``current/cert.pem`` is absent. Files of the
    generation that do not exist are skipped individually.

    :returns: archived file paths
    :raises errors.CertStorageError: if a rename fails

    """
    if not os.path.exists(cert_paths.cert):
        return []

    timestamp = (now or datetime.datetime.now()).strftime(constants.ARCHIVE_TIMESTAMP_FORMAT)
    archived = []
    for source in cert_paths.current_files():
        if not os.path.exists(source):
            continue
        dest = os.path.join(cert_paths.archive_dir,
                            "cert-{0}-{1}".format(timestamp, os.path.basename(source)))
        try:
            os.replace(source, dest)
        except OSError as error:
            raise errors.CertStorageError(
                "Failed to archive {0}: {1}".format(source, error))
        logger.debug("Archived %s to %s", source, dest)
        archived.append(dest)
    return archived


def _write_file(path: str, data: bytes, mode: int) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # os.open only applies mode to newly created files
        os.chmod(path, mode)
    except OSError as error:
        raise errors.CertStorageError("Failed to save {0}: {1}".format(path, error))


def normalize_chain(chain_pem: bytes) -> bytes:
    """Trim surrounding whitespace and end with exactly one newline.

    An empty or whitespace-only chain becomes an empty byte string.

    """
    trimmed = chain_pem.strip()
    if trimmed:
        trimmed += b"\n"
    return trimmed


def save(cert_paths: CertificatePaths, cert_pem: bytes, key_pem: bytes,
         chain_pem: bytes) -> None:
    """Write the four PEM files of a new generation.

    ``fullchain.pem`` is the leaf bytes immediately followed by the
    normalized chain bytes written to ``chain.pem``.

    :raises errors.CertStorageError: if any file cannot be written

    """
    chain = normalize_chain(chain_pem)
    for path, data in ((cert_paths.cert, cert_pem),
                       (cert_paths.privkey, key_pem),
                       (cert_paths.chain, chain),
                       (cert_paths.fullchain, cert_pem + chain)):
        _write_file(path, data, CERT_MODE)
        logger.info("Saved: %s", path)


class CertificateMetadata(jose.JSONObjectWithFields):
    """Metadata written next to the current generation as ``cert.json``.

    :ivar datetime.datetime created_at: Issuance date and time (UTC).
    :ivar datetime.datetime expires_at: notAfter of the leaf certificate.
    :ivar int renewal_count: Number of renewals of this slot.

    """
    domain: str = jose.field("domain")
    domains: List[str] = jose.field("domains", decoder=list)
    is_wildcard: bool = jose.field("is_wildcard", default=False)
    key_type: str = jose.field("key_type")
    created_at: datetime.datetime = acme_fields.rfc3339("created_at")
    expires_at: datetime.datetime = acme_fields.rfc3339("expires_at")
    issuer: str = jose.field("issuer", omitempty=True)
    serial_number: str = jose.field("serial_number", omitempty=True)
    fingerprint: str = jose.field("fingerprint", omitempty=True)
    acme_server: str = jose.field("acme_server")
    version: str = jose.field("version", default=constants.METADATA_VERSION)
    renewal_count: int = jose.field("renewal_count", default=0)


def save_metadata(cert_paths: CertificatePaths, metadata: CertificateMetadata) -> None:
    """Write metadata as indented JSON with sorted keys.

    :raises errors.CertStorageError: if the file cannot be written

    """
    data = metadata.json_dumps_pretty().encode("utf-8") + b"\n"
    _write_file(cert_paths.info, data, METADATA_MODE)
    logger.debug("Saved metadata to %s", cert_paths.info)


def load_metadata(cert_paths: CertificatePaths) -> Optional[CertificateMetadata]:
    """Read ``cert.json``; returns None if it is missing or unreadable."""
    try:
        with open(cert_paths.info, "r", encoding="utf-8") as f:
            return CertificateMetadata.json_loads(f.read())
    except FileNotFoundError:
        return None
    except (OSError, ValueError, jose.DeserializationError) as error:
        logger.warning("Unable to read certificate metadata %s: %s", cert_paths.info, error)
        return None


def cleanup_archive(archive_dir: str, retention_days: int) -> List[str]:
    """Delete archived files older than ``retention_days``.

    A non-positive ``retention_days`` disables cleanup and a missing
    archive directory is not an error. Failing to delete one file is
    logged and the remaining files are still processed.

    :returns: deleted file paths
    :raises errors.CertStorageError: if the directory cannot be listed

    """
    if retention_days <= 0:
        return []

    cutoff = time.time() - retention_days * 24 * 60 * 60
    try:
        entries = os.listdir(archive_dir)
    except FileNotFoundError:
        return []
    except OSError as error:
        raise errors.CertStorageError(
            "Failed to read archive directory {0}: {1}".format(archive_dir, error))

    removed = []
    for entry in sorted(entries):
        path = os.path.join(archive_dir, entry)
        try:
            st = os.stat(path)
        except OSError:
            continue
        if stat.S_ISDIR(st.st_mode) or st.st_mtime >= cutoff:
            continue
        try:
            os.remove(path)
        except OSError as error:
            logger.warning("Failed to remove old archive file %s: %s", path, error)
            continue
        logger.debug("Removed old archive file %s", path)
        removed.append(path)
    return removed


class CertificateStore:
    """One certificate slot under a storage root.

    :ivar CertificatePaths paths: file layout of the slot

    """
    def __init__(self, cert_paths: CertificatePaths) -> None:
        self.paths = cert_paths

    @classmethod
    def for_domains(cls, root: str, domains: Iterable[str]) -> "CertificateStore":
        """Return the store of the slot a domain list maps to."""
        return cls(paths(root, domains))

    @property
    def name(self) -> str:
        """Slot directory name."""
        return os.path.basename(self.paths.cert_dir)

    def has_certificate(self) -> bool:
        """Is there a current certificate in this slot?"""
        return os.path.exists(self.paths.cert)

    def certificate_info(self) -> Tuple[List[str], datetime.datetime]:
        """Names and expiry of the current certificate.

        :raises errors.Error: if the certificate cannot be read or parsed

        """
        return crypto_util.parse_certificate_info(self.paths.cert)

    def ensure_layout(self) -> None:
        """See `ensure_layout`."""
        ensure_layout(self.paths)

    def archive_current(self) -> List[str]:
        """See `archive_current`."""
        return archive_current(self.paths)

    def save(self, cert_pem: bytes, key_pem: bytes, chain_pem: bytes) -> None:
        """See `save`."""
        save(self.paths, cert_pem, key_pem, chain_pem)

    def save_metadata(self, metadata: CertificateMetadata) -> None:
        """See `save_metadata`."""
        save_metadata(self.paths, metadata)

    def load_metadata(self) -> Optional[CertificateMetadata]:
        """See `load_metadata`."""
        return load_metadata(self.paths)

    def cleanup_archive(self, retention_days: int) -> List[str]:
        """See `cleanup_archive`."""
        return cleanup_archive(self.paths.archive_dir, retention_days)


def list_stores(root: str) -> List[CertificateStore]:
    """Slots under ``root`` that hold a current certificate, sorted by name."""
    try:
        entries = sorted(os.listdir(root))
    except FileNotFoundError:
        return []
    except OSError as error:
        raise errors.CertStorageError(
            "Failed to read certificate directory {0}: {1}".format(root, error))

    stores = []
    for entry in entries:
        if not os.path.isdir(os.path.join(root, entry)):
            continue
        store = CertificateStore(paths_for_slot(root, entry))
        if not store.has_certificate():
            logger.info("Skipping %s: no %s found in %s/", entry,
                        constants.CERT_FILE, constants.CURRENT_DIR)
            continue
        stores.append(store)
    return stores
