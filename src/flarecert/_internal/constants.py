"""FlareCert constants."""
import logging
from typing import Any
from typing import Dict

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=['.flarecert.ini'],

    verbose_count=0,
    quiet=False,
    noninteractive_mode=False,
    domains=[],
    email=None,
    cloudflare_api_token=None,
    cloudflare_email=None,
    server="https://acme-v02.api.letsencrypt.org/directory",
    staging=False,
    cert_dir="./certs",
    dns_timeout=300,
    propagation_seconds=30,
    key_type="rsa2048",
    force=False,
    archive_retention_days=30,
    renew_days=30,
    renew_all=False,
)
"""Defaults for CLI flags and `.Config` attributes."""

STAGING_URI = "https://acme-staging-v02.api.letsencrypt.org/directory"

KEY_TYPES = ("rsa2048", "rsa4096", "ec256", "ec384")
"""Certificate key algorithms accepted by ``--key-type``."""

CURRENT_DIR = "current"
ARCHIVE_DIR = "archive"
LOGS_DIR = "logs"

CERT_FILE = "cert.pem"
KEY_FILE = "privkey.pem"
CHAIN_FILE = "chain.pem"
FULLCHAIN_FILE = "fullchain.pem"
INFO_FILE = "cert.json"

ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

METADATA_VERSION = "1.0"
"""Schema version tag written into ``cert.json``."""

RENEWAL_WINDOW_DAYS = 30
"""Certificates expiring within this many days are reported as expiring soon."""

DNS_TTL = 60
"""TTL, in seconds, of the challenge TXT record."""

DNS_POLL_INTERVAL = 10
"""Seconds between validation polls, as reported by ``ChallengeProvider.timeout``."""

ACME_CHALLENGE_LABEL = "_acme-challenge"

ACCOUNT_KEY_BITS = 2048

USER_AGENT = "flarecert"

DEFAULT_LOGGING_LEVEL = logging.ERROR
"""Default logging level when no ``-v`` flag is given."""

QUIET_LOGGING_LEVEL = logging.CRITICAL
"""Logging level to use in quiet mode."""
