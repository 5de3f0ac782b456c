"""FlareCert user-supplied configuration."""
import argparse
import logging
import os
from typing import Any
from typing import List
from typing import Optional

from flarecert import errors
from flarecert._internal import constants

logger = logging.getLogger(__name__)


class Config:
    """Read-only configuration wrapper around :class:`argparse.Namespace`.

    Attributes without a dedicated property are looked up on the
    namespace. Assigning any attribute raises `AttributeError`; build a
    new namespace instead.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid the immutability check defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Config is read-only, cannot set {0}".format(name))

    @property
    def server(self) -> str:
        """ACME Directory Resource URI."""
        if self.namespace.staging:
            return constants.STAGING_URI
        return self.namespace.server

    @property
    def email(self) -> Optional[str]:
        """Email used for ACME account registration."""
        return self.namespace.email

    @property
    def cloudflare_api_token(self) -> Optional[str]:
        """Cloudflare API token with Zone:Read and DNS:Edit permissions."""
        return self.namespace.cloudflare_api_token

    @property
    def cert_dir(self) -> str:
        """Root directory of the certificate slots."""
        return os.path.abspath(os.path.expanduser(self.namespace.cert_dir))

    @property
    def domains(self) -> List[str]:
        """Domains requested on the command line, in order."""
        return list(self.namespace.domains or [])

    @property
    def dns_timeout(self) -> int:
        """Seconds to wait for the CA to validate challenges.

        Values that are not positive integers fall back to the default.

        """
        default = constants.CLI_DEFAULTS["dns_timeout"]
        value = self.namespace.dns_timeout
        try:
            timeout = int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid DNS timeout %r, using %d seconds", value, default)
            return default
        if timeout <= 0:
            logger.warning("Ignoring non-positive DNS timeout %r, using %d seconds",
                           value, default)
            return default
        return timeout

    @property
    def key_type(self) -> str:
        """Type of generated private key."""
        return self.namespace.key_type

    def validate(self, require_acme: bool = True) -> None:
        """Check that the options needed for network commands are present.

        :param bool require_acme: also require an ACME account e-mail

        :raises errors.ConfigurationError: for a missing or invalid option

        """
        if not self.cloudflare_api_token:
            raise errors.ConfigurationError(
                "Cloudflare API token is required. Set CLOUDFLARE_API_TOKEN or "
                "use --cloudflare-api-token.")
        if require_acme and not self.email:
            raise errors.ConfigurationError(
                "ACME email is required. Set ACME_EMAIL or use --email.")
        if self.key_type not in constants.KEY_TYPES:
            raise errors.ConfigurationError(
                "Invalid key type specified: {0}. Use one of [{1}]".format(
                    self.key_type, "|".join(constants.KEY_TYPES)))
