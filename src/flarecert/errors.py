"""FlareCert client errors."""


class Error(Exception):
    """Generic FlareCert client error."""


class ConfigurationError(Error):
    """Configuration sanity error."""


class CertStorageError(Error):
    """Generic `.CertificateStore` error."""


class ZoneResolutionError(Error):
    """Unable to map a domain to a Cloudflare zone."""


class PluginError(Error):
    """Error while talking to the DNS provider."""


class IssuanceError(Error):
    """The ACME server did not issue a certificate."""


# NoninteractiveDisplay error:

class MissingCommandlineFlag(Error):
    """A command line argument was missing in noninteractive usage"""
