"""FlareCert command line argument & config processing."""
import argparse
import copy
import logging
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence
from typing import Union

import configargparse

from flarecert import __version__
from flarecert._internal import configuration
from flarecert._internal import constants
from flarecert._internal import san

logger = logging.getLogger(__name__)

VERBS = ("cert", "list", "renew", "zones")

SHORT_USAGE = """
  flarecert [COMMAND] [options] [-d DOMAIN] [-d DOMAIN] ...

Obtain and renew TLS certificates for domains hosted on Cloudflare,
validated with DNS-01 challenges.

commands:
  cert           Obtain or renew a certificate for the domains given with -d
  list           Display information about stored certificates
  renew          Renew stored certificates that are close to expiry
  zones          List the Cloudflare zones visible to the API token
"""


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    # Deep copy so mutable defaults are never shared between parses
    return copy.deepcopy(constants.CLI_DEFAULTS[name])


def add_domains(namespace: argparse.Namespace, domains: str) -> List[str]:
    """Registers new domains to be used during the current client run.

    Domains are not added to the list of requested domains if they have
    already been registered.

    :param namespace: parsed command line arguments
    :param str domains: one or more comma separated domains

    :returns: domains after they have been normalized and validated
    :rtype: `list` of `str`

    """
    validated_domains = []
    for domain in domains.split(","):
        if not domain.strip():
            continue
        domain = san.validate_domain(domain)
        validated_domains.append(domain)
        if domain not in namespace.domains:
            namespace.domains.append(domain)

    return validated_domains


class _DomainsAction(argparse.Action):
    """Action class for parsing domains."""

    def __call__(self, parser: argparse.ArgumentParser, namespace: argparse.Namespace,
                 domain: Union[str, Sequence[Any], None],
                 option_string: Optional[str] = None) -> None:
        """Just wrap add_domains in argparseese."""
        add_domains(namespace, str(domain))


def build_parser() -> configargparse.ArgParser:
    """Create the parser for every FlareCert command."""
    parser = configargparse.ArgParser(
        prog="flarecert",
        usage=SHORT_USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=flag_default("config_files"),
        config_arg_help_message="path to config file (default: {0})".format(
            " and ".join(flag_default("config_files"))))

    parser.add_argument("verb", choices=VERBS, metavar="COMMAND",
                        help="one of: {0}".format(", ".join(VERBS)))
    parser.add_argument("--version", action="version",
                        version="%(prog)s {0}".format(__version__))
    parser.add_argument(
        "-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"),
        help="This flag can be used multiple times to incrementally increase "
             "the verbosity of output, e.g. -vv.")
    parser.add_argument(
        "-q", "--quiet", dest="quiet", action="store_true",
        default=flag_default("quiet"),
        help="Only log critical messages. Fatal errors are still reported "
             "on stderr.")
    parser.add_argument(
        "-n", "--non-interactive", "--noninteractive",
        dest="noninteractive_mode", action="store_true",
        default=flag_default("noninteractive_mode"),
        help="Run without ever asking for user input. Confirmations are "
             "answered no and zone selection fails.")

    cloudflare = parser.add_argument_group("cloudflare")
    cloudflare.add_argument(
        "--cloudflare-api-token", env_var="CLOUDFLARE_API_TOKEN",
        default=flag_default("cloudflare_api_token"),
        help="Cloudflare API token with Zone:Read and DNS:Edit permissions.")
    cloudflare.add_argument(
        "--cloudflare-email", env_var="CLOUDFLARE_EMAIL",
        default=flag_default("cloudflare_email"),
        help="Cloudflare account e-mail (informational only).")
    cloudflare.add_argument(
        "--dns-timeout", env_var="DNS_PROPAGATION_TIMEOUT",
        default=flag_default("dns_timeout"),
        help="Seconds to wait for the CA to validate the challenges. "
             "(default: %(default)s)")
    cloudflare.add_argument(
        "--propagation-seconds", type=int,
        default=flag_default("propagation_seconds"),
        help="Seconds to wait after creating a TXT record before asking the "
             "CA to verify it. (default: %(default)s)")

    acme = parser.add_argument_group("acme")
    acme.add_argument(
        "-m", "--email", env_var="ACME_EMAIL", default=flag_default("email"),
        help="Email used for registration with the ACME server.")
    acme.add_argument(
        "--server", env_var="ACME_SERVER", default=flag_default("server"),
        help="ACME Directory Resource URI. (default: %(default)s)")
    acme.add_argument(
        "--staging", "--test-cert", dest="staging", action="store_true",
        default=flag_default("staging"),
        help="Use the Let's Encrypt staging server to obtain test certificates.")
    acme.add_argument(
        "--key-type", choices=constants.KEY_TYPES, default=flag_default("key_type"),
        help="Type of generated private key. (default: %(default)s)")

    storage = parser.add_argument_group("storage")
    storage.add_argument(
        "--cert-dir", env_var="CERT_DIR", default=flag_default("cert_dir"),
        help="Root directory for stored certificates. (default: %(default)s)")
    storage.add_argument(
        "--archive-retention-days", type=int,
        default=flag_default("archive_retention_days"),
        help="Delete archived certificates older than this many days; "
             "0 keeps them forever. (default: %(default)s)")

    cert = parser.add_argument_group("cert")
    cert.add_argument(
        "-d", "--domains", "--domain", dest="domains", metavar="DOMAIN",
        action=_DomainsAction, default=flag_default("domains"),
        help="Domain names to include. For multiple domains you can use "
             "multiple -d flags or enter a comma separated list of domains "
             "as a parameter. The first domain provided will be the primary "
             "domain of the certificate.")
    cert.add_argument(
        "--force", "--force-renewal", dest="force", action="store_true",
        default=flag_default("force"),
        help="Obtain a new certificate without asking, even if the existing "
             "one is still valid or covers other domains.")

    renew = parser.add_argument_group("renew")
    renew.add_argument(
        "--days", dest="renew_days", type=int, default=flag_default("renew_days"),
        help="Renew certificates expiring within this many days. (default: %(default)s)")
    renew.add_argument(
        "--all", dest="renew_all", action="store_true", default=flag_default("renew_all"),
        help="Renew every stored certificate regardless of expiry.")

    # This is the only way to turn off overly verbose config flag documentation
    parser._add_config_file_help = False  # pylint: disable=protected-access
    return parser


def prepare_and_parse_args(args: List[str]) -> configuration.Config:
    """Returns parsed command line arguments.

    :param list args: command line arguments with the program name removed

    :returns: parsed command line arguments
    :rtype: configuration.Config

    """
    parser = build_parser()
    namespace = parser.parse_args(args)
    logger.debug("Parsed command: %s", namespace.verb)
    return configuration.Config(namespace)
