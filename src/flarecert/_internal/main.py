"""FlareCert main entry point."""
import logging
import sys
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

import flarecert
from flarecert import errors
from flarecert._internal import cert_manager
from flarecert._internal import cli
from flarecert._internal import client
from flarecert._internal import configuration
from flarecert._internal import dns_cloudflare
from flarecert._internal import log
from flarecert._internal import renewal
from flarecert._internal.display import obj as display_obj
from flarecert._internal.display import util as display_util

logger = logging.getLogger(__name__)


def make_displayer(config: configuration.Config) -> display_obj.Display:
    """Creates a display object appropriate to the flags in the supplied config.

    :param config: Configuration object

    :returns: Display object

    """
    if config.noninteractive_mode:
        return display_obj.NoninteractiveDisplay(sys.stdout)
    return display_obj.FileDisplay(sys.stdout, sys.stdin)


def make_challenge_provider(config: configuration.Config,
                            displayer: display_obj.Display
                            ) -> dns_cloudflare.ChallengeProvider:
    """Build a provider whose Cloudflare credentials have been verified.

    :raises errors.PluginError: if Cloudflare rejects the API token

    """
    cf_client = dns_cloudflare.CloudflareClient(config.cloudflare_api_token)
    cf_client.verify_token()
    resolver = dns_cloudflare.ZoneResolver(cf_client, displayer)
    return dns_cloudflare.ChallengeProvider(
        cf_client, resolver, config.dns_timeout, config.propagation_seconds)


def make_manager(config: configuration.Config,
                 displayer: display_obj.Display) -> cert_manager.Manager:
    """Wire a certificate manager to a new ACME client and provider."""
    provider = make_challenge_provider(config, displayer)
    acme = client.Client(config, provider)
    return cert_manager.Manager(config, displayer, acme)


def certonly(config: configuration.Config, displayer: display_obj.Display) -> int:
    """Obtain or renew a certificate for the requested domains.

    :returns: exit status
    :rtype: int

    """
    config.validate()
    if not config.domains:
        raise errors.ConfigurationError(
            "At least one domain is required. Use -d example.com")

    manager = make_manager(config, displayer)
    manager.generate_certificate(config.domains)
    return 0


def certificates(config: configuration.Config, displayer: display_obj.Display) -> int:
    """Display information about stored certificates.

    :returns: exit status
    :rtype: int

    """
    infos = cert_manager.certificates(config.cert_dir)
    cert_manager.describe_certificates(displayer, config.cert_dir, infos)
    return 0


def renew(config: configuration.Config, displayer: display_obj.Display) -> int:
    """Renew stored certificates that are due.

    :returns: 1 if any certificate failed to renew, otherwise 0
    :rtype: int

    """
    config.validate()
    candidates = renewal.find_certificates_for_renewal(
        config.cert_dir, config.renew_days, config.renew_all)
    if not candidates:
        displayer.notification("No certificates need renewal.")
        return 0

    displayer.notification("Found {0} certificate(s) to renew: {1}".format(
        len(candidates), ", ".join(c.store.name for c in candidates)))
    manager = make_manager(config, displayer)
    results = renewal.renew_all(manager, candidates)
    renewal.describe_results(displayer, results)
    if results.failures:
        logger.error("%d renew failure(s)", len(results.failures))
        return 1
    return 0


def zones(config: configuration.Config, displayer: display_obj.Display) -> int:
    """List the Cloudflare zones visible to the API token.

    :returns: exit status
    :rtype: int

    """
    config.validate(require_acme=False)
    cf_client = dns_cloudflare.CloudflareClient(config.cloudflare_api_token)
    found = cf_client.list_zones()
    if not found:
        displayer.notification("No zones found in your Cloudflare account.")
        return 0

    rows = [(zone.status, zone.name, zone.id) for zone in found]
    lines = display_util.format_table(("STATUS", "ZONE NAME", "ZONE ID"), rows)
    displayer.notification("\n".join(lines), wrap=False)
    return 0


VERBS: Dict[str, Callable[[configuration.Config, display_obj.Display], int]] = {
    "cert": certonly,
    "list": certificates,
    "renew": renew,
    "zones": zones,
}


def main(cli_args: Optional[List[str]] = None) -> int:
    """Run FlareCert.

    :param cli_args: command line to FlareCert, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of FlareCert
    :rtype: int

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    try:
        # note: arg parser internally handles --help (and exits afterwards)
        config = cli.prepare_and_parse_args(cli_args)
    except errors.Error as error:
        return log.exit_with_error(error)

    log.setup_logging(config)
    logger.debug("flarecert version: %s", flarecert.__version__)
    # do not log `config`, as it contains the Cloudflare API token
    logger.debug("Command: %s", config.verb)

    displayer = make_displayer(config)
    try:
        return VERBS[config.verb](config, displayer)
    except errors.Error as error:
        return log.exit_with_error(error)
