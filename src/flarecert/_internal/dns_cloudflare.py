"""DNS-01 challenge records through the Cloudflare API."""
import logging
import time
from typing import Any
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple

import CloudFlare

from flarecert import errors
from flarecert._internal import client as acme_client
from flarecert._internal import constants
from flarecert._internal.display import obj as display_obj

logger = logging.getLogger(__name__)

ACCOUNT_URL = 'https://dash.cloudflare.com/?to=/:account/profile/api-tokens'

ZONES_PER_PAGE = 50


class ZoneInfo(NamedTuple):
    """A Cloudflare zone as listed by the API."""
    id: str
    name: str
    status: str

    def is_active(self) -> bool:
        """Only active zones accept record changes."""
        return self.status == "active"


def _api_error_hint(code: int) -> Optional[str]:
    if code == 1009:
        return 'Does your API token have "Zone:DNS:Edit" permissions?'
    if code == 6003:
        return ('Did you copy your entire API token? To use Cloudflare tokens, '
                'you\'ll need the python package cloudflare>=2.3.1.')
    if code == 9103:
        return 'Did you enter the correct email address and Global key?'
    if code == 9109:
        return 'Did you enter a valid Cloudflare Token? (see {0})'.format(ACCOUNT_URL)
    return None


def _plugin_error(action: str, e: CloudFlare.exceptions.CloudFlareAPIError) -> errors.PluginError:
    hint = _api_error_hint(int(e))
    return errors.PluginError('Error {0}: {1} {2}{3}'.format(
        action, int(e), e, ' ({0})'.format(hint) if hint else ''))


class CloudflareClient:
    """
    Encapsulates all communication with the Cloudflare API.
    """

    def __init__(self, api_token: str) -> None:
        self.cf = CloudFlare.CloudFlare(token=api_token)

    def verify_token(self) -> None:
        """Check that the API token is accepted.

        :raises flarecert.errors.PluginError: if Cloudflare rejects the token
        """
        try:
            self.cf.user.tokens.verify.get()  # user | pylint: disable=no-member
        except CloudFlare.exceptions.CloudFlareAPIError as e:
            logger.error('Encountered CloudFlareAPIError verifying API token: %d %s', e, e)
            raise _plugin_error('verifying the Cloudflare API token', e)
        logger.info('Cloudflare API client initialized successfully')

    def list_zones(self, name: Optional[str] = None) -> List[ZoneInfo]:
        """
        List zones visible to the token.

        :param str name: only return the zone with exactly this name
        :returns: the zones, in API order
        :rtype: `list` of `ZoneInfo`
        :raises flarecert.errors.PluginError: if an error occurs communicating with the
            Cloudflare API
        """
        zones: List[ZoneInfo] = []
        page = 1
        while True:
            params: Dict[str, Any] = {'page': page, 'per_page': ZONES_PER_PAGE}
            if name is not None:
                params['name'] = name
            try:
                result = self.cf.zones.get(params=params)  # zones | pylint: disable=no-member
            except CloudFlare.exceptions.CloudFlareAPIError as e:
                logger.debug('Encountered CloudFlareAPIError listing zones: %d %s', e, e)
                raise _plugin_error('listing Cloudflare zones', e)

            zones.extend(ZoneInfo(id=z['id'], name=z['name'], status=z.get('status', ''))
                         for z in result)
            if len(result) < ZONES_PER_PAGE:
                return zones
            page += 1

    def create_txt_record(self, zone_id: str, record_name: str, record_content: str,
                          record_ttl: int) -> str:
        """
        Add a TXT record using the supplied information.

        :param str zone_id: The zone to create the record in.
        :param str record_name: The record name (typically beginning with '_acme-challenge.').
        :param str record_content: The record content (typically the challenge validation).
        :param int record_ttl: The record TTL (number of seconds that the record may be cached).
        :returns: the record identifier assigned by Cloudflare
        :raises flarecert.errors.PluginError: if an error occurs communicating with the
            Cloudflare API
        """
        data = {'type': 'TXT',
                'name': record_name,
                'content': record_content,
                'ttl': record_ttl}

        try:
            logger.debug('Attempting to add record to zone %s: %s', zone_id, data)
            record = self.cf.zones.dns_records.post(zone_id, data=data)  # zones | pylint: disable=no-member
        except CloudFlare.exceptions.CloudFlareAPIError as e:
            logger.error('Encountered CloudFlareAPIError adding TXT record: %d %s', e, e)
            raise _plugin_error('communicating with the Cloudflare API', e)

        record_id = record['id']
        logger.debug('Successfully added TXT record with record_id: %s', record_id)
        return record_id

    def delete_record(self, zone_id: str, record_id: str) -> None:
        """
        Delete a record by identifier.

        :param str zone_id: The zone which contains the record.
        :param str record_id: The identifier returned by `create_txt_record`.
        :raises flarecert.errors.PluginError: if an error occurs communicating with the
            Cloudflare API
        """
        try:
            self.cf.zones.dns_records.delete(zone_id, record_id)  # zones | pylint: disable=no-member
        except CloudFlare.exceptions.CloudFlareAPIError as e:
            logger.error('Encountered CloudFlareAPIError deleting TXT record: %d %s', e, e)
            raise _plugin_error('deleting the DNS record', e)
        logger.debug('Successfully deleted TXT record %s.', record_id)


def zone_name_guesses(domain: str) -> List[str]:
    """Return a list of progressively less-specific domain names.

    The full domain comes first and the registrable root (the last two
    labels) last; a single label yields no guesses.

    >>> zone_name_guesses('foo.bar.baz.example.com')
    ['foo.bar.baz.example.com', 'bar.baz.example.com', 'baz.example.com', 'example.com']

    :param str domain: The domain for which to return guesses.
    :returns: The a list of less specific domain names.
    :rtype: list

    """
    labels = domain.split('.')
    return ['.'.join(labels[i:]) for i in range(len(labels) - 1)]


class ZoneResolver:
    """Maps a domain name to the identifier of the Cloudflare zone hosting it.

    Interactive selections are remembered per domain so that cleaning up a
    record does not ask the same question twice.

    """

    def __init__(self, cf_client: CloudflareClient, display: display_obj.Display) -> None:
        self.client = cf_client
        self.display = display
        self._selected: Dict[str, str] = {}

    def resolve_zone(self, domain: str) -> str:
        """Return the zone id for ``domain``.

        :raises flarecert.errors.ZoneResolutionError: if no zone can be determined
        """
        domain = domain.lower()
        if domain.startswith('*.'):
            domain = domain[2:]
        try:
            return self._resolve_automatic(domain)
        except errors.ZoneResolutionError as error:
            logger.warning('Automatic zone detection failed: %s', error)
            logger.info('Switching to interactive zone selection...')

        if domain not in self._selected:
            self._selected[domain] = self.select_zone_interactive(domain)
        return self._selected[domain]

    def _resolve_automatic(self, domain: str) -> str:
        guesses = zone_name_guesses(domain)
        if not guesses:
            raise errors.ZoneResolutionError('Invalid domain: {0}'.format(domain))

        for zone_name in guesses:
            try:
                zones = self.client.list_zones(name=zone_name)
            except errors.PluginError as e:
                logger.debug('Error while looking up zone %s: %s. '
                             'Continuing with next zone guess...', zone_name, e)
                continue

            if zones:
                zone = zones[0]
                logger.info('Found zone automatically: %s (%s)', zone.name, zone.id)
                return zone.id

        raise errors.ZoneResolutionError(
            'No zone found for domain {0} using zone names: {1}'.format(domain, guesses))

    def select_zone_interactive(self, domain: str) -> str:
        """Pick a zone among those visible to the account.

        Zones whose name equals ``domain`` or is a dotted suffix of it are
        preferred; if none qualify every zone is offered. A single candidate
        is selected without asking.

        :raises flarecert.errors.ZoneResolutionError: if there are no zones or the
            selection is invalid
        :raises flarecert.errors.PluginError: if the zones cannot be listed
        """
        zones = self.client.list_zones()
        if not zones:
            raise errors.ZoneResolutionError('No zones found in your Cloudflare account')

        matching = [z for z in zones
                    if domain == z.name or domain.endswith('.' + z.name)]
        if matching:
            zones = matching

        if len(zones) == 1:
            logger.info('Automatically selected zone: %s (%s)', zones[0].name, zones[0].id)
            return zones[0].id

        choices = ['{0} {1} ({2})'.format('*' if z.is_active() else '!', z.name, z.status)
                   for z in zones]
        try:
            index = self.display.menu(
                "Available Cloudflare zones for domain '{0}':".format(domain), choices)
        except errors.Error as error:
            raise errors.ZoneResolutionError(
                'Zone selection for {0} failed: {1}'.format(domain, error))

        selected = zones[index]
        self.display.notification('Selected zone: {0} ({1})'.format(selected.name, selected.id))
        return selected.id


class ChallengeProvider:
    """Creates and removes the TXT records proving control of a domain.

    The token to record table is owned by one instance and is not
    synchronized; do not share an instance between concurrent issuances.

    """

    def __init__(self, cf_client: CloudflareClient, resolver: ZoneResolver,
                 timeout: int = 300,
                 propagation_seconds: int = 30) -> None:
        self.client = cf_client
        self.resolver = resolver
        self._timeout = timeout
        self.propagation_seconds = propagation_seconds
        self._records: Dict[str, str] = {}

    def present(self, domain: str, token: str, key_authorization: str) -> None:
        """Create the TXT record for a pending DNS-01 challenge.

        Waits ``propagation_seconds`` before returning.

        :raises flarecert.errors.Error: if the zone or record cannot be set up
        """
        fqdn, value = acme_client.get_record(domain, key_authorization)
        logger.info('Creating DNS TXT record: %s = %s', fqdn, value)

        zone_id = self.resolver.resolve_zone(domain)
        record_id = self.client.create_txt_record(
            zone_id, fqdn.rstrip('.'), value, constants.DNS_TTL)
        self._records[token] = record_id

        # Propagation is not checked by resolving the record; wait a fixed delay instead.
        logger.info('DNS record created successfully: %s', record_id)
        logger.info('Waiting %d seconds for DNS propagation...', self.propagation_seconds)
        time.sleep(self.propagation_seconds)

    def cleanup(self, domain: str, token: str, key_authorization: str) -> None:
        """Remove the TXT record created by `present` for ``token``.

        Unknown tokens are ignored without contacting Cloudflare.

        :raises flarecert.errors.Error: if the record cannot be deleted
        """
        # pylint: disable=unused-argument
        record_id = self._records.get(token)
        if record_id is None:
            logger.debug('No record ID found for token %s, skipping cleanup', token)
            return

        logger.info('Cleaning up DNS record: %s', record_id)
        zone_id = self.resolver.resolve_zone(domain)
        self.client.delete_record(zone_id, record_id)
        del self._records[token]

    def timeout(self) -> Tuple[int, int]:
        """Maximum seconds to wait for validation and the poll interval."""
        return self._timeout, constants.DNS_POLL_INTERVAL

    @property
    def pending(self) -> Dict[str, str]:
        """Tokens with a record that has not been cleaned up yet."""
        return dict(self._records)
