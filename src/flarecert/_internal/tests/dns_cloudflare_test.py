"""Tests for flarecert._internal.dns_cloudflare."""
import sys
import unittest
from unittest import mock

import CloudFlare
import pytest

from flarecert import errors
from flarecert._internal import client
from flarecert._internal import dns_cloudflare
from flarecert._internal.dns_cloudflare import ZoneInfo

API_ERROR = CloudFlare.exceptions.CloudFlareAPIError(1000, '', '')

API_TOKEN = 'an-api-token'

DOMAIN = 'app.sub.example.com'
TOKEN = 'a-token'
KEY_AUTHZ = 'a-token.thumbprint'

EXAMPLE_COM = ZoneInfo('zone-1', 'example.com', 'active')
SUB_EXAMPLE_COM = ZoneInfo('zone-2', 'sub.example.com', 'active')
EXAMPLE_ORG = ZoneInfo('zone-3', 'example.org', 'pending')


class CloudflareClientTest(unittest.TestCase):
    record_name = "_acme-challenge.example.com"
    record_content = "bar"
    record_ttl = 60
    zone_id = 'zone-1'
    record_id = 'record-2'

    def setUp(self):
        self.cloudflare_client = dns_cloudflare.CloudflareClient(API_TOKEN)

        self.cf = mock.MagicMock()
        self.cloudflare_client.cf = self.cf

    def test_verify_token(self):
        self.cloudflare_client.verify_token()
        self.cf.user.tokens.verify.get.assert_called_once_with()

    def test_verify_token_error(self):
        self.cf.user.tokens.verify.get.side_effect = \
            CloudFlare.exceptions.CloudFlareAPIError(9109, '', '')
        with pytest.raises(errors.PluginError, match='valid Cloudflare Token'):
            self.cloudflare_client.verify_token()

    def test_list_zones_by_name(self):
        self.cf.zones.get.return_value = [
            {'id': self.zone_id, 'name': 'example.com', 'status': 'active'}]

        assert self.cloudflare_client.list_zones('example.com') == [
            ZoneInfo(self.zone_id, 'example.com', 'active')]

        params = self.cf.zones.get.call_args[1]['params']
        assert params['name'] == 'example.com'
        assert params['page'] == 1

    def test_list_zones_paginates(self):
        first_page = [{'id': 'z%d' % i, 'name': 'd%d.com' % i, 'status': 'active'}
                      for i in range(dns_cloudflare.ZONES_PER_PAGE)]
        second_page = [{'id': 'last', 'name': 'last.com', 'status': 'pending'}]
        self.cf.zones.get.side_effect = [first_page, second_page]

        found = self.cloudflare_client.list_zones()

        assert len(found) == dns_cloudflare.ZONES_PER_PAGE + 1
        assert found[-1] == ZoneInfo('last', 'last.com', 'pending')
        pages = [c[1]['params']['page'] for c in self.cf.zones.get.call_args_list]
        assert pages == [1, 2]
        assert 'name' not in self.cf.zones.get.call_args[1]['params']

    def test_list_zones_error(self):
        self.cf.zones.get.side_effect = API_ERROR
        with pytest.raises(errors.PluginError):
            self.cloudflare_client.list_zones()

    def test_list_zones_bad_creds(self):
        for code in (6003, 9103, 9109):
            self.cf.zones.get.side_effect = CloudFlare.exceptions.CloudFlareAPIError(code, '', '')
            with pytest.raises(errors.PluginError):
                self.cloudflare_client.list_zones('example.com')

    def test_create_txt_record(self):
        self.cf.zones.dns_records.post.return_value = {'id': self.record_id}

        assert self.cloudflare_client.create_txt_record(
            self.zone_id, self.record_name, self.record_content,
            self.record_ttl) == self.record_id

        self.cf.zones.dns_records.post.assert_called_with(self.zone_id, data=mock.ANY)

        post_data = self.cf.zones.dns_records.post.call_args[1]['data']

        assert 'TXT' == post_data['type']
        assert self.record_name == post_data['name']
        assert self.record_content == post_data['content']
        assert self.record_ttl == post_data['ttl']

    def test_create_txt_record_error(self):
        self.cf.zones.dns_records.post.side_effect = \
            CloudFlare.exceptions.CloudFlareAPIError(1009, '', '')

        with pytest.raises(errors.PluginError, match='Zone:DNS:Edit'):
            self.cloudflare_client.create_txt_record(
                self.zone_id, self.record_name, self.record_content, self.record_ttl)

    def test_delete_record(self):
        self.cloudflare_client.delete_record(self.zone_id, self.record_id)

        expected = [mock.call.zones.dns_records.delete(self.zone_id, self.record_id)]
        assert expected == self.cf.mock_calls

    def test_delete_record_error(self):
        self.cf.zones.dns_records.delete.side_effect = API_ERROR

        with pytest.raises(errors.PluginError):
            self.cloudflare_client.delete_record(self.zone_id, self.record_id)


class ZoneNameGuessesTest(unittest.TestCase):
    def test_guesses(self):
        assert dns_cloudflare.zone_name_guesses('foo.bar.example.com') == [
            'foo.bar.example.com', 'bar.example.com', 'example.com']
        assert dns_cloudflare.zone_name_guesses('example.com') == ['example.com']
        assert dns_cloudflare.zone_name_guesses('localhost') == []


def _zones_by_name(*zones):
    """``list_zones`` side effect serving ``zones`` by exact name."""
    def list_zones(name=None):
        if name is None:
            return list(zones)
        return [z for z in zones if z.name == name]
    return list_zones


class ZoneResolverTest(unittest.TestCase):
    def setUp(self):
        self.client = mock.MagicMock()
        self.display = mock.MagicMock()
        self.resolver = dns_cloudflare.ZoneResolver(self.client, self.display)

    def test_most_specific_zone_wins(self):
        self.client.list_zones.side_effect = _zones_by_name(EXAMPLE_COM, SUB_EXAMPLE_COM)

        assert self.resolver.resolve_zone(DOMAIN) == SUB_EXAMPLE_COM.id

        assert self.client.list_zones.call_args_list == [
            mock.call(name='app.sub.example.com'), mock.call(name='sub.example.com')]
        self.display.menu.assert_not_called()

    def test_wildcard_prefix_ignored(self):
        self.client.list_zones.side_effect = _zones_by_name(EXAMPLE_COM)
        assert self.resolver.resolve_zone('*.example.com') == EXAMPLE_COM.id

    def test_api_error_skips_candidate(self):
        self.client.list_zones.side_effect = [
            errors.PluginError('boom'), [SUB_EXAMPLE_COM]]
        assert self.resolver.resolve_zone(DOMAIN) == SUB_EXAMPLE_COM.id

    def test_fallback_single_match_no_prompt(self):
        # Automatic lookups find nothing; the full listing has one suffix match.
        self.client.list_zones.side_effect = \
            lambda name=None: [] if name else [EXAMPLE_COM, EXAMPLE_ORG]

        assert self.resolver.resolve_zone(DOMAIN) == EXAMPLE_COM.id
        self.display.menu.assert_not_called()

    def test_fallback_menu(self):
        self.client.list_zones.side_effect = \
            lambda name=None: [] if name else [EXAMPLE_COM, EXAMPLE_ORG]
        self.display.menu.return_value = 1

        assert self.resolver.resolve_zone('unrelated.net') == EXAMPLE_ORG.id

        choices = self.display.menu.call_args[0][1]
        assert len(choices) == 2
        assert 'example.org' in choices[1]

    def test_fallback_selection_remembered(self):
        self.client.list_zones.side_effect = \
            lambda name=None: [] if name else [EXAMPLE_COM, EXAMPLE_ORG]
        self.display.menu.return_value = 0

        assert self.resolver.resolve_zone('unrelated.net') == EXAMPLE_COM.id
        assert self.resolver.resolve_zone('unrelated.net') == EXAMPLE_COM.id
        assert self.display.menu.call_count == 1

    def test_fallback_invalid_selection(self):
        self.client.list_zones.side_effect = \
            lambda name=None: [] if name else [EXAMPLE_COM, EXAMPLE_ORG]
        self.display.menu.side_effect = errors.Error('Invalid choice: x')

        with pytest.raises(errors.ZoneResolutionError):
            self.resolver.resolve_zone('unrelated.net')

    def test_fallback_no_zones(self):
        self.client.list_zones.return_value = []
        with pytest.raises(errors.ZoneResolutionError):
            self.resolver.resolve_zone(DOMAIN)

    def test_suffix_must_be_dotted(self):
        # "notexample.com" must not be treated as living in "example.com"
        self.client.list_zones.side_effect = \
            lambda name=None: [] if name else [EXAMPLE_COM, EXAMPLE_ORG]
        self.display.menu.return_value = 0

        self.resolver.resolve_zone('notexample.com')

        assert len(self.display.menu.call_args[0][1]) == 2


class ChallengeProviderTest(unittest.TestCase):
    def setUp(self):
        self.client = mock.MagicMock()
        self.client.create_txt_record.return_value = 'record-1'
        self.resolver = mock.MagicMock()
        self.resolver.resolve_zone.return_value = 'zone-1'
        self.provider = dns_cloudflare.ChallengeProvider(
            self.client, self.resolver, timeout=120, propagation_seconds=30)

    def test_present(self):
        with mock.patch('flarecert._internal.dns_cloudflare.time.sleep') as mock_sleep:
            self.provider.present(DOMAIN, TOKEN, KEY_AUTHZ)

        fqdn, value = client.get_record(DOMAIN, KEY_AUTHZ)
        self.resolver.resolve_zone.assert_called_once_with(DOMAIN)
        self.client.create_txt_record.assert_called_once_with(
            'zone-1', fqdn.rstrip('.'), value, 60)
        mock_sleep.assert_called_once_with(30)
        assert self.provider.pending == {TOKEN: 'record-1'}

    def test_present_error(self):
        self.client.create_txt_record.side_effect = errors.PluginError('nope')
        with pytest.raises(errors.PluginError):
            self.provider.present(DOMAIN, TOKEN, KEY_AUTHZ)
        assert self.provider.pending == {}

    def test_cleanup(self):
        self.provider.present(DOMAIN, TOKEN, KEY_AUTHZ)
        self.resolver.reset_mock()

        self.provider.cleanup(DOMAIN, TOKEN, KEY_AUTHZ)

        self.resolver.resolve_zone.assert_called_once_with(DOMAIN)
        self.client.delete_record.assert_called_once_with('zone-1', 'record-1')
        assert self.provider.pending == {}

    def test_cleanup_unknown_token(self):
        self.provider.cleanup(DOMAIN, 'never-presented', KEY_AUTHZ)

        self.resolver.resolve_zone.assert_not_called()
        assert self.client.mock_calls == []

    def test_cleanup_error(self):
        self.provider.present(DOMAIN, TOKEN, KEY_AUTHZ)
        self.client.delete_record.side_effect = errors.PluginError('nope')

        with pytest.raises(errors.PluginError):
            self.provider.cleanup(DOMAIN, TOKEN, KEY_AUTHZ)

    def test_timeout(self):
        assert self.provider.timeout() == (120, 10)


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
