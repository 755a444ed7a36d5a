"""
Tests for the external rate fetcher. No real HTTP: the requests session is mocked.
"""

from unittest.mock import Mock

import pytest
import requests

from errors import ConfigurationError, ExternalServiceError, InvalidInput
from models import CryptoRate
from repositories import CryptoRateRepository
from services.rates import RateFetcher, refresh_rates, requested_symbols


def _http(payload):
    session = Mock()
    session.get.return_value.json.return_value = payload
    return session


COINAPI_PAYLOAD = {
    'asset_id_base': 'USD',
    'rates': [
        {'asset_id_quote': 'BTC', 'rate': 0.00002},
        {'asset_id_quote': 'ETH', 'rate': 0.0004},
        {'asset_id_quote': 'ZERO', 'rate': 0},
    ],
}


class TestRateFetcher:

    def test_inverts_quotes(self):
        fetcher = RateFetcher('key', session=_http(COINAPI_PAYLOAD))
        rates = fetcher.fetch(['BTC', 'ETH'])
        assert rates['BTC'] == pytest.approx(50000)
        assert rates['ETH'] == pytest.approx(2500)

    def test_calls_api_once_with_key(self):
        http = _http(COINAPI_PAYLOAD)
        RateFetcher('key', base_url='https://example.test/', session=http).fetch(['BTC'])
        http.get.assert_called_once()
        args, kwargs = http.get.call_args
        assert args[0] == 'https://example.test/v1/exchangerate/USD'
        assert kwargs['headers'] == {'X-CoinAPI-Key': 'key'}

    def test_absent_and_zero_symbols_are_skipped(self):
        fetcher = RateFetcher('key', session=_http(COINAPI_PAYLOAD))
        assert set(fetcher.fetch(['BTC', 'XYZ', 'ZERO'])) == {'BTC'}

    def test_missing_key(self):
        http = _http(COINAPI_PAYLOAD)
        with pytest.raises(ConfigurationError):
            RateFetcher(None, session=http).fetch(['BTC'])
        http.get.assert_not_called()

    def test_network_failure(self):
        http = Mock()
        http.get.side_effect = requests.ConnectionError('down')
        with pytest.raises(ExternalServiceError):
            RateFetcher('key', session=http).fetch(['BTC'])

    @pytest.mark.parametrize('payload', [['unexpected'], {'rates': 'none'}, {}])
    def test_unexpected_response_shape(self, payload):
        with pytest.raises(ExternalServiceError, match='Failed to update crypto rates'):
            RateFetcher('key', session=_http(payload)).fetch(['BTC'])

    def test_non_dict_entries_are_skipped(self):
        payload = {'rates': ['junk', None, {'asset_id_quote': 'BTC', 'rate': 0.00002}]}
        rates = RateFetcher('key', session=_http(payload)).fetch(['BTC'])
        assert rates['BTC'] == pytest.approx(50000)

    def test_http_error_status(self):
        http = _http({})
        http.get.return_value.raise_for_status.side_effect = requests.HTTPError('401')
        with pytest.raises(ExternalServiceError):
            RateFetcher('key', session=http).fetch(['BTC'])


class TestRequestedSymbols:

    @pytest.mark.parametrize('symbols', [None, [], 'BTC', {'symbol': 'BTC'}])
    def test_requires_non_empty_list(self, symbols):
        with pytest.raises(InvalidInput, match='Symbol array is required'):
            requested_symbols(symbols)

    def test_rejects_blank_and_non_string(self):
        with pytest.raises(InvalidInput):
            requested_symbols(['BTC', ''])
        with pytest.raises(InvalidInput):
            requested_symbols(['BTC', 5])

    def test_normalizes_and_dedupes(self):
        assert requested_symbols(['btc', 'BTC', ' eth ']) == ['BTC', 'ETH']


class TestRefreshRates:

    def test_upserts_found_symbols_only(self, session):
        repo = CryptoRateRepository(session)
        repo.upsert('XYZ', 1.5)
        fetcher = RateFetcher('key', session=_http(COINAPI_PAYLOAD))
        updated = refresh_rates(['btc', 'xyz'], fetcher, repo)
        assert [r.symbol for r in updated] == ['BTC']
        # A symbol the API no longer lists keeps its stored rate.
        assert repo.get('XYZ').rate == 1.5

    def test_empty_symbols_make_no_external_call(self, session):
        fetcher = Mock()
        with pytest.raises(InvalidInput):
            refresh_rates([], fetcher, CryptoRateRepository(session))
        fetcher.fetch.assert_not_called()

    def test_missing_key_stores_nothing(self, session):
        fetcher = RateFetcher('', session=_http(COINAPI_PAYLOAD))
        with pytest.raises(ConfigurationError):
            refresh_rates(['BTC'], fetcher, CryptoRateRepository(session))
        assert session.query(CryptoRate).count() == 0
