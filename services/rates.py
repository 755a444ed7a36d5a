import logging

import requests

from errors import ConfigurationError, ExternalServiceError, InvalidInput
from repositories import normalize_symbol

logger = logging.getLogger(__name__)

REFERENCE_CURRENCY = 'USD'


class RateFetcher:
    """Client for the CoinAPI exchange-rate endpoint."""

    def __init__(self, api_key, base_url='https://rest.coinapi.io', timeout=10, session=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, symbols):
        """Return {symbol: USD per unit} for the requested symbols the API knows.

        Symbols missing from the response are left out, not reported as errors.
        """
        if not self.api_key:
            raise ConfigurationError('Crypto API key not configured')
        url = f'{self.base_url}/v1/exchangerate/{REFERENCE_CURRENCY}'
        try:
            response = self.session.get(url, headers={'X-CoinAPI-Key': self.api_key}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error('Rate request to %s failed: %s', url, exc)
            raise ExternalServiceError('Failed to update crypto rates') from exc

        entries = payload.get('rates') if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.error('Rate response from %s has no rates list', url)
            raise ExternalServiceError('Failed to update crypto rates')

        quotes = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            code = entry.get('asset_id_quote')
            value = entry.get('rate')
            if code and value is not None:
                try:
                    quotes[str(code).upper()] = float(value)
                except (TypeError, ValueError):
                    continue

        found = {}
        for symbol in symbols:
            quoted = quotes.get(symbol)
            if not quoted:
                continue
            # The API quotes units per USD; we keep USD per unit.
            found[symbol] = 1 / quoted
        return found


def requested_symbols(symbols):
    if not isinstance(symbols, list) or not symbols:
        raise InvalidInput('Symbol array is required')
    if any(not isinstance(s, str) for s in symbols):
        raise InvalidInput('Symbols must be strings')
    unique = []
    for symbol in symbols:
        symbol = normalize_symbol(symbol)
        if symbol not in unique:
            unique.append(symbol)
    return unique


def refresh_rates(symbols, fetcher, repository):
    """Pull current rates for symbols and upsert each one that the API returned."""
    wanted = requested_symbols(symbols)
    found = fetcher.fetch(wanted)
    updated = [repository.upsert(symbol, found[symbol]) for symbol in wanted if symbol in found]
    skipped = [s for s in wanted if s not in found]
    logger.info('Updated %d crypto rates, skipped %s', len(updated), skipped or 'none')
    return updated
