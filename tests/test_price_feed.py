"""
Unit tests for the Binance price feed.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from engine.exceptions import DataUnavailableError
from exec.price_feed import BINANCE_TICKER_URL, BinancePriceSource, normalize_ticker_payload

SYMBOLS = {"cbBTC": "BTCUSDT", "WETH": "ETHUSDT"}


def make_session(payload=None, error=None):
    session = MagicMock()
    response = MagicMock()
    response.json.return_value = payload
    if error is not None:
        session.get.side_effect = error
    session.get.return_value = response
    return session, response


class TestNormalizeTickerPayload:
    """Test the normalize_ticker_payload function."""

    def test_maps_symbols_to_tokens(self):
        payload = [
            {"symbol": "BTCUSDT", "price": "65000.10"},
            {"symbol": "ETHUSDT", "price": "3200.5"},
            {"symbol": "LTCUSDT", "price": "80"},
        ]
        assert normalize_ticker_payload(payload, SYMBOLS) == {
            "cbBTC": Decimal("65000.10"),
            "WETH": Decimal("3200.5"),
        }

    def test_drops_bad_entries(self):
        payload = [
            {"symbol": "BTCUSDT", "price": "not-a-price"},
            {"symbol": "ETHUSDT", "price": "0"},
            "garbage",
        ]
        assert normalize_ticker_payload(payload, SYMBOLS) == {}

    def test_single_ticker_object(self):
        payload = {"symbol": "ETHUSDT", "price": "3000"}
        assert normalize_ticker_payload(payload, SYMBOLS) == {"WETH": Decimal("3000")}

    def test_unexpected_payload(self):
        with pytest.raises(DataUnavailableError):
            normalize_ticker_payload("oops", SYMBOLS)


class TestBinancePriceSource:
    """Test the BinancePriceSource class."""

    def test_get_prices(self):
        session, response = make_session([
            {"symbol": "BTCUSDT", "price": "65000"},
            {"symbol": "ETHUSDT", "price": "3200"},
        ])
        source = BinancePriceSource(SYMBOLS, session=session, timeout=5)

        prices = source.get_prices()

        assert prices == {"cbBTC": Decimal("65000"), "WETH": Decimal("3200")}
        session.get.assert_called_once_with(
            BINANCE_TICKER_URL, headers={"Accept": "application/json"}, timeout=5
        )
        response.raise_for_status.assert_called_once()

    def test_incomplete_response_fails(self):
        session, _ = make_session([{"symbol": "BTCUSDT", "price": "65000"}])
        source = BinancePriceSource(SYMBOLS, session=session)

        with pytest.raises(DataUnavailableError, match="1/2"):
            source.get_prices()

    def test_network_error(self):
        session, _ = make_session(error=requests.ConnectionError("unreachable"))
        source = BinancePriceSource(SYMBOLS, session=session)

        with pytest.raises(DataUnavailableError):
            source.get_prices()

    def test_http_error(self):
        session, response = make_session([])
        response.raise_for_status.side_effect = requests.HTTPError("451")
        source = BinancePriceSource(SYMBOLS, session=session)

        with pytest.raises(DataUnavailableError):
            source.get_prices()

    def test_invalid_json(self):
        session, response = make_session()
        response.json.side_effect = ValueError("no json")
        source = BinancePriceSource(SYMBOLS, session=session)

        with pytest.raises(DataUnavailableError):
            source.get_prices()
