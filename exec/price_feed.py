"""
Binance public ticker price feed.

Normalizes the ticker payload into a ``{token: Decimal}`` map so the engine
never sees raw response shapes.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

import requests

from engine.exceptions import DataUnavailableError
from engine.interfaces import PriceSource

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/price"

DEFAULT_SYMBOL_MAP = {
    "cbBTC": "BTCUSDT",
    "WETH": "ETHUSDT",
    "cbXRP": "XRPUSDT",
    "cbADA": "ADAUSDT",
    "cbDOGE": "DOGEUSDT",
    "AAVE": "AAVEUSDT",
}


def normalize_ticker_payload(payload: Any, symbol_map: Mapping[str, str]) -> Dict[str, Decimal]:
    """
    Convert a Binance ``ticker/price`` payload into token prices.

    Args:
        payload: Decoded JSON; a list of ``{"symbol", "price"}`` objects or a single one
        symbol_map: Token symbol to Binance ticker symbol

    Returns:
        Dict of token to USD price for every recognized, positive entry
    """
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise DataUnavailableError(f"Unexpected ticker payload type: {type(payload).__name__}")

    reverse_map = {ticker: token for token, ticker in symbol_map.items()}
    prices = {}

    for ticker in payload:
        if not isinstance(ticker, dict):
            continue
        token = reverse_map.get(ticker.get("symbol"))
        if not token:
            continue
        try:
            price = Decimal(str(ticker.get("price")))
        except InvalidOperation:
            continue
        if price.is_finite() and price > 0:
            prices[token] = price

    return prices


class BinancePriceSource(PriceSource):
    """
    USD prices from the Binance public REST API.

    One request fetches every ticker; the result must cover every token in the
    symbol map or the fetch counts as failed.
    """

    def __init__(self,
                 symbol_map: Optional[Mapping[str, str]] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = 10.0,
                 url: str = BINANCE_TICKER_URL):
        """
        Initialize the price source.

        Args:
            symbol_map: Token symbol to Binance ticker (defaults to the Base basket)
            session: requests session to reuse
            timeout: Request timeout in seconds
            url: Ticker endpoint
        """
        self.symbol_map = dict(symbol_map or DEFAULT_SYMBOL_MAP)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.url = url
        self.logger = logging.getLogger(__name__)

    def get_prices(self) -> Dict[str, Decimal]:
        self.logger.info("🟡 Binance: Fetching prices")
        try:
            response = self.session.get(self.url, headers={"Accept": "application/json"}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DataUnavailableError(f"Binance fetch failed: {e}") from e

        prices = normalize_ticker_payload(payload, self.symbol_map)
        expected = len(self.symbol_map)

        if len(prices) < expected:
            raise DataUnavailableError(f"Only got {len(prices)}/{expected} prices from Binance")

        self.logger.info(f"✅ Binance: Got {len(prices)}/{expected} prices")
        return prices
