"""
Short-lived price cache with a last-known-price fallback.
"""

import logging
import time
from decimal import Decimal
from typing import Callable, Dict, Iterable, Mapping, Optional

from .interfaces import PriceSource
from .types import is_usable

logger = logging.getLogger(__name__)


class PriceCache:
    """
    Price access for the engine.

    Serves the cached map while it is younger than ``max_age`` seconds,
    otherwise asks the primary source. Fresh prices replace the cache and are
    merged into the last-known store. When the source fails, the last-known
    store is used if it covers every tracked token; otherwise ``None`` tells
    the caller to skip the cycle.
    """

    def __init__(self,
                 source: PriceSource,
                 tokens: Iterable[str],
                 max_age: float = 300,
                 last_known: Optional[Mapping[str, Decimal]] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the price cache.

        Args:
            source: Primary price feed
            tokens: Tokens that must all be priced
            max_age: Cache lifetime in seconds
            last_known: Persisted last-known prices to seed the fallback
            clock: Returns the current time in seconds
        """
        self.source = source
        self.tokens = list(tokens)
        self.max_age = max_age
        self.clock = clock

        self.prices: Dict[str, Decimal] = {}
        self.fetched_at: Optional[float] = None
        self.last_known_prices: Dict[str, Decimal] = dict(last_known or {})
        self.used_fallback = False

    def _is_complete(self, prices: Mapping[str, Decimal]) -> bool:
        return all(is_usable(prices.get(token)) and prices[token] > 0 for token in self.tokens)

    def _is_fresh(self) -> bool:
        return self.fetched_at is not None and (self.clock() - self.fetched_at) < self.max_age

    def invalidate(self) -> None:
        """Force the next call to hit the primary source."""
        self.fetched_at = None

    def get_prices(self) -> Optional[Dict[str, Decimal]]:
        """
        Return a fully populated price map, or None if no trustworthy prices exist.
        """
        if self._is_fresh():
            logger.debug("📦 Using cached prices")
            self.used_fallback = False
            return dict(self.prices)

        try:
            fresh = self.source.get_prices()
            if not self._is_complete(fresh):
                missing = [t for t in self.tokens if not is_usable(fresh.get(t))]
                raise ValueError(f"incomplete price set, missing {missing}")
        except Exception as e:
            logger.warning(f"⚠️ Price fetch failed: {e}")
            return self._fallback()

        self.prices = {token: fresh[token] for token in self.tokens}
        self.fetched_at = self.clock()
        self.last_known_prices.update(self.prices)
        self.used_fallback = False
        return dict(self.prices)

    def _fallback(self) -> Optional[Dict[str, Decimal]]:
        if self.last_known_prices and self._is_complete(self.last_known_prices):
            logger.warning("📦 Using last known prices as fallback")
            self.used_fallback = True
            return {token: self.last_known_prices[token] for token in self.tokens}

        logger.error("❌ No price sources available, skipping this cycle")
        self.used_fallback = False
        return None
