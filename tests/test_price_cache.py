"""
Unit tests for the price cache and its fallback store.
"""

from decimal import Decimal
from unittest.mock import Mock

from engine.exceptions import DataUnavailableError
from engine.price_cache import PriceCache

D = Decimal
TOKENS = ["A", "WETH"]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestPriceCache:
    """Test the PriceCache class."""

    def setup_method(self):
        self.source = Mock()
        self.source.get_prices.return_value = {"A": D("2"), "WETH": D("3000")}
        self.clock = FakeClock()

    def make_cache(self, last_known=None):
        return PriceCache(self.source, TOKENS, max_age=300, last_known=last_known, clock=self.clock)

    def test_serves_cached_prices_within_ttl(self):
        cache = self.make_cache()

        first = cache.get_prices()
        self.clock.now += 299
        second = cache.get_prices()

        assert first == second == {"A": D("2"), "WETH": D("3000")}
        assert self.source.get_prices.call_count == 1

    def test_refetches_after_ttl(self):
        cache = self.make_cache()
        cache.get_prices()

        self.source.get_prices.return_value = {"A": D("2.5"), "WETH": D("3100")}
        self.clock.now += 300

        assert cache.get_prices() == {"A": D("2.5"), "WETH": D("3100")}
        assert self.source.get_prices.call_count == 2

    def test_invalidate_forces_fetch(self):
        cache = self.make_cache()
        cache.get_prices()
        cache.invalidate()
        cache.get_prices()
        assert self.source.get_prices.call_count == 2

    def test_fresh_prices_update_last_known(self):
        cache = self.make_cache(last_known={"A": D("1"), "OTHER": D("9")})
        cache.get_prices()

        assert cache.last_known_prices == {"A": D("2"), "WETH": D("3000"), "OTHER": D("9")}
        assert not cache.used_fallback

    def test_falls_back_to_last_known_on_error(self):
        self.source.get_prices.side_effect = DataUnavailableError("timeout")
        cache = self.make_cache(last_known={"A": D("1.9"), "WETH": D("2900")})

        assert cache.get_prices() == {"A": D("1.9"), "WETH": D("2900")}
        assert cache.used_fallback

    def test_partial_fetch_counts_as_failure(self):
        """A fetch missing any token is not accepted, even if some prices came back."""
        self.source.get_prices.return_value = {"A": D("2")}
        cache = self.make_cache(last_known={"A": D("1.9"), "WETH": D("2900")})

        assert cache.get_prices() == {"A": D("1.9"), "WETH": D("2900")}
        assert cache.last_known_prices["A"] == D("1.9")

    def test_non_positive_price_counts_as_missing(self):
        self.source.get_prices.return_value = {"A": D("0"), "WETH": D("3000")}
        cache = self.make_cache()
        assert cache.get_prices() is None

    def test_no_prices_anywhere_returns_none(self):
        self.source.get_prices.side_effect = DataUnavailableError("down")
        cache = self.make_cache()

        assert cache.get_prices() is None
        assert not cache.used_fallback

    def test_incomplete_last_known_is_not_used(self):
        self.source.get_prices.side_effect = DataUnavailableError("down")
        cache = self.make_cache(last_known={"A": D("2")})
        assert cache.get_prices() is None

    def test_failed_fetch_does_not_refresh_cache_age(self):
        cache = self.make_cache()
        cache.get_prices()
        self.clock.now += 301
        self.source.get_prices.side_effect = DataUnavailableError("down")

        cache.get_prices()
        cache.get_prices()

        # each call after expiry retries the source
        assert self.source.get_prices.call_count == 3
