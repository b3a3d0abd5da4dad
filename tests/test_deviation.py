"""
Unit tests for deviation detection.
"""

from decimal import Decimal

from engine.deviation import detect_deviations, needs_rebalance

THRESHOLD = Decimal("0.05")
MIN_TRADE = Decimal("5")


class TestDetectDeviations:
    """Test the detect_deviations function."""

    def test_exactly_at_threshold_is_not_flagged(self):
        """A deviation equal to the threshold does not trigger a trade."""
        current = {"A": Decimal("0.25"), "WETH": Decimal("0.75")}
        target = {"A": Decimal("0.20"), "WETH": Decimal("0.80")}
        assert detect_deviations(current, target, Decimal("1000"), THRESHOLD, MIN_TRADE) == []

    def test_just_beyond_threshold_is_flagged(self):
        """A deviation a hair above the threshold triggers a trade."""
        current = {"A": Decimal("0.2500001"), "WETH": Decimal("0.7499999")}
        target = {"A": Decimal("0.20"), "WETH": Decimal("0.80")}
        intents = detect_deviations(current, target, Decimal("1000"), THRESHOLD, MIN_TRADE)

        assert [i.token for i in intents] == ["A", "WETH"]
        assert intents[0].is_sell
        assert intents[1].is_buy
        assert intents[0].deviation == Decimal("0.0500001")

    def test_small_portfolio_is_below_min_trade(self):
        """A large percentage deviation worth less than the minimum trade is ignored."""
        current = {"A": Decimal("0.3"), "WETH": Decimal("0.7")}
        target = {"A": Decimal("0.2"), "WETH": Decimal("0.8")}
        # 10% of $40 is $4
        assert detect_deviations(current, target, Decimal("40"), THRESHOLD, MIN_TRADE) == []

    def test_value_exactly_min_trade_is_not_flagged(self):
        current = {"A": Decimal("0.3"), "WETH": Decimal("0.7")}
        target = {"A": Decimal("0.2"), "WETH": Decimal("0.8")}
        # 10% of $50 is exactly $5
        assert detect_deviations(current, target, Decimal("50"), THRESHOLD, MIN_TRADE) == []

    def test_follows_target_order(self):
        """Intents come out in target-weight order."""
        current = {"A": Decimal("0.1"), "B": Decimal("0.6"), "WETH": Decimal("0.3")}
        target = {"WETH": Decimal("0.3"), "B": Decimal("0.4"), "A": Decimal("0.3")}
        intents = detect_deviations(current, target, Decimal("1000"), THRESHOLD, MIN_TRADE)
        assert [i.token for i in intents] == ["B", "A"]

    def test_zero_total_flags_nothing(self):
        current = {"A": Decimal("0"), "WETH": Decimal("0")}
        target = {"A": Decimal("0.5"), "WETH": Decimal("0.5")}
        assert detect_deviations(current, target, Decimal("0"), THRESHOLD, MIN_TRADE) == []

    def test_missing_current_weight_counts_as_zero(self):
        current = {"WETH": Decimal("1")}
        target = {"A": Decimal("0.5"), "WETH": Decimal("0.5")}
        intents = detect_deviations(current, target, Decimal("1000"), THRESHOLD, MIN_TRADE)
        assert {i.token: i.deviation for i in intents} == {
            "A": Decimal("-0.5"),
            "WETH": Decimal("0.5"),
        }


class TestNeedsRebalance:
    """Test the needs_rebalance function."""

    def test_ignores_trade_size(self):
        current = {"A": Decimal("0.3"), "WETH": Decimal("0.7")}
        target = {"A": Decimal("0.2"), "WETH": Decimal("0.8")}
        assert needs_rebalance(current, target, THRESHOLD) is True

    def test_balanced(self):
        current = {"A": Decimal("0.22"), "WETH": Decimal("0.78")}
        target = {"A": Decimal("0.2"), "WETH": Decimal("0.8")}
        assert needs_rebalance(current, target, THRESHOLD) is False
