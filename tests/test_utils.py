"""
Unit tests for weight calculation and formatting utilities.
"""

from decimal import Decimal

import pytest

from engine.types import to_decimal
from engine.weights import (
    build_cycle_state,
    calculate_current_weights,
    calculate_portfolio_value,
    position_value,
)
from rebalancer.utils import format_currency, format_signed_currency, format_signed_percent


class TestFormatCurrency:
    """Test the format_currency function."""

    def test_format_usd(self):
        """Test USD formatting."""
        result = format_currency(Decimal("1234.56"))
        assert result == "$1,234.56"

    def test_format_crypto(self):
        """Test non-USD formatting."""
        result = format_currency(Decimal("1.23456789"), "WETH")
        assert result == "1.23456789 WETH"

    def test_format_negative(self):
        """Test negative amounts keep the sign before the dollar sign."""
        result = format_currency(Decimal("-12.5"))
        assert result == "-$12.50"

    def test_format_zero(self):
        """Test zero formatting."""
        result = format_currency(Decimal("0"))
        assert result == "$0.00"

    def test_format_signed(self):
        """Test explicit sign on deltas."""
        assert format_signed_currency(Decimal("3")) == "+$3.00"
        assert format_signed_currency(Decimal("-3")) == "-$3.00"
        assert format_signed_percent(Decimal("1.234")) == "+1.23%"


class TestToDecimal:
    """Test the to_decimal conversion."""

    def test_float_has_no_binary_noise(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string(self):
        assert to_decimal(" 42.5 ") == Decimal("42.5")

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal("abc")

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)


class TestCalculatePortfolioValue:
    """Test the calculate_portfolio_value function."""

    def test_calculate_portfolio_value_basic(self):
        """Test basic portfolio value calculation."""
        balances = {
            "cbBTC": Decimal("1.0"),
            "WETH": Decimal("10.0"),
        }
        prices = {
            "cbBTC": Decimal("50000.0"),
            "WETH": Decimal("3000.0"),
        }
        result = calculate_portfolio_value(balances, prices)
        assert result == Decimal("80000.0")

    def test_calculate_portfolio_value_empty(self):
        """Test with empty portfolio."""
        assert calculate_portfolio_value({}, {}) == Decimal("0")

    def test_calculate_portfolio_value_missing_prices(self):
        """Test that an unpriced token contributes nothing."""
        balances = {
            "cbBTC": Decimal("1.0"),
            "WETH": Decimal("10.0"),
        }
        prices = {
            "cbBTC": Decimal("50000.0"),
            # WETH price missing
        }
        result = calculate_portfolio_value(balances, prices)
        assert result == Decimal("50000.0")

    def test_non_finite_values_contribute_zero(self):
        """Test NaN and infinite inputs are treated as zero."""
        assert position_value(Decimal("NaN"), Decimal("1")) == Decimal("0")
        assert position_value(Decimal("1"), Decimal("Infinity")) == Decimal("0")
        assert position_value(None, Decimal("1")) == Decimal("0")


class TestCalculateCurrentWeights:
    """Test the calculate_current_weights function."""

    def test_calculate_current_weights_basic(self):
        """Test basic weight calculation."""
        balances = {
            "cbBTC": Decimal("1.0"),
            "WETH": Decimal("10.0"),
        }
        prices = {
            "cbBTC": Decimal("50000.0"),
            "WETH": Decimal("3000.0"),
        }
        result = calculate_current_weights(balances, prices)
        expected = {
            "cbBTC": Decimal("0.625"),  # 50000 / 80000
            "WETH": Decimal("0.375"),  # 30000 / 80000
        }
        assert result == expected

    def test_calculate_current_weights_zero_portfolio(self):
        """Test every weight is zero when the portfolio is worth nothing."""
        balances = {"cbBTC": Decimal("0"), "WETH": Decimal("0")}
        prices = {"cbBTC": Decimal("50000"), "WETH": Decimal("3000")}
        result = calculate_current_weights(balances, prices)
        assert result == {"cbBTC": Decimal("0"), "WETH": Decimal("0")}

    def test_calculate_current_weights_missing_prices(self):
        """Test that an unpriced token gets zero weight."""
        balances = {
            "cbBTC": Decimal("1.0"),
            "WETH": Decimal("10.0"),
        }
        prices = {
            "cbBTC": Decimal("50000.0"),
        }
        result = calculate_current_weights(balances, prices)
        assert result == {"cbBTC": Decimal("1"), "WETH": Decimal("0")}

    def test_weights_sum_to_one(self):
        """Test weights of a priced portfolio sum to 1."""
        balances = {"A": Decimal("3"), "B": Decimal("7"), "C": Decimal("11")}
        prices = {"A": Decimal("1.5"), "B": Decimal("2.25"), "C": Decimal("0.3")}
        result = calculate_current_weights(balances, prices)
        assert abs(sum(result.values()) - 1) < Decimal("1e-20")


class TestBuildCycleState:
    """Test the build_cycle_state function."""

    def test_state_is_consistent(self):
        balances = {"A": Decimal("2"), "WETH": Decimal("1")}
        prices = {"A": Decimal("10"), "WETH": Decimal("20")}
        state = build_cycle_state(balances, prices)

        assert state.total_value == Decimal("40")
        assert state.current_weights == {"A": Decimal("0.5"), "WETH": Decimal("0.5")}
        assert state.value_of("A") == Decimal("20")
        assert state.value_of("missing") == Decimal("0")

    def test_state_does_not_alias_inputs(self):
        balances = {"A": Decimal("2")}
        state = build_cycle_state(balances, {"A": Decimal("1")})
        balances["A"] = Decimal("100")
        assert state.balances["A"] == Decimal("2")
