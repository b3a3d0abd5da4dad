"""
Weight calculation for the rebalancing engine.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Mapping, Optional

from .types import ZERO, CycleState, is_usable


def position_value(balance: Optional[Decimal], price: Optional[Decimal]) -> Decimal:
    """USD value of one position; zero when either side is missing or not finite."""
    if not (is_usable(balance) and is_usable(price)):
        return ZERO
    return balance * price


def calculate_portfolio_value(balances: Mapping[str, Decimal], prices: Mapping[str, Decimal]) -> Decimal:
    """Calculate total portfolio value in USD."""
    total_value = ZERO

    # Sorted so that two maps with equal content always produce the same sum
    for token in sorted(balances):
        total_value += position_value(balances[token], prices.get(token))

    return total_value


def calculate_current_weights(balances: Mapping[str, Decimal], prices: Mapping[str, Decimal]) -> Dict[str, Decimal]:
    """
    Calculate the current allocation weight of every token in ``balances``.

    Args:
        balances: Token quantities held
        prices: USD price per token

    Returns:
        Dict mapping each token to value / total value. Every weight is zero
        when the portfolio is worth nothing.
    """
    total_value = calculate_portfolio_value(balances, prices)

    if total_value == 0:
        return {token: ZERO for token in balances}

    return {
        token: position_value(balance, prices.get(token)) / total_value
        for token, balance in balances.items()
    }


def build_cycle_state(balances: Mapping[str, Decimal],
                      prices: Mapping[str, Decimal],
                      timestamp: Optional[datetime] = None) -> CycleState:
    """Freeze freshly read balances and prices into a ``CycleState``."""
    balances = dict(balances)
    prices = dict(prices)
    kwargs = {"timestamp": timestamp} if timestamp is not None else {}
    return CycleState(
        balances=balances,
        prices=prices,
        total_value=calculate_portfolio_value(balances, prices),
        current_weights=calculate_current_weights(balances, prices),
        **kwargs,
    )
