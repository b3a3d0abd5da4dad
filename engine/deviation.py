"""
Deviation detection: decide which tokens are far enough from target to trade.
"""

import logging
from decimal import Decimal
from typing import List, Mapping

from .types import ZERO, TradeIntent

logger = logging.getLogger(__name__)


def detect_deviations(
    current_weights: Mapping[str, Decimal],
    target_weights: Mapping[str, Decimal],
    total_value: Decimal,
    threshold: Decimal,
    min_trade_value: Decimal,
) -> List[TradeIntent]:
    """
    Flag tokens whose allocation drifted beyond the threshold.

    A token qualifies only when both tests pass:
    ``|current - target| > threshold`` and
    ``|deviation * total_value| > min_trade_value``.

    Args:
        current_weights: Current weights from the weight calculator
        target_weights: Configured target weights
        total_value: Total portfolio value in USD
        threshold: Deviation threshold as a fraction (e.g. 0.05)
        min_trade_value: Minimum USD value worth trading

    Returns:
        Trade intents in target-weight order
    """
    intents = []

    for token, target_weight in target_weights.items():
        current_weight = current_weights.get(token, ZERO)
        deviation = current_weight - target_weight
        value_diff = deviation * total_value

        logger.debug(f"{token}: diff={float(deviation) * 100:.2f}%, valueDiff=${float(value_diff):.2f}")

        if abs(deviation) <= threshold:
            continue
        if abs(value_diff) <= min_trade_value:
            logger.info(
                f"⚠️ {token} is {float(deviation) * 100:+.2f}% off target but only "
                f"${float(abs(value_diff)):.2f} away, below minimum trade"
            )
            continue

        intents.append(TradeIntent(token=token, deviation=deviation))

    return intents


def needs_rebalance(current_weights: Mapping[str, Decimal],
                    target_weights: Mapping[str, Decimal],
                    threshold: Decimal) -> bool:
    """True if any token is beyond the percentage threshold, ignoring trade size."""
    return any(
        abs(current_weights.get(token, ZERO) - target) > threshold
        for token, target in target_weights.items()
    )
