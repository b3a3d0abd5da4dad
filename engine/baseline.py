"""
HODL baseline tracking.

Keeps a frozen snapshot of the balances held when tracking started and
compares the live, rebalanced portfolio against what that untouched snapshot
would be worth at today's prices.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from .types import ZERO, is_usable, to_decimal
from .weights import calculate_portfolio_value, position_value

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BaselineSnapshot:
    """Reference balances, the time they were taken and the prices known then."""

    balances: Dict[str, Decimal]
    timestamp: datetime
    prices: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_balances": {token: str(amount) for token, amount in self.balances.items()},
            "start_date": self.timestamp.isoformat(),
            "baseline_prices": {token: str(price) for token, price in self.prices.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BaselineSnapshot":
        timestamp = datetime.fromisoformat(data["start_date"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            balances={token: to_decimal(v) for token, v in data["initial_balances"].items()},
            timestamp=timestamp,
            prices={token: to_decimal(v) for token, v in (data.get("baseline_prices") or {}).items()},
        )


@dataclass(frozen=True)
class HodlComparison:
    """Result of comparing the live portfolio against the HODL baseline."""

    current_value: Decimal
    hodl_value: Decimal
    initial_value: Decimal
    rebalance_gain: Decimal
    hodl_gain: Decimal
    rebalance_vs_hodl: Decimal
    rebalance_gain_pct: Decimal
    hodl_gain_pct: Decimal
    rebalance_vs_hodl_pct: Decimal
    days_since_start: int
    start_date: datetime

    @property
    def rebalancing_wins(self) -> bool:
        return self.rebalance_vs_hodl > 0


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return ZERO
    return numerator / denominator * HUNDRED


class BaselineTracker:
    """
    HODL comparator.

    The snapshot is replaced only through ``reset`` or by the owner loading
    the persisted one; ``compare`` never changes it.
    """

    def __init__(self,
                 snapshot: Optional[BaselineSnapshot] = None,
                 clock: Callable[[], datetime] = _utcnow):
        """
        Initialize the tracker.

        Args:
            snapshot: Previously persisted baseline, if any
            clock: Returns the current UTC time
        """
        self.snapshot = snapshot
        self.clock = clock

    @property
    def has_baseline(self) -> bool:
        return self.snapshot is not None

    def reset(self,
              balances: Mapping[str, Decimal],
              prices: Optional[Mapping[str, Decimal]] = None) -> BaselineSnapshot:
        """Replace the baseline with ``balances`` taken now."""
        self.snapshot = BaselineSnapshot(
            balances={token: amount for token, amount in balances.items() if is_usable(amount)},
            timestamp=self.clock(),
            prices={token: price for token, price in (prices or {}).items() if is_usable(price)},
        )
        logger.info(f"📌 HODL baseline set at {self.snapshot.timestamp.isoformat()}")
        return self.snapshot

    def compare(self,
                balances: Mapping[str, Decimal],
                prices: Mapping[str, Decimal]) -> HodlComparison:
        """
        Compare current holdings against the baseline at ``prices``.

        Raises:
            RuntimeError: if no baseline has been set
        """
        if self.snapshot is None:
            raise RuntimeError("No HODL baseline set")

        baseline = self.snapshot.balances
        current_value = calculate_portfolio_value(balances, prices)
        hodl_value = calculate_portfolio_value(baseline, prices)

        initial_value = ZERO
        for token in sorted(baseline):
            reference_price = self.snapshot.prices.get(token, prices.get(token))
            initial_value += position_value(baseline[token], reference_price)

        rebalance_gain = current_value - initial_value
        hodl_gain = hodl_value - initial_value
        rebalance_vs_hodl = current_value - hodl_value

        elapsed = (self.clock() - self.snapshot.timestamp).total_seconds()
        days_since_start = max(1, int(elapsed // SECONDS_PER_DAY))

        return HodlComparison(
            current_value=current_value,
            hodl_value=hodl_value,
            initial_value=initial_value,
            rebalance_gain=rebalance_gain,
            hodl_gain=hodl_gain,
            rebalance_vs_hodl=rebalance_vs_hodl,
            rebalance_gain_pct=_percent(rebalance_gain, initial_value),
            hodl_gain_pct=_percent(hodl_gain, initial_value),
            rebalance_vs_hodl_pct=_percent(rebalance_vs_hodl, hodl_value),
            days_since_start=days_since_start,
            start_date=self.snapshot.timestamp,
        )
