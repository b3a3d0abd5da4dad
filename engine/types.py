"""
Value types shared by the rebalancing engine.

Every quantity, price, weight and USD value is a ``Decimal``. Floats coming
from YAML or JSON are converted through ``to_decimal`` so that ``0.1`` stays
``Decimal("0.1")``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to ``Decimal`` without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Cannot convert boolean {value!r} to Decimal")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def is_usable(value: Optional[Decimal]) -> bool:
    """True when ``value`` is a finite Decimal."""
    return isinstance(value, Decimal) and value.is_finite()


@dataclass(frozen=True)
class TradeIntent:
    """A token flagged by the deviation detector.

    ``deviation`` is current weight minus target weight: positive means the
    token is overweight and should be sold, negative means it should be bought.
    """

    token: str
    deviation: Decimal

    @property
    def is_sell(self) -> bool:
        return self.deviation > 0

    @property
    def is_buy(self) -> bool:
        return self.deviation < 0


@dataclass(frozen=True)
class CycleState:
    """Authoritative snapshot of one polling cycle.

    Built once per cycle from freshly read balances and prices and passed
    explicitly to every component. Never mutated.
    """

    balances: Mapping[str, Decimal]
    prices: Mapping[str, Decimal]
    total_value: Decimal
    current_weights: Mapping[str, Decimal]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def value_of(self, token: str) -> Decimal:
        """USD value held in ``token`` at the cycle prices."""
        balance = self.balances.get(token)
        price = self.prices.get(token)
        if not (is_usable(balance) and is_usable(price)):
            return ZERO
        return balance * price


class WorkingBalances:
    """Optimistic per-pass copy of the balance map.

    The planner debits and credits this copy after each submitted swap so that
    later sizing decisions in the same pass see the expected effect. It is
    thrown away at the end of the pass; the next cycle re-reads balances.
    """

    def __init__(self, balances: Mapping[str, Decimal]):
        self._balances: Dict[str, Decimal] = {
            token: (amount if is_usable(amount) else ZERO)
            for token, amount in balances.items()
        }

    def get(self, token: str) -> Decimal:
        return self._balances.get(token, ZERO)

    def debit(self, token: str, amount: Decimal) -> None:
        self._balances[token] = self.get(token) - amount

    def credit(self, token: str, amount: Decimal) -> None:
        self._balances[token] = self.get(token) + amount

    def as_dict(self) -> Dict[str, Decimal]:
        return dict(self._balances)


class SwapPhase(Enum):
    """Planner phase that produced a swap record."""
    SELL = "sell"
    BASE_DEFICIT = "base_deficit"
    BUY = "buy"


class SwapStatus(Enum):
    """Outcome of a planned swap."""
    EXECUTED = "executed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SwapRecord:
    """One planned swap and what happened to it."""

    phase: SwapPhase
    from_token: str
    to_token: str
    amount: Decimal
    value_usd: Decimal
    status: SwapStatus
    reason: str = ""


@dataclass
class RebalanceResult:
    """Everything a planner pass did, in submission order."""

    intents: List[TradeIntent] = field(default_factory=list)
    records: List[SwapRecord] = field(default_factory=list)
    working_balances: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def rebalance_needed(self) -> bool:
        return bool(self.intents)

    @property
    def executed(self) -> List[SwapRecord]:
        return [r for r in self.records if r.status is SwapStatus.EXECUTED]

    @property
    def failed(self) -> List[SwapRecord]:
        return [r for r in self.records if r.status is SwapStatus.FAILED]

    @property
    def skipped(self) -> List[SwapRecord]:
        return [r for r in self.records if r.status is SwapStatus.SKIPPED]

    @property
    def attempted(self) -> List[SwapRecord]:
        return [r for r in self.records if r.status is not SwapStatus.SKIPPED]
