"""
Paper-trading wallet used in dry-run mode.

Acts as both the balance source and the swap venue: swaps fill instantly at
the current prices minus a simulated slippage. Balances live in memory and are
handed to ``on_fill`` after every fill so they can outlive the process.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, Iterable, Mapping, Optional

from engine.interfaces import BalanceSource, SwapExecutor
from engine.types import ZERO

logger = logging.getLogger(__name__)


class PaperWallet(BalanceSource, SwapExecutor):
    """In-memory wallet that simulates swap fills."""

    def __init__(self,
                 tokens: Iterable[str],
                 price_provider: Callable[[], Optional[Mapping[str, Decimal]]],
                 starting_balances: Optional[Mapping[str, Decimal]] = None,
                 slippage: Decimal = Decimal("0.005"),
                 on_fill: Optional[Callable[[Dict[str, Decimal]], None]] = None):
        """
        Initialize the paper wallet.

        Args:
            tokens: Tracked token symbols
            price_provider: Returns current prices or None
            starting_balances: Initial holdings (missing tokens start at zero)
            slippage: Fraction lost on every simulated fill
            on_fill: Called with the new balances after every fill
        """
        starting_balances = starting_balances or {}
        self.balances: Dict[str, Decimal] = {
            token: starting_balances.get(token, ZERO) for token in tokens
        }
        self.price_provider = price_provider
        self.slippage = slippage
        self.on_fill = on_fill

    def get_balances(self) -> Dict[str, Optional[Decimal]]:
        return dict(self.balances)

    def swap(self, from_token: str, to_token: str, amount: Decimal) -> bool:
        if from_token not in self.balances or to_token not in self.balances:
            logger.error(f"❌ [PAPER] Unknown token in swap {from_token} → {to_token}")
            return False
        if amount <= 0:
            logger.error(f"❌ [PAPER] Non-positive swap amount {amount}")
            return False
        if amount > self.balances[from_token]:
            logger.error(
                f"❌ [PAPER] Insufficient {from_token}: need {float(amount):.8f}, "
                f"have {float(self.balances[from_token]):.8f}"
            )
            return False

        prices = self.price_provider()
        if not prices or not prices.get(from_token) or not prices.get(to_token):
            logger.error(f"❌ [PAPER] No prices to fill {from_token} → {to_token}")
            return False

        received = amount * prices[from_token] / prices[to_token] * (Decimal("1") - self.slippage)
        self.balances[from_token] -= amount
        self.balances[to_token] += received

        logger.info(
            f"[DRY RUN] Filled {float(amount):.6f} {from_token} → {float(received):.6f} {to_token}"
        )
        if self.on_fill is not None:
            self.on_fill(self.get_balances())
        return True
