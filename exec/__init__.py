"""
Execution module public API.

This package holds the collaborators the rebalancing engine talks to: the
Binance price feed, the rate-limited swap manager, the paper-trading wallet
used in dry-run mode, and the Telegram notifier. On-chain balance reads and
order signing are not implemented here; live deployments inject their own
``BalanceSource`` and ``SwapExecutor``.
"""

from .price_feed import BinancePriceSource  # noqa: F401
from .swap_manager import SwapManager  # noqa: F401
from .paper_wallet import PaperWallet  # noqa: F401
from .telegram import TelegramNotifier  # noqa: F401

__all__ = [
    'BinancePriceSource',
    'SwapManager',
    'PaperWallet',
    'TelegramNotifier',
]
