"""
Collaborator interfaces consumed by the rebalancing engine.

Network access, wallets, chat delivery and file I/O live behind these
abstract classes so the engine only ever sees normalized Decimal maps.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional


class BalanceSource(ABC):
    """Source of current token holdings."""

    @abstractmethod
    def get_balances(self) -> Dict[str, Optional[Decimal]]:
        """
        Read the current balance of every tracked token.

        Returns:
            Dict mapping token to quantity held. A token whose balance could
            not be read maps to ``None`` rather than zero.
        """
        pass


class PriceSource(ABC):
    """Primary USD price feed."""

    @abstractmethod
    def get_prices(self) -> Dict[str, Decimal]:
        """
        Fetch current USD prices for every tracked token.

        Raises:
            DataUnavailableError: if the feed fails or is incomplete
        """
        pass


class SwapExecutor(ABC):
    """Submits a single swap to the settlement venue."""

    @abstractmethod
    def swap(self, from_token: str, to_token: str, amount: Decimal) -> bool:
        """
        Swap ``amount`` of ``from_token`` into ``to_token``.

        Returns:
            True if the swap was accepted, False otherwise
        """
        pass


class Notifier(ABC):
    """Fire-and-forget status messages."""

    @abstractmethod
    def notify(self, message: str) -> None:
        """Deliver ``message``. Must not raise."""
        pass


class BaselineStore(ABC):
    """Durable storage for the HODL baseline, price memory and event journal."""

    @abstractmethod
    def load_baseline(self):
        """Return the saved ``BaselineSnapshot`` or None."""
        pass

    @abstractmethod
    def save_baseline(self, snapshot) -> None:
        pass

    @abstractmethod
    def load_last_known_prices(self) -> Dict[str, Decimal]:
        pass

    @abstractmethod
    def save_last_known_prices(self, prices: Dict[str, Decimal]) -> None:
        pass

    @abstractmethod
    def append_log(self, line: str) -> None:
        pass
