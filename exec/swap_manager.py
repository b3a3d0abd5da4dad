"""
Swap management for the rebalancing agent.

This module wraps the swap venue: it spaces submissions apart for the
rate-limited settlement API, tags every swap with a client id, and keeps a
history and execution statistics for reporting.
"""

import time
import uuid
import logging
from typing import Any, Callable, Dict, List
from decimal import Decimal
from datetime import datetime, timedelta
from enum import Enum

from engine.interfaces import SwapExecutor


class SwapOutcome(Enum):
    """Swap outcome enumeration."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERROR = "error"


def generate_swap_id() -> str:
    """Generate a unique client swap ID using UUID."""
    return uuid.uuid4().hex


class SwapManager(SwapExecutor):
    """
    Rate-limited front for a swap venue.

    Submissions are sequential and at least ``min_interval`` seconds apart.
    Any exception from the venue is logged and reported as a failed swap, so
    callers only ever see True or False.
    """

    def __init__(self,
                 venue: SwapExecutor,
                 min_interval: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize swap manager.

        Args:
            venue: Executor that actually submits swaps
            min_interval: Minimum seconds between consecutive submissions
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.venue = venue
        self.min_interval = min_interval
        self.sleep = sleep
        self.clock = clock

        self.last_submission_time = None
        self.swap_history = []

        self.execution_stats = {
            'total_swaps': 0,
            'accepted_swaps': 0,
            'rejected_swaps': 0,
            'errored_swaps': 0,
        }

        self.logger = logging.getLogger(__name__)

    def _rate_limit(self):
        """Wait until ``min_interval`` has passed since the previous submission."""
        if self.last_submission_time is None:
            return

        time_since_last = self.clock() - self.last_submission_time
        if time_since_last < self.min_interval:
            self.sleep(self.min_interval - time_since_last)

    def swap(self, from_token: str, to_token: str, amount: Decimal) -> bool:
        """
        Submit one swap.

        Args:
            from_token: Token to sell
            to_token: Token to receive
            amount: Quantity of ``from_token`` to sell

        Returns:
            True if the venue accepted the swap
        """
        swap_id = generate_swap_id()

        if from_token == to_token:
            self.logger.warning(f"⚠️ Skipping swap: same token ({from_token})")
            return False

        self._rate_limit()

        try:
            accepted = bool(self.venue.swap(from_token, to_token, amount))
            outcome = SwapOutcome.ACCEPTED if accepted else SwapOutcome.REJECTED
            error = None
        except Exception as e:
            self.logger.error(f"❌ Swap error [{swap_id[:8]}]: {e}")
            accepted = False
            outcome = SwapOutcome.ERROR
            error = str(e)
        finally:
            self.last_submission_time = self.clock()

        self._record(swap_id, from_token, to_token, amount, outcome, error)

        if accepted:
            self.logger.info(f"🔄 Swapped {float(amount):.6f} {from_token} → {to_token} [{swap_id[:8]}]")
        elif outcome is SwapOutcome.REJECTED:
            self.logger.error(f"❌ Swap rejected: {float(amount):.6f} {from_token} → {to_token} [{swap_id[:8]}]")

        return accepted

    def _record(self, swap_id, from_token, to_token, amount, outcome, error):
        self.swap_history.append({
            'swap_id': swap_id,
            'from_token': from_token,
            'to_token': to_token,
            'amount': amount,
            'outcome': outcome.value,
            'error': error,
            'created_at': datetime.now(),
        })

        self.execution_stats['total_swaps'] += 1
        if outcome is SwapOutcome.ACCEPTED:
            self.execution_stats['accepted_swaps'] += 1
        elif outcome is SwapOutcome.REJECTED:
            self.execution_stats['rejected_swaps'] += 1
        else:
            self.execution_stats['errored_swaps'] += 1

    def get_swap_history(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get swap history.

        Args:
            limit: Maximum number of swaps to return

        Returns:
            List of historical swaps, oldest first
        """
        return self.swap_history[-limit:] if limit else list(self.swap_history)

    def get_execution_stats(self) -> Dict[str, Any]:
        """
        Get execution statistics.

        Returns:
            Dictionary with execution statistics
        """
        stats = self.execution_stats.copy()

        if stats['total_swaps'] > 0:
            stats['acceptance_rate'] = stats['accepted_swaps'] / stats['total_swaps']
            stats['rejection_rate'] = stats['rejected_swaps'] / stats['total_swaps']
            stats['error_rate'] = stats['errored_swaps'] / stats['total_swaps']
        else:
            stats['acceptance_rate'] = 0.0
            stats['rejection_rate'] = 0.0
            stats['error_rate'] = 0.0

        return stats

    def cleanup_old_swaps(self, days: int = 7):
        """
        Clean up old swaps from history.

        Args:
            days: Number of days to keep in history
        """
        cutoff_date = datetime.now() - timedelta(days=days)

        self.swap_history = [
            swap for swap in self.swap_history
            if swap['created_at'] > cutoff_date
        ]

        self.logger.debug(f"Cleaned up swaps older than {days} days")
