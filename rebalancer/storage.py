"""
JSON state persistence for the rebalancing agent.

The state file holds the HODL baseline, the last-known prices and, in dry-run
mode, the paper wallet's holdings. The journal is an append-only text file with
one timestamped line per event. Neither is required for a cycle to succeed:
read and write failures are logged, not raised.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from engine.baseline import BaselineSnapshot
from engine.interfaces import BaselineStore
from engine.types import to_decimal


class JsonStateStore(BaselineStore):
    """File-backed baseline store and event journal."""

    def __init__(self, data_file: str = "rebalance-data.json", journal_file: Optional[str] = None):
        self.data_file = Path(data_file)
        self.journal_file = Path(journal_file) if journal_file else None
        self.logger = logging.getLogger(__name__)

    def _read(self) -> Dict[str, Any]:
        if not self.data_file.exists():
            return {}
        try:
            with self.data_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error(f"❌ Failed to load data: {e}")
            return {}
        if not isinstance(data, dict):
            self.logger.error(f"❌ Ignoring malformed state file {self.data_file}")
            return {}
        return data

    def _write(self, updates: Dict[str, Any]) -> None:
        data = self._read()
        data.update(updates)
        data["last_updated"] = datetime.now(timezone.utc).isoformat()

        try:
            if self.data_file.parent != Path("."):
                self.data_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = self.data_file.with_name(self.data_file.name + ".tmp")
            with tmp_file.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_file, self.data_file)
        except OSError as e:
            self.logger.error(f"❌ Failed to save data: {e}")

    def load_baseline(self) -> Optional[BaselineSnapshot]:
        data = self._read()
        if not data.get("initial_balances") or not data.get("start_date"):
            return None
        try:
            snapshot = BaselineSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error(f"❌ Failed to parse saved baseline: {e}")
            return None
        self.logger.debug(f"📂 Loaded saved data from {data.get('last_updated', 'unknown time')}")
        return snapshot

    def save_baseline(self, snapshot: BaselineSnapshot) -> None:
        self._write(snapshot.to_dict())

    def _load_amounts(self, key: str, label: str) -> Dict[str, Decimal]:
        raw = self._read().get(key) or {}
        amounts = {}
        for token, value in raw.items():
            try:
                amounts[token] = to_decimal(value)
            except (TypeError, ValueError):
                self.logger.warning(f"⚠️ Ignoring unreadable saved {label} for {token}: {value!r}")
        return amounts

    def load_last_known_prices(self) -> Dict[str, Decimal]:
        return self._load_amounts("last_known_prices", "price")

    def save_last_known_prices(self, prices: Dict[str, Decimal]) -> None:
        self._write({"last_known_prices": {token: str(price) for token, price in prices.items()}})

    def load_paper_balances(self) -> Dict[str, Decimal]:
        """Holdings of the paper wallet as of its last fill (empty before any fill)."""
        return self._load_amounts("paper_balances", "paper balance")

    def save_paper_balances(self, balances: Dict[str, Decimal]) -> None:
        self._write({"paper_balances": {token: str(amount) for token, amount in balances.items()}})

    def append_log(self, line: str) -> None:
        if self.journal_file is None:
            return
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            if self.journal_file.parent != Path("."):
                self.journal_file.parent.mkdir(parents=True, exist_ok=True)
            with self.journal_file.open("a", encoding="utf-8") as f:
                f.write(f"[{timestamp}] {line}\n")
        except OSError as e:
            self.logger.warning(f"⚠️ Failed to write to journal: {e}")
