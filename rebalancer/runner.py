"""
Main runner module for the basket rebalancing agent.
"""

import argparse
import dataclasses
import logging
import signal
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from engine.baseline import BaselineSnapshot, BaselineTracker, HodlComparison
from engine.deviation import detect_deviations, needs_rebalance
from engine.exceptions import ConfigurationError, DataUnavailableError
from engine.interfaces import BalanceSource, BaselineStore, Notifier
from engine.planner import TradePlanner
from engine.price_cache import PriceCache
from engine.types import CycleState, RebalanceResult, is_usable
from engine.weights import build_cycle_state
from exec.paper_wallet import PaperWallet
from exec.price_feed import BinancePriceSource
from exec.swap_manager import SwapManager
from exec.telegram import TelegramNotifier

from .config import RebalanceConfig, load_config
from .reporting import (
    build_portfolio_frame,
    format_hodl_message,
    format_rebalance_notification,
    format_status_message,
    format_swap_summary,
    render_portfolio_table,
    render_rebalance_table,
)
from .storage import JsonStateStore
from .utils import console, format_currency, format_signed_currency, format_signed_percent, setup_logging

logger = logging.getLogger(__name__)


class CycleStatus(Enum):
    """How a polling cycle ended."""
    SKIPPED = "skipped"
    BALANCED = "balanced"
    REBALANCED = "rebalanced"


@dataclass
class CycleOutcome:
    """Summary of one polling cycle."""

    status: CycleStatus
    state: Optional[CycleState] = None
    result: Optional[RebalanceResult] = None
    comparison: Optional[HodlComparison] = None
    reason: str = ""


class RebalanceAgent:
    """
    Periodic rebalancing agent.

    Owns the collaborators and runs polling cycles one at a time:
    read balances, read prices, detect deviations, plan and execute swaps,
    persist and report. A cycle that cannot read its inputs is skipped;
    nothing but a configuration error stops the agent.
    """

    def __init__(self,
                 config: RebalanceConfig,
                 balance_source: BalanceSource,
                 price_cache: PriceCache,
                 swap_manager: SwapManager,
                 notifier: Notifier,
                 store: BaselineStore):
        self.config = config
        self.balance_source = balance_source
        self.price_cache = price_cache
        self.swap_manager = swap_manager
        self.notifier = notifier
        self.store = store

        self.planner = TradePlanner(
            executor=swap_manager,
            base_token=config.base_token,
            assumed_slippage=config.assumed_slippage,
            sell_dust_floor=config.sell_dust_floor,
            buy_dust_floor=config.buy_dust_floor,
            min_trade_value=config.min_trade_usd,
        )
        self.tracker = BaselineTracker(store.load_baseline())
        self.scheduler: Optional[BlockingScheduler] = None

        logger.info("🚀 Rebalance agent initialized with HODL tracking")

    # ----- inputs -----

    def read_balances(self) -> Dict:
        """Read every tracked balance; any unreadable balance makes the data unavailable."""
        try:
            raw = self.balance_source.get_balances()
        except Exception as e:
            raise DataUnavailableError(f"Balance fetch failed: {e}") from e

        unknown = [token for token in self.config.tokens if not is_usable(raw.get(token))]
        if unknown:
            raise DataUnavailableError(f"Unknown balance for {', '.join(unknown)}")

        return {token: raw[token] for token in self.config.tokens}

    def read_state(self) -> CycleState:
        """Read balances and prices and freeze them into a cycle state."""
        balances = self.read_balances()
        prices = self.price_cache.get_prices()
        if prices is None:
            raise DataUnavailableError("No prices available")
        return build_cycle_state(balances, prices)

    # ----- persistence and notification -----

    def _notify(self, message: str) -> None:
        try:
            self.notifier.notify(message)
        except Exception as e:
            logger.warning(f"📱 Notification failed: {e}")

    def _journal(self, line: str) -> None:
        self.store.append_log(line)

    def persist(self) -> None:
        """
        Save the last-known prices.

        The baseline is written only by ``ensure_baseline`` and ``reset_baseline``.
        """
        if self.price_cache.last_known_prices:
            self.store.save_last_known_prices(self.price_cache.last_known_prices)

    def reload_baseline(self) -> None:
        """Pick up the stored baseline, including one reset by ``--reset-hodl``."""
        snapshot = self.store.load_baseline()
        if snapshot is not None:
            self.tracker.snapshot = snapshot

    def ensure_baseline(self, state: CycleState) -> None:
        """Create the HODL baseline from the first successful read."""
        if self.tracker.has_baseline:
            return
        snapshot = self.tracker.reset(state.balances, state.prices)
        self.store.save_baseline(snapshot)
        self._journal(f"BASELINE created {snapshot.timestamp.isoformat()}")

    # ----- operations -----

    def run_cycle(self) -> CycleOutcome:
        """Run one complete polling cycle."""
        logger.info("🔄 Starting portfolio check")
        self.reload_baseline()

        try:
            state = self.read_state()
        except DataUnavailableError as e:
            logger.warning(f"⏸️ Skipping rebalance: {e}")
            self._journal(f"SKIPPED {e}")
            return CycleOutcome(CycleStatus.SKIPPED, reason=str(e))

        if not self.price_cache.used_fallback:
            self.store.save_last_known_prices(self.price_cache.last_known_prices)

        self.ensure_baseline(state)
        comparison = self.tracker.compare(state.balances, state.prices)
        logger.info(
            f"📊 HODL Status: Rebalanced: {format_currency(comparison.current_value)}, "
            f"HODL: {format_currency(comparison.hodl_value)}, "
            f"Diff: {format_signed_currency(comparison.rebalance_vs_hodl)} "
            f"({format_signed_percent(comparison.rebalance_vs_hodl_pct)})"
        )

        intents = detect_deviations(
            state.current_weights,
            self.config.target_weights,
            state.total_value,
            self.config.deviation_threshold,
            self.config.min_trade_usd,
        )

        if not intents:
            logger.info("✅ Check complete - no rebalance needed")
            self._journal(f"BALANCED total={state.total_value:.2f}")
            return CycleOutcome(CycleStatus.BALANCED, state=state, comparison=comparison)

        console.print(render_portfolio_table(build_portfolio_frame(state, self.config.target_weights)))
        self._notify(format_rebalance_notification(intents, state, comparison))

        result = self.planner.execute(intents, state, self.config.target_weights)

        console.print(render_rebalance_table(result))
        for record in result.records:
            self._journal(
                f"{record.status.value.upper()} {record.phase.value} {record.amount} "
                f"{record.from_token}->{record.to_token} usd={record.value_usd:.2f} {record.reason}".rstrip()
            )

        stats = self.swap_manager.get_execution_stats()
        logger.info(
            f"🎯 Rebalancing complete: {len(result.executed)} successful, {len(result.failed)} failed "
            f"(lifetime acceptance {stats['acceptance_rate'] * 100:.0f}% of {stats['total_swaps']})"
        )
        self.swap_manager.cleanup_old_swaps()
        self.persist()

        summary = format_swap_summary(result)
        try:
            summary = f"{summary}\n\n{self.status_report()}"
        except DataUnavailableError as e:
            logger.warning(f"⚠️ Post-rebalance status unavailable: {e}")
        self._notify(summary)

        return CycleOutcome(CycleStatus.REBALANCED, state=state, result=result, comparison=comparison)

    def status_report(self) -> str:
        """Build the portfolio status report from fresh data."""
        state = self.read_state()
        self.reload_baseline()
        frame = build_portfolio_frame(state, self.config.target_weights)
        comparison = self.tracker.compare(state.balances, state.prices) if self.tracker.has_baseline else None
        rebalance_needed = needs_rebalance(
            state.current_weights, self.config.target_weights, self.config.deviation_threshold
        )
        console.print(render_portfolio_table(frame))
        return format_status_message(frame, comparison, rebalance_needed)

    def hodl_report(self) -> str:
        """Build the HODL vs rebalance comparison from fresh data."""
        state = self.read_state()
        self.reload_baseline()
        self.ensure_baseline(state)
        comparison = self.tracker.compare(state.balances, state.prices)
        return format_hodl_message(comparison, self.tracker.snapshot, state.prices)

    def reset_baseline(self) -> BaselineSnapshot:
        """Replace the HODL baseline with the current balances."""
        balances = self.read_balances()
        prices = self.price_cache.get_prices()
        snapshot = self.tracker.reset(balances, prices)
        self.store.save_baseline(snapshot)
        self._journal(f"BASELINE reset {snapshot.timestamp.isoformat()}")
        self._notify(f"✅ HODL Baseline Reset\nNew baseline set to current balances\n"
                     f"Start Date: {snapshot.timestamp.date().isoformat()}")
        return snapshot

    # ----- lifecycle -----

    def _scheduled_cycle(self) -> None:
        try:
            self.run_cycle()
        except Exception as e:
            logger.exception(f"❌ Loop error: {e}")
            self._notify(f"❌ Rebalance cycle failed: {e}")

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"👋 Received signal {signum}, shutting down gracefully...")
        self.stop()

    def start(self) -> None:
        """Run an initial cycle, then one every ``rebalance_interval_minutes``."""
        interval = self.config.rebalance_interval_minutes

        self.scheduler = BlockingScheduler()
        self.scheduler.add_job(
            func=self._scheduled_cycle,
            trigger=IntervalTrigger(minutes=interval),
            id='rebalance_job',
            name='Portfolio Rebalancing',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        signal.signal(signal.SIGTERM, self._handle_signal)

        logger.info("🚀 Rebalancing agent started")
        logger.info(f"   Interval: {interval} minutes")
        logger.info(f"   Dry run: {self.config.dry_run}")
        logger.info(f"   Next run: {datetime.now() + timedelta(minutes=interval)}")

        baseline_date = self.tracker.snapshot.timestamp.date().isoformat() if self.tracker.has_baseline else "first cycle"
        self._notify(f"🚀 Rebalance Agent Started\n\n🏆 HODL Tracking Enabled\nBaseline: {baseline_date}")

        logger.info("🔄 Running initial rebalance...")
        self._scheduled_cycle()

        try:
            self.scheduler.start()
        except KeyboardInterrupt:
            logger.info("🛑 Rebalancing agent stopped by user")
            self.stop()

    def stop(self) -> None:
        """Stop scheduling after the running cycle and persist state."""
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        self.persist()
        logger.info("⏹️ Rebalance agent stopped")
        self._notify("⏹️ Rebalance agent stopped")


def build_agent(config: RebalanceConfig) -> RebalanceAgent:
    """
    Wire the agent with the bundled collaborators.

    Only paper trading is wired here; live trading needs an on-chain balance
    source and swap executor passed to ``RebalanceAgent`` directly.
    """
    if not config.dry_run:
        raise ConfigurationError(
            "Live trading requires an on-chain balance source and swap executor; "
            "set dry_run: true or construct RebalanceAgent with your own collaborators"
        )

    store = JsonStateStore(config.data_file, config.journal_file)
    price_source = BinancePriceSource({token: config.price_symbols[token] for token in config.tokens})
    price_cache = PriceCache(
        price_source,
        config.token_symbols,
        max_age=config.price_cache_ttl_seconds,
        last_known=store.load_last_known_prices(),
    )
    # a paper wallet resumes from the holdings the last run left behind
    wallet = PaperWallet(
        config.token_symbols,
        price_provider=price_cache.get_prices,
        starting_balances=store.load_paper_balances() or config.paper_balances,
        slippage=config.paper_slippage,
        on_fill=store.save_paper_balances,
    )
    swap_manager = SwapManager(wallet, min_interval=config.swap_delay_seconds)
    notifier = TelegramNotifier(config.telegram_bot_token, config.telegram_chat_ids)

    logger.info(f"📱 Telegram: {'Enabled' if notifier.enabled else 'Disabled'}")

    return RebalanceAgent(config, wallet, price_cache, swap_manager, notifier, store)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Basket Portfolio Rebalancing Agent")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: config.yml)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run rebalancing once and exit (don't start scheduler)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (paper wallet, no real swaps)"
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the portfolio status and exit"
    )
    parser.add_argument(
        "--hodl",
        action="store_true",
        help="Print the HODL comparison and exit"
    )
    parser.add_argument(
        "--reset-hodl",
        action="store_true",
        help="Reset the HODL baseline to the current balances and exit"
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        if args.dry_run:
            config = dataclasses.replace(config, dry_run=True)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]❌ Configuration error: {e}[/red]")
        sys.exit(1)

    setup_logging(config.log_level, config.log_file)

    try:
        if args.validate:
            logger.info("✅ Configuration is valid")
            logger.info(f"  - Tokens: {', '.join(config.tokens)} (base: {config.base_token})")
            logger.info(f"  - Deviation threshold: {config.deviation_threshold * 100}%")
            logger.info(f"  - Min trade: {format_currency(config.min_trade_usd)}")
            logger.info(f"  - Dry run: {config.dry_run}")
            return

        agent = build_agent(config)

        if args.reset_hodl:
            snapshot = agent.reset_baseline()
            console.print(f"✅ HODL baseline reset at {snapshot.timestamp.isoformat()}")
        elif args.status:
            console.print(agent.status_report())
        elif args.hodl:
            console.print(agent.hodl_report())
        elif args.once:
            logger.info("🔄 Running single rebalancing cycle...")
            agent.run_cycle()
            agent.persist()
        else:
            agent.start()

    except KeyboardInterrupt:
        logger.info("🛑 Interrupted by user")
        sys.exit(0)
    except DataUnavailableError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
