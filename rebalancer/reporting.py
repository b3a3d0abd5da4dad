"""
Portfolio reports: pandas summaries, rich tables and notification text.
"""

from decimal import Decimal
from typing import List, Mapping, Optional

import pandas as pd
from rich.table import Table

from engine.baseline import BaselineSnapshot, HodlComparison
from engine.types import CycleState, RebalanceResult, SwapStatus, TradeIntent

from .utils import format_currency, format_signed_currency, format_signed_percent

# Deviation (percentage points) above which a token is highlighted
HIGHLIGHT_DEVIATION_PCT = 2.0

PORTFOLIO_COLUMNS = ["token", "balance", "price", "value", "current_pct", "target_pct", "deviation_pct"]


def build_portfolio_frame(state: CycleState, target_weights: Mapping[str, Decimal]) -> pd.DataFrame:
    """
    Tabulate the cycle state against the targets.

    Returns:
        DataFrame with one row per token, sorted by current weight descending
    """
    rows = []
    for token in target_weights:
        current_pct = float(state.current_weights.get(token, Decimal("0"))) * 100
        target_pct = float(target_weights[token]) * 100
        rows.append({
            "token": token,
            "balance": float(state.balances.get(token) or 0),
            "price": float(state.prices.get(token) or 0),
            "value": float(state.value_of(token)),
            "current_pct": current_pct,
            "target_pct": target_pct,
            "deviation_pct": current_pct - target_pct,
        })

    frame = pd.DataFrame(rows, columns=PORTFOLIO_COLUMNS)
    return frame.sort_values("current_pct", ascending=False, kind="stable").reset_index(drop=True)


def render_portfolio_table(frame: pd.DataFrame, title: str = "Portfolio Status") -> Table:
    """Render a portfolio frame as a rich table."""
    table = Table(title=title)
    table.add_column("Asset", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Current Weight", justify="right")
    table.add_column("Target Weight", justify="right")
    table.add_column("Difference", justify="right")

    for row in frame.itertuples(index=False):
        deviation = row.deviation_pct
        if abs(deviation) <= HIGHLIGHT_DEVIATION_PCT:
            diff = f"[dim]{deviation:+.2f}%[/dim]"
        elif deviation > 0:
            diff = f"[red]{deviation:+.2f}%[/red]"
        else:
            diff = f"[green]{deviation:+.2f}%[/green]"

        table.add_row(
            row.token,
            f"{row.balance:.6f}",
            f"${row.value:,.2f}",
            f"{row.current_pct:.2f}%",
            f"{row.target_pct:.2f}%",
            diff,
        )

    return table


def render_rebalance_table(result: RebalanceResult) -> Table:
    """Display the swaps of a rebalance pass as a rich table."""
    table = Table(title="Rebalancing Summary")
    table.add_column("Phase", style="cyan")
    table.add_column("Swap")
    table.add_column("Amount", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Status")

    styles = {
        SwapStatus.EXECUTED: "green",
        SwapStatus.FAILED: "red",
        SwapStatus.SKIPPED: "dim",
    }

    for record in result.records:
        style = styles[record.status]
        status = record.status.value.upper()
        if record.reason:
            status = f"{status} ({record.reason})"
        table.add_row(
            record.phase.value,
            f"{record.from_token} → {record.to_token}",
            f"{float(record.amount):.8f}",
            format_currency(record.value_usd),
            f"[{style}]{status}[/{style}]",
        )

    return table


def format_status_message(frame: pd.DataFrame,
                          comparison: Optional[HodlComparison],
                          rebalance_needed: bool) -> str:
    """Plain-text portfolio status for notifications."""
    total = Decimal(str(frame["value"].sum())) if not frame.empty else Decimal("0")
    lines = ["💰 Portfolio Status", f"Total Value: {format_currency(total)}"]

    if comparison is not None:
        lines.append(f"HODL Value: {format_currency(comparison.hodl_value)}")
        lines.append(
            f"Difference: {format_signed_currency(comparison.rebalance_vs_hodl)} "
            f"({format_signed_percent(comparison.rebalance_vs_hodl_pct)})"
        )
    lines.append("")

    for row in frame.itertuples(index=False):
        emoji = "🔵"
        if abs(row.deviation_pct) > HIGHLIGHT_DEVIATION_PCT:
            emoji = "🔴" if row.deviation_pct > 0 else "🟢"
        lines.append(f"{emoji} {row.token}")
        lines.append(f"   Balance: {row.balance:.6f}")
        lines.append(f"   Value: ${row.value:,.2f}")
        lines.append(f"   Current: {row.current_pct:.1f}% | Target: {row.target_pct:.1f}%")
        lines.append(f"   Deviation: {row.deviation_pct:+.1f}%")
        lines.append("")

    lines.append("⚖️ Rebalancing needed" if rebalance_needed else "✅ Portfolio balanced")

    if comparison is not None:
        verdict = "outperforming" if comparison.rebalancing_wins else "underperforming"
        lines.append(f"🏆 Rebalancing {verdict} HODL by {abs(comparison.rebalance_vs_hodl_pct):.2f}%")

    return "\n".join(lines)


def format_hodl_message(comparison: HodlComparison,
                        snapshot: BaselineSnapshot,
                        prices: Mapping[str, Decimal]) -> str:
    """Plain-text HODL vs rebalance report."""
    lines = [
        "🏆 HODL vs Rebalance Comparison",
        f"📅 Since: {comparison.start_date.date().isoformat()} ({comparison.days_since_start} days)",
        "",
        "💰 Current Values:",
        f"Rebalanced: {format_currency(comparison.current_value)}",
        f"HODL: {format_currency(comparison.hodl_value)}",
        f"Initial: {format_currency(comparison.initial_value)}",
        "",
        "📊 Performance vs Initial:",
        f"Rebalanced: {format_signed_currency(comparison.rebalance_gain)} "
        f"({format_signed_percent(comparison.rebalance_gain_pct)})",
        f"HODL: {format_signed_currency(comparison.hodl_gain)} ({format_signed_percent(comparison.hodl_gain_pct)})",
        "",
        "⚖️ Rebalance vs HODL:",
        f"Difference: {format_signed_currency(comparison.rebalance_vs_hodl)}",
        f"Performance: {format_signed_percent(comparison.rebalance_vs_hodl_pct)}",
        "🎉 Rebalancing is winning!" if comparison.rebalancing_wins else "📉 HODL would be better",
        "",
        "📋 Initial HODL Balances:",
    ]

    for token, amount in snapshot.balances.items():
        price = prices.get(token)
        value = amount * price if price is not None else Decimal("0")
        lines.append(f"{token}: {amount:.6f} ({format_currency(value)})")

    return "\n".join(lines)


def format_rebalance_notification(intents: List[TradeIntent],
                                  state: CycleState,
                                  comparison: Optional[HodlComparison]) -> str:
    """Announcement sent before a rebalance pass starts."""
    lines = ["⚖️ Rebalancing Portfolio", f"Total Value: {format_currency(state.total_value)}"]
    if comparison is not None:
        lines.append(f"vs HODL: {format_signed_currency(comparison.rebalance_vs_hodl)}")
    lines.append("")

    for intent in intents:
        action = "🔴 SELL" if intent.is_sell else "🟢 BUY"
        lines.append(f"{action} {intent.token}")
        lines.append(f"   Balance: {state.balances.get(intent.token, Decimal('0')):.6f}")
        lines.append(f"   Value: {format_currency(state.value_of(intent.token))}")
        lines.append(f"   Deviation: {intent.deviation * 100:+.1f}%")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_swap_summary(result: RebalanceResult) -> str:
    """One line per attempted swap plus totals."""
    lines = [
        f"⚖️ Rebalanced portfolio: {len(result.executed)} executed, "
        f"{len(result.failed)} failed, {len(result.skipped)} skipped"
    ]
    for record in result.attempted:
        marker = "✅" if record.status is SwapStatus.EXECUTED else "❌"
        lines.append(
            f"{marker} {float(record.amount):.6f} {record.from_token} → {record.to_token} "
            f"({format_currency(record.value_usd)})"
        )
    return "\n".join(lines)
