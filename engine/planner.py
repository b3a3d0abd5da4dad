"""
Trade planner for the rebalancing engine.

Turns trade intents into an ordered sequence of two-leg swaps that all route
through one settlement ("base") token: overweight tokens are sold into the
base token first, a base-token shortfall is then covered from the most
overweight tokens, and finally underweight tokens are bought with base.
"""

import logging
from decimal import Decimal
from typing import List, Mapping, Tuple

from .exceptions import DataUnavailableError
from .interfaces import SwapExecutor
from .types import (
    ZERO,
    CycleState,
    RebalanceResult,
    SwapPhase,
    SwapRecord,
    SwapStatus,
    TradeIntent,
    WorkingBalances,
    is_usable,
)

logger = logging.getLogger(__name__)

# Base-token shortfall small enough to leave for the next cycle
BASE_DEFICIT_TOLERANCE = Decimal("1")


class TradePlanner:
    """
    Sell-then-buy rebalancing planner.

    Executes swaps one at a time through a ``SwapExecutor`` and keeps an
    optimistic ``WorkingBalances`` copy so that buy sizing within the same
    pass accounts for base token generated by earlier sells. A failed swap
    never aborts the pass.
    """

    def __init__(self,
                 executor: SwapExecutor,
                 base_token: str = "WETH",
                 assumed_slippage: Decimal = Decimal("0.02"),
                 sell_dust_floor: Decimal = Decimal("0.00001"),
                 buy_dust_floor: Decimal = Decimal("0.0001"),
                 min_trade_value: Decimal = Decimal("5")):
        """
        Initialize the planner.

        Args:
            executor: Swap collaborator (rate limiting is its concern)
            base_token: Settlement token every swap routes through
            assumed_slippage: Haircut applied when crediting base from a sell
            sell_dust_floor: Smallest token quantity worth selling
            buy_dust_floor: Smallest base quantity worth spending
            min_trade_value: Smallest USD sell used to cover a base shortfall
        """
        self.executor = executor
        self.base_token = base_token
        self.assumed_slippage = assumed_slippage
        self.sell_dust_floor = sell_dust_floor
        self.buy_dust_floor = buy_dust_floor
        self.min_trade_value = min_trade_value

    def order_intents(self, intents: List[TradeIntent]) -> Tuple[List[TradeIntent], List[TradeIntent]]:
        """Split intents into sells (largest excess first) and buys (largest deficit first)."""
        sells = sorted((i for i in intents if i.is_sell), key=lambda i: i.deviation, reverse=True)
        buys = sorted((i for i in intents if i.is_buy), key=lambda i: i.deviation)
        return sells, buys

    def execute(self,
                intents: List[TradeIntent],
                state: CycleState,
                target_weights: Mapping[str, Decimal]) -> RebalanceResult:
        """
        Run one rebalancing pass.

        Args:
            intents: Output of the deviation detector
            state: Authoritative balances and prices of this cycle
            target_weights: Configured target weights

        Returns:
            RebalanceResult listing every executed, failed and skipped swap
        """
        working = WorkingBalances(state.balances)
        result = RebalanceResult(intents=list(intents))

        if not intents:
            logger.info("✅ Check complete - no rebalance needed")
            result.working_balances = working.as_dict()
            return result

        base_price = state.prices.get(self.base_token)
        if not is_usable(base_price) or base_price <= 0:
            raise DataUnavailableError(f"No usable price for base token {self.base_token}")

        logger.info(f"🔄 Rebalancing needed: {len(intents)} trades")
        sells, buys = self.order_intents(intents)

        for intent in sells:
            if intent.token == self.base_token:
                # base cannot be sold into itself
                continue
            self._sell_excess(intent, state, target_weights, working, result)

        if any(intent.token == self.base_token for intent in buys):
            self._cover_base_deficit(state, target_weights, working, result)

        for intent in buys:
            if intent.token == self.base_token:
                continue
            self._buy_deficit(intent, state, target_weights, working, result)

        result.working_balances = working.as_dict()
        logger.info(
            f"⚖️ Rebalance pass finished: {len(result.executed)} executed, "
            f"{len(result.failed)} failed, {len(result.skipped)} skipped"
        )
        return result

    def _target_value(self, token: str, state: CycleState, target_weights: Mapping[str, Decimal]) -> Decimal:
        return state.total_value * target_weights.get(token, ZERO)

    def _submit(self, from_token: str, to_token: str, amount: Decimal) -> bool:
        try:
            return bool(self.executor.swap(from_token, to_token, amount))
        except Exception as e:
            logger.error(f"❌ Swap error {from_token} → {to_token}: {e}")
            return False

    def _credit_base(self, value: Decimal, state: CycleState, working: WorkingBalances) -> Decimal:
        received = value / state.prices[self.base_token] * (Decimal("1") - self.assumed_slippage)
        working.credit(self.base_token, received)
        return received

    def _sell_excess(self, intent, state, target_weights, working, result) -> None:
        token = intent.token
        price = state.prices[token]
        logger.info(f"🔄 Processing SELL trade: {token} ({float(intent.deviation) * 100:.1f}% overweight)")

        current_value = working.get(token) * price
        excess_value = current_value - self._target_value(token, state, target_weights)
        sell_amount = excess_value / price

        if sell_amount < self.sell_dust_floor:
            logger.info(f"⚠️ Skipping tiny sell: {float(sell_amount):.8f} {token}")
            result.records.append(SwapRecord(SwapPhase.SELL, token, self.base_token, sell_amount,
                                             excess_value, SwapStatus.SKIPPED, "below sell dust floor"))
            return

        logger.info(f"🔴 SELLING {float(sell_amount):.6f} {token} → {self.base_token} "
                    f"(excess: ${float(excess_value):.2f})")

        if self._submit(token, self.base_token, sell_amount):
            working.debit(token, sell_amount)
            received = self._credit_base(excess_value, state, working)
            logger.info(f"✅ Updated balances: {token} -{float(sell_amount):.6f}, "
                        f"{self.base_token} +{float(received):.6f}")
            status, reason = SwapStatus.EXECUTED, ""
        else:
            logger.error(f"❌ Sell failed, skipping balance update for {token}")
            status, reason = SwapStatus.FAILED, "swap rejected"

        result.records.append(SwapRecord(SwapPhase.SELL, token, self.base_token, sell_amount,
                                         excess_value, status, reason))

    def overweight_candidates(self, state: CycleState, target_weights: Mapping[str, Decimal],
                              working: WorkingBalances) -> List[Tuple[str, Decimal]]:
        """
        Non-base tokens above target weight, largest USD excess first.

        The threshold is not applied here: any positive excess
        may be used to generate base token. Excess is measured on the working
        balances so tokens already sold this pass contribute little or nothing.
        """
        candidates = []
        for token, weight in state.current_weights.items():
            if token == self.base_token:
                continue
            if weight - target_weights.get(token, ZERO) <= 0:
                continue
            price = state.prices.get(token)
            if not is_usable(price) or price <= 0:
                continue
            excess_value = working.get(token) * price - self._target_value(token, state, target_weights)
            candidates.append((token, excess_value))

        candidates.sort(key=lambda c: c[1], reverse=True)
        return candidates

    def _cover_base_deficit(self, state, target_weights, working, result) -> None:
        base = self.base_token
        current_base_value = working.get(base) * state.prices[base]
        needed_value = self._target_value(base, state, target_weights) - current_base_value

        if needed_value <= BASE_DEFICIT_TOLERANCE:
            logger.info(f"✅ {base} shortfall already covered by earlier sells")
            return

        logger.info(f"💡 Need ${float(needed_value):.2f} more {base} value. Selling overweight tokens...")

        remaining = needed_value
        for token, excess_value in self.overweight_candidates(state, target_weights, working):
            if remaining <= BASE_DEFICIT_TOLERANCE:
                break

            sell_value = min(excess_value, remaining)
            if sell_value <= self.min_trade_value:
                logger.info(f"⚠️ Stopping {base} top-up: next excess in {token} is only ${float(sell_value):.2f}")
                break

            price = state.prices[token]
            sell_amount = sell_value / price
            if sell_amount < self.sell_dust_floor:
                logger.info(f"⚠️ Skipping tiny sell: {float(sell_amount):.8f} {token}")
                result.records.append(SwapRecord(SwapPhase.BASE_DEFICIT, token, base, sell_amount,
                                                 sell_value, SwapStatus.SKIPPED, "below sell dust floor"))
                continue

            logger.info(f"🔴 SELLING {float(sell_amount):.6f} {token} → {base} for rebalancing "
                        f"(${float(sell_value):.2f})")

            if self._submit(token, base, sell_amount):
                working.debit(token, sell_amount)
                received = self._credit_base(sell_value, state, working)
                remaining -= sell_value
                logger.info(f"✅ Generated {float(received):.6f} {base}, "
                            f"remaining needed: ${float(remaining):.2f}")
                status, reason = SwapStatus.EXECUTED, ""
            else:
                logger.error(f"❌ Failed to sell {token} for {base}")
                status, reason = SwapStatus.FAILED, "swap rejected"

            result.records.append(SwapRecord(SwapPhase.BASE_DEFICIT, token, base, sell_amount,
                                             sell_value, status, reason))

    def _buy_deficit(self, intent, state, target_weights, working, result) -> None:
        token = intent.token
        base = self.base_token
        logger.info(f"🔄 Processing BUY trade: {token} ({float(abs(intent.deviation)) * 100:.1f}% underweight)")

        current_value = working.get(token) * state.prices[token]
        needed_value = self._target_value(token, state, target_weights) - current_value
        base_amount = needed_value / state.prices[base]

        if base_amount < self.buy_dust_floor:
            logger.info(f"⚠️ Skipping tiny buy: {float(base_amount):.6f} {base} → {token}")
            result.records.append(SwapRecord(SwapPhase.BUY, base, token, base_amount,
                                             needed_value, SwapStatus.SKIPPED, "below buy dust floor"))
            return

        available = working.get(base)
        if available < base_amount:
            logger.warning(f"⚠️ Insufficient {base}: need {float(base_amount):.6f}, have {float(available):.6f}")
            result.records.append(SwapRecord(SwapPhase.BUY, base, token, base_amount,
                                             needed_value, SwapStatus.SKIPPED, f"insufficient {base}"))
            return

        logger.info(f"🟢 BUYING {token} with {float(base_amount):.6f} {base} (needed: ${float(needed_value):.2f})")

        if self._submit(base, token, base_amount):
            working.debit(base, base_amount)
            logger.info(f"✅ Updated {base} balance: -{float(base_amount):.6f} "
                        f"(remaining: {float(working.get(base)):.6f})")
            status, reason = SwapStatus.EXECUTED, ""
        else:
            logger.error(f"❌ Buy failed, skipping balance update for {token}")
            status, reason = SwapStatus.FAILED, "swap rejected"

        result.records.append(SwapRecord(SwapPhase.BUY, base, token, base_amount,
                                         needed_value, status, reason))
