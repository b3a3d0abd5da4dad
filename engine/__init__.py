"""
Rebalancing decision engine.

Weight calculation, deviation detection, sell-then-buy trade planning through
a settlement token, HODL baseline comparison and price caching.
"""

from .baseline import BaselineSnapshot, BaselineTracker, HodlComparison
from .deviation import detect_deviations, needs_rebalance
from .exceptions import ConfigurationError, DataUnavailableError
from .planner import TradePlanner
from .price_cache import PriceCache
from .types import CycleState, RebalanceResult, SwapRecord, TradeIntent, WorkingBalances
from .weights import build_cycle_state, calculate_current_weights, calculate_portfolio_value

__all__ = [
    'BaselineSnapshot',
    'BaselineTracker',
    'HodlComparison',
    'detect_deviations',
    'needs_rebalance',
    'ConfigurationError',
    'DataUnavailableError',
    'TradePlanner',
    'PriceCache',
    'CycleState',
    'RebalanceResult',
    'SwapRecord',
    'TradeIntent',
    'WorkingBalances',
    'build_cycle_state',
    'calculate_current_weights',
    'calculate_portfolio_value',
]
