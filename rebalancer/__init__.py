"""
Basket rebalancing agent: configuration, persistence, reporting and the
scheduled runner that drives the decision engine.
"""

__version__ = "1.0.0"

from .config import RebalanceConfig, load_config, validate_config  # noqa: F401
from .runner import CycleOutcome, CycleStatus, RebalanceAgent, build_agent  # noqa: F401
from .storage import JsonStateStore  # noqa: F401

__all__ = [
    'RebalanceConfig',
    'load_config',
    'validate_config',
    'CycleOutcome',
    'CycleStatus',
    'RebalanceAgent',
    'build_agent',
    'JsonStateStore',
]
