"""
Exceptions raised by the rebalancing engine and its collaborators.
"""


class ConfigurationError(ValueError):
    """Configuration is invalid. Fatal at startup."""


class DataUnavailableError(RuntimeError):
    """Balances or prices could not be read; the cycle must be skipped."""
