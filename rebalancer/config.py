"""
Configuration for the basket rebalancing agent.

Settings come from ``config.yml`` and can be overridden by environment
variables (a ``.env`` file is loaded first). The result is an immutable
``RebalanceConfig``; any inconsistency raises ``ConfigurationError`` at load
time and is fatal to startup.
"""

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from engine.exceptions import ConfigurationError
from engine.types import to_decimal
from exec.price_feed import DEFAULT_SYMBOL_MAP
from exec.telegram import parse_chat_ids

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_FILE = "config.yml"

# Token addresses on Base
DEFAULT_TOKENS: Dict[str, str] = {
    "cbBTC": "0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf",
    "WETH": "0x4200000000000000000000000000000000000006",
    "cbXRP": "0xcb585250f852C6c6bf90434AB21A00f02833a4af",
    "cbADA": "0xcbADA732173e39521CDBE8bf59a6Dc85A9fc7b8c",
    "cbDOGE": "0xcbD06E5A2B0C65597161de254AA074E489dEb510",
    "AAVE": "0x63706e401c06ac8513145b7687A14804d17f814b",
}

# Target weights must sum to 1 within this tolerance
WEIGHT_SUM_TOLERANCE = Decimal("0.000001")


def load_yaml_config(file_path: str) -> dict:
    """Load YAML configuration from a file safely."""
    try:
        with open(file_path, 'r', encoding='utf-8') as file:
            return yaml.safe_load(file) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file {file_path} not found.")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML file {file_path}: {e}")


@dataclass(frozen=True)
class RebalanceConfig:
    """Validated, immutable agent configuration."""

    tokens: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TOKENS))
    target_weights: Dict[str, Decimal] = field(default_factory=dict)
    deviation_threshold: Decimal = Decimal("0.05")
    min_trade_usd: Decimal = Decimal("5.0")
    base_token: str = "WETH"
    assumed_slippage: Decimal = Decimal("0.02")
    sell_dust_floor: Decimal = Decimal("0.00001")
    buy_dust_floor: Decimal = Decimal("0.0001")
    price_cache_ttl_seconds: float = 300
    swap_delay_seconds: float = 2
    rebalance_interval_minutes: int = 240
    price_symbols: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SYMBOL_MAP))
    paper_balances: Dict[str, Decimal] = field(default_factory=dict)
    paper_slippage: Decimal = Decimal("0.005")
    dry_run: bool = True
    data_file: str = "rebalance-data.json"
    journal_file: str = "logs/rebalance-journal.log"
    log_file: str = "logs/rebalance.log"
    log_level: str = "INFO"
    telegram_bot_token: Optional[str] = None
    telegram_chat_ids: Tuple[str, ...] = ()

    @property
    def token_symbols(self) -> List[str]:
        return list(self.tokens)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _decimal_setting(name: str, value) -> Decimal:
    try:
        number = to_decimal(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number: {e}")
    if not number.is_finite():
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return number


def _decimal_map(name: str, raw: Mapping) -> Dict[str, Decimal]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{name} must be a mapping of token to number")
    return {str(token): _decimal_setting(f"{name}.{token}", value) for token, value in raw.items()}


def equal_weights(tokens: List[str]) -> Dict[str, Decimal]:
    """Equal allocation across ``tokens``; the last token absorbs the rounding remainder."""
    if not tokens:
        return {}
    share = Decimal("1") / Decimal(len(tokens))
    weights = {token: share for token in tokens}
    weights[tokens[-1]] = Decimal("1") - share * (len(tokens) - 1)
    return weights


def load_config(file_path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> RebalanceConfig:
    """
    Build the agent configuration from YAML and environment overrides.

    Args:
        file_path: YAML file; missing default file is allowed, missing explicit file is not
        env: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated RebalanceConfig

    Raises:
        ConfigurationError: if any setting is invalid
    """
    env = os.environ if env is None else env

    if file_path is None:
        file_path = env.get("REBALANCE_CONFIG", DEFAULT_CONFIG_FILE)
        raw = load_yaml_config(file_path) if os.path.exists(file_path) else {}
    else:
        raw = load_yaml_config(file_path)

    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")

    tokens = dict(raw.get("tokens") or DEFAULT_TOKENS)

    if env.get("CUSTOM_WEIGHTS"):
        try:
            raw_weights = json.loads(env["CUSTOM_WEIGHTS"])
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid CUSTOM_WEIGHTS format: {e}")
        target_weights = _decimal_map("CUSTOM_WEIGHTS", raw_weights)
    elif raw.get("target_weights"):
        target_weights = _decimal_map("target_weights", raw["target_weights"])
    else:
        target_weights = equal_weights(list(tokens))

    def setting(key: str, env_key: Optional[str], default):
        if env_key and env.get(env_key):
            return env[env_key]
        return raw.get(key, default)

    defaults = RebalanceConfig()

    try:
        config = RebalanceConfig(
            tokens=tokens,
            target_weights=target_weights,
            deviation_threshold=_decimal_setting(
                "deviation_threshold", setting("deviation_threshold", "DEVIATION_THRESHOLD", defaults.deviation_threshold)),
            min_trade_usd=_decimal_setting(
                "min_trade_usd", setting("min_trade_usd", "MIN_TRADE_USD", defaults.min_trade_usd)),
            base_token=str(raw.get("base_token", defaults.base_token)),
            assumed_slippage=_decimal_setting(
                "assumed_slippage", raw.get("assumed_slippage", defaults.assumed_slippage)),
            sell_dust_floor=_decimal_setting(
                "sell_dust_floor", raw.get("sell_dust_floor", defaults.sell_dust_floor)),
            buy_dust_floor=_decimal_setting(
                "buy_dust_floor", raw.get("buy_dust_floor", defaults.buy_dust_floor)),
            price_cache_ttl_seconds=float(raw.get("price_cache_ttl_seconds", defaults.price_cache_ttl_seconds)),
            swap_delay_seconds=float(raw.get("swap_delay_seconds", defaults.swap_delay_seconds)),
            rebalance_interval_minutes=int(setting(
                "rebalance_interval_minutes", "REBALANCE_INTERVAL_MINUTES", defaults.rebalance_interval_minutes)),
            price_symbols=dict(raw.get("price_symbols") or DEFAULT_SYMBOL_MAP),
            paper_balances=_decimal_map("paper_balances", raw.get("paper_balances") or {}),
            paper_slippage=_decimal_setting("paper_slippage", raw.get("paper_slippage", defaults.paper_slippage)),
            dry_run=_parse_bool(setting("dry_run", "DRY_RUN", defaults.dry_run)),
            data_file=str(setting("data_file", "DATA_FILE", defaults.data_file)),
            journal_file=str(setting("journal_file", "JOURNAL_FILE", defaults.journal_file)),
            log_file=str(setting("log_file", "LOG_FILE", defaults.log_file)),
            log_level=str(setting("log_level", "LOG_LEVEL", defaults.log_level)).upper(),
            telegram_bot_token=env.get("REBALANCE_BOT_TOKEN") or None,
            telegram_chat_ids=tuple(parse_chat_ids(env.get("REBALANCE_CHAT_ID"))),
        )
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}")

    validate_config(config)
    return config


def validate_config(config: RebalanceConfig) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: describing the first problem found
    """
    if not config.tokens:
        raise ConfigurationError("No tokens configured")

    if set(config.target_weights) != set(config.tokens):
        missing = sorted(set(config.tokens) - set(config.target_weights))
        unknown = sorted(set(config.target_weights) - set(config.tokens))
        raise ConfigurationError(
            f"Target weights must cover exactly the configured tokens (missing: {missing}, unknown: {unknown})"
        )

    for token, weight in config.target_weights.items():
        if not weight.is_finite() or weight < 0 or weight > 1:
            raise ConfigurationError(f"Target weight for {token} must be between 0 and 1, got {weight}")

    total = sum(config.target_weights.values(), Decimal("0"))
    if abs(total - 1) > WEIGHT_SUM_TOLERANCE:
        raise ConfigurationError(f"Target weights must sum to 1, got {total}")

    if config.base_token not in config.tokens:
        raise ConfigurationError(f"Base token {config.base_token} is not a tracked token")

    if not (0 < config.deviation_threshold < 1):
        raise ConfigurationError(f"deviation_threshold must be between 0 and 1, got {config.deviation_threshold}")

    if not (0 <= config.assumed_slippage < 1):
        raise ConfigurationError(f"assumed_slippage must be in [0, 1), got {config.assumed_slippage}")

    if not (0 <= config.paper_slippage < 1):
        raise ConfigurationError(f"paper_slippage must be in [0, 1), got {config.paper_slippage}")

    for name in ("min_trade_usd", "sell_dust_floor", "buy_dust_floor"):
        if getattr(config, name) < 0:
            raise ConfigurationError(f"{name} must not be negative")

    if config.price_cache_ttl_seconds <= 0:
        raise ConfigurationError("price_cache_ttl_seconds must be positive")

    if config.swap_delay_seconds < 0:
        raise ConfigurationError("swap_delay_seconds must not be negative")

    if config.rebalance_interval_minutes <= 0:
        raise ConfigurationError("rebalance_interval_minutes must be positive")

    unpriced = sorted(set(config.tokens) - set(config.price_symbols))
    if unpriced:
        raise ConfigurationError(f"No price symbol configured for {unpriced}")

    unknown_paper = sorted(set(config.paper_balances) - set(config.tokens))
    if unknown_paper:
        raise ConfigurationError(f"paper_balances lists unknown tokens {unknown_paper}")

    if any(amount < 0 for amount in config.paper_balances.values()):
        raise ConfigurationError("paper_balances must not be negative")
