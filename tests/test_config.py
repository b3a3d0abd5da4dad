"""
Unit tests for configuration loading and validation.
"""

import dataclasses
from decimal import Decimal

import pytest

from engine.exceptions import ConfigurationError
from rebalancer.config import (
    DEFAULT_TOKENS,
    RebalanceConfig,
    equal_weights,
    load_config,
    validate_config,
)

D = Decimal

BASIC_YAML = """
tokens:
  A: "0x01"
  WETH: "0x02"
target_weights:
  A: 0.4
  WETH: 0.6
price_symbols:
  A: AUSDT
  WETH: ETHUSDT
deviation_threshold: 0.03
min_trade_usd: 10
paper_balances:
  A: 100
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(BASIC_YAML)
    return str(path)


@pytest.fixture
def no_file_env(tmp_path):
    return {"REBALANCE_CONFIG": str(tmp_path / "missing.yml")}


class TestLoadConfig:
    """Test the load_config function."""

    def test_defaults_without_file(self, no_file_env):
        config = load_config(env=no_file_env)

        assert config.tokens == DEFAULT_TOKENS
        assert config.base_token == "WETH"
        assert config.deviation_threshold == D("0.05")
        assert config.min_trade_usd == D("5.0")
        assert config.rebalance_interval_minutes == 240
        assert config.dry_run is True
        assert sum(config.target_weights.values()) == 1
        assert config.telegram_chat_ids == ()

    def test_yaml_file(self, config_file):
        config = load_config(config_file, env={})

        assert config.token_symbols == ["A", "WETH"]
        assert config.target_weights == {"A": D("0.4"), "WETH": D("0.6")}
        assert config.deviation_threshold == D("0.03")
        assert config.min_trade_usd == D("10")
        assert config.paper_balances == {"A": D("100")}

    def test_env_overrides_yaml(self, config_file):
        env = {
            "CUSTOM_WEIGHTS": '{"A": 0.5, "WETH": 0.5}',
            "DEVIATION_THRESHOLD": "0.1",
            "MIN_TRADE_USD": "25",
            "REBALANCE_INTERVAL_MINUTES": "60",
            "DRY_RUN": "false",
            "LOG_LEVEL": "debug",
        }
        config = load_config(config_file, env=env)

        assert config.target_weights == {"A": D("0.5"), "WETH": D("0.5")}
        assert config.deviation_threshold == D("0.1")
        assert config.min_trade_usd == D("25")
        assert config.rebalance_interval_minutes == 60
        assert config.dry_run is False
        assert config.log_level == "DEBUG"

    def test_telegram_settings(self, no_file_env):
        env = dict(no_file_env, REBALANCE_BOT_TOKEN="123:abc", REBALANCE_CHAT_ID="=111, 222,")
        config = load_config(env=env)

        assert config.telegram_bot_token == "123:abc"
        assert config.telegram_chat_ids == ("111", "222")

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yml"), env={})

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("tokens: [unclosed")
        with pytest.raises(ConfigurationError):
            load_config(str(path), env={})

    def test_malformed_custom_weights(self, config_file):
        with pytest.raises(ConfigurationError, match="CUSTOM_WEIGHTS"):
            load_config(config_file, env={"CUSTOM_WEIGHTS": "{not json"})

    def test_weights_not_summing_to_one(self, config_file):
        with pytest.raises(ConfigurationError, match="sum to 1"):
            load_config(config_file, env={"CUSTOM_WEIGHTS": '{"A": 0.5, "WETH": 0.6}'})

    def test_sum_within_tolerance_is_accepted(self, config_file):
        config = load_config(config_file, env={"CUSTOM_WEIGHTS": '{"A": 0.4000005, "WETH": 0.6}'})
        assert config.target_weights["A"] == D("0.4000005")

    def test_non_numeric_setting(self, config_file):
        with pytest.raises(ConfigurationError):
            load_config(config_file, env={"MIN_TRADE_USD": "lots"})

    def test_non_integer_interval(self, config_file):
        with pytest.raises(ConfigurationError):
            load_config(config_file, env={"REBALANCE_INTERVAL_MINUTES": "soon"})


class TestValidateConfig:
    """Test the validate_config function."""

    def setup_method(self):
        self.config = RebalanceConfig(
            tokens={"A": "0x01", "WETH": "0x02"},
            target_weights={"A": D("0.5"), "WETH": D("0.5")},
            price_symbols={"A": "AUSDT", "WETH": "ETHUSDT"},
        )

    def invalid(self, **changes):
        with pytest.raises(ConfigurationError):
            validate_config(dataclasses.replace(self.config, **changes))

    def test_valid(self):
        validate_config(self.config)

    def test_unknown_weight_token(self):
        self.invalid(target_weights={"A": D("0.5"), "B": D("0.5")})

    def test_negative_weight(self):
        self.invalid(target_weights={"A": D("1.5"), "WETH": D("-0.5")})

    def test_base_token_not_tracked(self):
        self.invalid(base_token="USDC")

    def test_threshold_out_of_range(self):
        self.invalid(deviation_threshold=D("0"))
        self.invalid(deviation_threshold=D("1"))

    def test_slippage_out_of_range(self):
        self.invalid(assumed_slippage=D("1"))
        self.invalid(paper_slippage=D("-0.1"))

    def test_negative_floors(self):
        self.invalid(min_trade_usd=D("-1"))
        self.invalid(sell_dust_floor=D("-0.1"))

    def test_non_positive_timing(self):
        self.invalid(price_cache_ttl_seconds=0)
        self.invalid(rebalance_interval_minutes=0)
        self.invalid(swap_delay_seconds=-1)

    def test_missing_price_symbol(self):
        self.invalid(price_symbols={"A": "AUSDT"})

    def test_paper_balances_for_unknown_token(self):
        self.invalid(paper_balances={"B": D("1")})


class TestEqualWeights:
    """Test the equal_weights function."""

    def test_sums_to_exactly_one(self):
        weights = equal_weights(["A", "B", "C"])
        assert sum(weights.values()) == 1
        assert weights["A"] == weights["B"]

    def test_empty(self):
        assert equal_weights([]) == {}
