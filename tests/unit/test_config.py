"""
测试配置加载
"""

from decimal import Decimal

import pytest

from tradeflow.core.config import Config, TraderConfig, load_config, resolve_config_path
from tradeflow.core.exceptions import ValidationError


YAML = """
exchange: binance
exchanges:
  binance:
    api_key: key
    api_secret: secret
    testnet: true
    unknown_field: ignored
trader:
  currency: USDT
  asset: ETH
  loss_avoidant: true
  trade_percent: 50
  fill_check_delay: 10
metrics:
  enabled: true
  port: 9100
log_level: DEBUG
"""


class TestConfig:

    def test_defaults(self):
        config = Config()

        assert config.exchange == "paper"
        assert config.trader.pair == "BTC/USDT"
        assert config.trader.fill_check_delay == 30.0
        assert config.trader.cancel_cooldown == 1.0
        assert config.trader.trade_percent is None

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(YAML, encoding="utf-8")

        config = Config.from_yaml(str(path))

        assert config.exchange == "binance"
        binance = config.get_exchange()
        assert binance.api_key == "key"
        assert binance.rest_url == "https://testnet.binance.vision"
        assert config.trader.asset == "ETH"
        assert config.trader.loss_avoidant is True
        assert config.trader.trade_percent == Decimal("50")
        assert config.trader.fill_check_delay == 10
        assert config.metrics.enabled is True
        assert config.metrics.port == 9100
        assert config.log_level == "DEBUG"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(YAML, encoding="utf-8")
        monkeypatch.setenv("TRADEFLOW_CONFIG", str(path))
        monkeypatch.setenv("TRADEFLOW_ASSET", "bnb")
        monkeypatch.setenv("TRADEFLOW_TRADE_PERCENT", "20")
        monkeypatch.setenv("BINANCE_API_KEY", "env-key")
        monkeypatch.setenv("BINANCE_API_SECRET", "env-secret")

        config = load_config()

        assert config.trader.asset == "BNB"
        assert config.trader.trade_percent == Decimal("20")
        assert config.exchanges["binance"].api_key == "env-key"
        assert config.exchanges["binance"].rest_url == "https://api.binance.com"

    def test_resolve_config_path_prefers_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("exchange: paper\n", encoding="utf-8")
        monkeypatch.setenv("TRADEFLOW_CONFIG", str(path))

        assert resolve_config_path("does/not/exist.yaml") == path

    @pytest.mark.parametrize("kwargs", [
        {"trade_percent": 150},
        {"trade_percent": -1},
        {"currency": "BTC", "asset": "BTC"},
        {"fill_check_delay": 0},
        {"cancel_cooldown": -1},
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValidationError):
            TraderConfig(**kwargs).validate()

    def test_trade_percent_is_decimal(self):
        assert TraderConfig(trade_percent=12.5).trade_percent == Decimal("12.5")

    @pytest.mark.parametrize("raw", ["abc", "NaN", "Infinity"])
    def test_malformed_trade_percent_env(self, tmp_path, monkeypatch, raw):
        path = tmp_path / "config.yaml"
        path.write_text("exchange: paper\n", encoding="utf-8")
        monkeypatch.setenv("TRADEFLOW_CONFIG", str(path))
        monkeypatch.setenv("TRADEFLOW_TRADE_PERCENT", raw)

        with pytest.raises(ValidationError) as exc_info:
            load_config()

        assert exc_info.value.field == "trade_percent"

    def test_malformed_trade_percent_yaml(self):
        with pytest.raises(ValidationError):
            TraderConfig(trade_percent="ten")
