"""
测试交易所静态元数据
"""

from decimal import Decimal

import pytest

from tradeflow.core.config import Config, ExchangeConfig, TraderConfig
from tradeflow.core.exceptions import UnsupportedPair
from tradeflow.exchange import check_can_trade, get_exchange_metadata
from tradeflow.exchange.base import MinimalOrder


class TestRegistry:

    def test_binance_capabilities(self):
        caps = get_exchange_metadata("binance").capabilities("USDT", "BTC")

        assert caps.supports_market_order is False
        assert caps.supports_unbounded_order_size is False
        assert caps.minimal_order == MinimalOrder(Decimal("5"), "currency")

    def test_unsupported_pair(self):
        with pytest.raises(UnsupportedPair) as exc_info:
            get_exchange_metadata("binance").find_market("EUR", "DOGE")

        assert exc_info.value.code == "UNSUPPORTED_PAIR"

    def test_invalid_minimal_unit(self):
        with pytest.raises(ValueError):
            MinimalOrder(Decimal("1"), "lots")


class TestCheckCanTrade:

    def test_unknown_exchange(self):
        assert "not a supported exchange" in check_can_trade(Config(exchange="mtgox"))

    def test_missing_credentials(self):
        assert "API key" in check_can_trade(Config(exchange="binance"))

    def test_binance_with_credentials(self):
        config = Config(
            exchange="binance",
            exchanges={"binance": ExchangeConfig(name="binance", api_key="k", api_secret="s")},
        )

        assert check_can_trade(config) is None

    def test_unsupported_pair_message(self):
        config = Config(exchange="paper", trader=TraderConfig(currency="EUR", asset="BTC"))

        assert "BTC/EUR" in check_can_trade(config)

    def test_paper_needs_no_credentials(self):
        assert check_can_trade(Config(exchange="paper")) is None
