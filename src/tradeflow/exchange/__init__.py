"""Exchange adapters and static metadata."""

from ..core.config import Config
from ..core.exceptions import ValidationError
from .base import (
    AbstractExchange,
    Balance,
    ExchangeCapabilities,
    MinimalOrder,
    Ticker,
)
from .binance import BinanceSpotGateway
from .paper import PaperExchange
from .registry import (
    EXCHANGES,
    ExchangeMetadata,
    MarketConfig,
    check_can_trade,
    get_exchange_metadata,
)


def create_exchange(config: Config) -> AbstractExchange:
    """
    根据配置创建交易所适配器

    Raises:
        ValidationError: 交易所未知或缺少配置
        UnsupportedPair: 交易所不支持该交易对
    """
    currency, asset = config.trader.currency, config.trader.asset

    if config.exchange == "binance":
        exc = config.get_exchange("binance")
        if exc is None:
            raise ValidationError("missing exchanges.binance configuration", field="exchanges")
        market = EXCHANGES["binance"].find_market(currency, asset)
        return BinanceSpotGateway(exc, currency, asset, step_size=market.step_size)

    if config.exchange == "paper":
        return PaperExchange.from_config(config.paper, currency, asset)

    raise ValidationError(f"Unknown exchange: {config.exchange}", field="exchange")


__all__ = [
    "AbstractExchange",
    "Balance",
    "ExchangeCapabilities",
    "MinimalOrder",
    "Ticker",
    "BinanceSpotGateway",
    "PaperExchange",
    "EXCHANGES",
    "ExchangeMetadata",
    "MarketConfig",
    "check_can_trade",
    "get_exchange_metadata",
    "create_exchange",
]
