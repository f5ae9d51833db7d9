"""
交易所静态元数据

交易对列表、最小下单量和能力标志 (direct / infinityOrder) 均为静态声明，
不做任何运行时探测。
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..core.config import Config
from ..core.exceptions import UnsupportedPair
from .base import ExchangeCapabilities, MinimalOrder


@dataclass(frozen=True)
class MarketConfig:
    """单个交易对元数据"""
    pair: Tuple[str, str]  # (currency, asset)
    minimal_order: MinimalOrder
    # 下单数量步长 (LOT_SIZE stepSize)，None 表示不限制精度
    step_size: Optional[Decimal] = None

    @property
    def currency(self) -> str:
        return self.pair[0]

    @property
    def asset(self) -> str:
        return self.pair[1]


@dataclass(frozen=True)
class ExchangeMetadata:
    """交易所元数据"""
    slug: str
    name: str
    # 支持市价单
    direct: bool = False
    # 支持超过余额的下单数量 (由交易所截断)
    infinity_order: bool = False
    tradable: bool = True
    requires_credentials: bool = True
    # 持有资产时余额会被动增长，需要定期复查
    passive_balance_growth: bool = False
    markets: List[MarketConfig] = field(default_factory=list)

    def find_market(self, currency: str, asset: str) -> MarketConfig:
        """
        查找交易对

        Raises:
            UnsupportedPair: 元数据中没有该交易对
        """
        for market in self.markets:
            if market.pair == (currency, asset):
                return market
        raise UnsupportedPair(self.name, currency, asset)

    def capabilities(self, currency: str, asset: str) -> ExchangeCapabilities:
        market = self.find_market(currency, asset)
        return ExchangeCapabilities(
            supports_market_order=self.direct,
            supports_unbounded_order_size=self.infinity_order,
            minimal_order=market.minimal_order,
        )


def _market(currency: str, asset: str, amount: str, unit: str, step: Optional[str] = None) -> MarketConfig:
    return MarketConfig(
        pair=(currency, asset),
        minimal_order=MinimalOrder(Decimal(amount), unit),
        step_size=Decimal(step) if step else None,
    )


EXCHANGES: Dict[str, ExchangeMetadata] = {
    "binance": ExchangeMetadata(
        slug="binance",
        name="Binance",
        markets=[
            # MIN_NOTIONAL 以报价币种计
            _market("USDT", "BTC", "5", "currency", step="0.00001"),
            _market("USDT", "ETH", "5", "currency", step="0.0001"),
            _market("USDT", "BNB", "5", "currency", step="0.001"),
            _market("BTC", "ETH", "0.0001", "currency", step="0.0001"),
            _market("BTC", "BNB", "0.0001", "currency", step="0.001"),
        ],
    ),
    "paper": ExchangeMetadata(
        slug="paper",
        name="Paper",
        requires_credentials=False,
        markets=[
            _market("USDT", "BTC", "0.0001", "asset"),
            _market("USDT", "ETH", "0.001", "asset"),
            _market("BTC", "ETH", "0.001", "asset"),
        ],
    ),
}


def get_exchange_metadata(slug: str) -> Optional[ExchangeMetadata]:
    return EXCHANGES.get(slug)


def check_can_trade(config: Config) -> Optional[str]:
    """
    检查配置能否用于交易

    Returns:
        错误信息，可以交易时返回 None
    """
    meta = get_exchange_metadata(config.exchange)
    if meta is None:
        return f"{config.exchange} is not a supported exchange"

    if not meta.tradable:
        return f"{meta.name} does not support trading"

    if meta.requires_credentials:
        exc = config.get_exchange(meta.slug)
        if exc is None or not exc.api_key or not exc.api_secret:
            return f"{meta.name} requires an API key and secret to trade"

    currency, asset = config.trader.currency, config.trader.asset
    if not any(m.pair == (currency, asset) for m in meta.markets):
        return f"{meta.name} does not support {asset}/{currency}"

    return None
