"""
交易所能力接口

核心逻辑只通过该接口访问交易所 (下单、撤单、查询余额/手续费/行情)，
不直接处理任何交易所的传输协议。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from ..order.models import OrderHandle, OrderSide

Balance = Dict[str, Decimal]


@dataclass(frozen=True)
class Ticker:
    """买一 / 卖一快照"""
    bid: Decimal
    ask: Decimal

    def reference_price(self, side: OrderSide) -> Decimal:
        """买单参考卖一价，卖单参考买一价"""
        return self.ask if side == OrderSide.BUY else self.bid


@dataclass(frozen=True)
class MinimalOrder:
    """交易所最小下单量"""
    amount: Decimal
    unit: str  # "currency" or "asset"

    def __post_init__(self):
        if self.unit not in ("currency", "asset"):
            raise ValueError(f"Unknown minimal order unit: {self.unit}")


@dataclass(frozen=True)
class ExchangeCapabilities:
    """构造时确定的交易所能力，之后不再变化"""
    supports_market_order: bool
    supports_unbounded_order_size: bool
    minimal_order: MinimalOrder


class AbstractExchange(ABC):
    """
    交易所适配器基类

    约定:
    - 所有方法均为协程
    - 网络 / API 的暂时性故障抛出 ExchangeUnavailable
    - price 为 None 表示市价单
    """

    name: str = "unknown"

    @abstractmethod
    async def get_portfolio(self) -> Balance:
        """获取全部资产余额"""
        pass

    @abstractmethod
    async def get_fee(self) -> Decimal:
        """获取手续费率"""
        pass

    @abstractmethod
    async def get_ticker(self) -> Ticker:
        """获取当前买一 / 卖一"""
        pass

    @abstractmethod
    async def buy(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        """提交买单 (amount 以资产数量计)"""
        pass

    @abstractmethod
    async def sell(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        """提交卖单 (amount 以资产数量计)"""
        pass

    @abstractmethod
    async def check_order(self, handle: OrderHandle) -> bool:
        """订单是否已完全成交"""
        pass

    @abstractmethod
    async def cancel_order(self, handle: OrderHandle) -> None:
        """撤销订单"""
        pass

    async def close(self) -> None:
        """释放连接资源"""
        return None
