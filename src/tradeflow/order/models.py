"""
订单数据模型
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Union["OrderSide", str, None]) -> Optional["OrderSide"]:
        """解析方向信号，无法识别时返回 None"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


@dataclass(frozen=True)
class OrderHandle:
    """交易所返回的订单句柄"""
    order_id: str
    symbol: str = ""
    client_order_id: Optional[str] = None


@dataclass(frozen=True)
class OrderPlan:
    """
    下单计划 (Order Sizer 输出)

    reference_price 是截断后的定价，用于计算数量、最小下单量和资金检查；
    price 为 None 时提交市价单。
    """
    side: OrderSide
    amount: Decimal
    price: Optional[Decimal]
    reference_price: Decimal
    minimum: Decimal
    available: Decimal

    @property
    def is_market(self) -> bool:
        return self.price is None


@dataclass
class Order:
    """已提交的订单，在终态 (成交或被重下替代) 前由生命周期控制器持有"""
    side: OrderSide
    amount: Decimal
    price: Optional[Decimal]
    reference_price: Decimal
    handle: OrderHandle
    attempt: int = 1

    @property
    def order_id(self) -> str:
        return self.handle.order_id
