"""
模拟交易所

内存中的余额和挂单，用于 dry-run 与集成测试。
每次 check_order 时按 fill_ratio 成交剩余数量的一部分。
"""

import itertools
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from ..core.config import PaperConfig
from ..core.exceptions import ExchangeUnavailable
from ..order.models import OrderHandle
from .base import AbstractExchange, Balance, Ticker

logger = logging.getLogger(__name__)


@dataclass
class PaperOrder:
    """模拟挂单"""
    side: str
    amount: Decimal
    price: Decimal
    filled: Decimal = Decimal("0")
    cancelled: bool = False

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.filled


class PaperExchange(AbstractExchange):
    """模拟交易所"""

    name = "Paper"

    def __init__(
        self,
        currency: str,
        asset: str,
        balances: Optional[Dict[str, Decimal]] = None,
        fee: Decimal = Decimal("0.001"),
        ticker: Optional[Ticker] = None,
        fill_ratio: Decimal = Decimal("1"),
    ):
        self.currency = currency
        self.asset = asset
        self.balances: Dict[str, Decimal] = dict(balances or {currency: Decimal("0"), asset: Decimal("0")})
        self.fee = fee
        self.ticker = ticker
        self.fill_ratio = fill_ratio
        self.orders: Dict[str, PaperOrder] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config: PaperConfig, currency: str, asset: str) -> "PaperExchange":
        ticker = None
        if Decimal(config.ask) > 0 and Decimal(config.bid) > 0:
            ticker = Ticker(bid=Decimal(config.bid), ask=Decimal(config.ask))
        return cls(
            currency=currency,
            asset=asset,
            balances={k: Decimal(str(v)) for k, v in config.balances.items()},
            fee=Decimal(config.fee),
            ticker=ticker,
            fill_ratio=Decimal(config.fill_ratio),
        )

    def set_ticker(self, bid: Decimal, ask: Decimal) -> None:
        self.ticker = Ticker(bid=Decimal(bid), ask=Decimal(ask))

    async def get_portfolio(self) -> Balance:
        return dict(self.balances)

    async def get_fee(self) -> Decimal:
        return self.fee

    async def get_ticker(self) -> Ticker:
        if self.ticker is None:
            raise ExchangeUnavailable("paper ticker not set", exchange=self.name)
        return self.ticker

    async def _place(self, side: str, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        ticker = await self.get_ticker()
        if price is None:
            price = ticker.ask if side == "BUY" else ticker.bid

        # 与真实交易所一样截断到可用余额
        if side == "BUY":
            amount = min(amount, self.balances.get(self.currency, Decimal("0")) / price)
        else:
            amount = min(amount, self.balances.get(self.asset, Decimal("0")))

        order_id = f"paper-{next(self._ids)}"
        self.orders[order_id] = PaperOrder(side=side, amount=amount, price=price)
        logger.debug(f"Paper: {side} {amount} {self.asset} @ {price} ({order_id})")
        return OrderHandle(order_id=order_id, symbol=f"{self.asset}{self.currency}")

    async def buy(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        return await self._place("BUY", amount, price)

    async def sell(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        return await self._place("SELL", amount, price)

    def _fill(self, order: PaperOrder, quantity: Decimal) -> None:
        notional = quantity * order.price
        fee = quantity * self.fee
        if order.side == "BUY":
            self.balances[self.currency] = self.balances.get(self.currency, Decimal("0")) - notional
            self.balances[self.asset] = self.balances.get(self.asset, Decimal("0")) + quantity - fee
        else:
            self.balances[self.asset] = self.balances.get(self.asset, Decimal("0")) - quantity
            self.balances[self.currency] = self.balances.get(self.currency, Decimal("0")) + notional - fee * order.price
        order.filled += quantity

    async def check_order(self, handle: OrderHandle) -> bool:
        order = self.orders[handle.order_id]
        if not order.cancelled and order.remaining > 0:
            self._fill(order, order.remaining * self.fill_ratio)
        return order.remaining <= 0

    async def cancel_order(self, handle: OrderHandle) -> None:
        self.orders[handle.order_id].cancelled = True
