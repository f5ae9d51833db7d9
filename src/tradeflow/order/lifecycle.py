"""
订单生命周期控制器

状态机:
    IDLE -> SIZING -> CHECKING -> SUBMITTED -> MONITORING -> FILLED
                |          |                        |
             SKIPPED   ABANDONED               CANCELLING -> SIZING

- CHECKING: 资金检查 / 最小下单量检查，任一失败即放弃 (不自动重试)
- MONITORING: 固定等待 fill_check_delay 后查询成交状态
- CANCELLING: 未完全成交则撤单，冷却 cancel_cooldown 后按同一方向重新计算并下单

运行中的生命周期不能被外部取消: 监控等待总会完成后再行动，避免重复下单。
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Set

from ..core.clock import AsyncioClock, Clock
from ..core.exceptions import IncompleteFill, InvalidTransition, OrderRejected, InsufficientFunds, OrderTooSmall
from ..events import EventBus, LifecycleEvent
from ..exchange.base import AbstractExchange, ExchangeCapabilities
from .models import Order, OrderPlan, OrderSide

logger = logging.getLogger(__name__)

# 下单后等待多久检查成交 (秒)
DEFAULT_FILL_CHECK_DELAY = 30.0

# 撤单后到重新下单的冷却 (秒)；同一秒内撤单再下单可能被交易所拒绝或乱序
DEFAULT_CANCEL_COOLDOWN = 1.0


class OrderState(Enum):
    IDLE = "idle"
    SIZING = "sizing"
    CHECKING = "checking"
    SUBMITTED = "submitted"
    MONITORING = "monitoring"
    FILLED = "filled"
    CANCELLING = "cancelling"
    SKIPPED = "skipped"
    ABANDONED = "abandoned"


TERMINAL_STATES: Set[OrderState] = {OrderState.FILLED, OrderState.SKIPPED, OrderState.ABANDONED}

TRANSITIONS: Dict[OrderState, Set[OrderState]] = {
    OrderState.IDLE: {OrderState.SIZING},
    OrderState.SIZING: {OrderState.CHECKING, OrderState.SKIPPED},
    OrderState.CHECKING: {OrderState.SUBMITTED, OrderState.ABANDONED},
    OrderState.SUBMITTED: {OrderState.MONITORING},
    OrderState.MONITORING: {OrderState.FILLED, OrderState.CANCELLING},
    OrderState.CANCELLING: {OrderState.SIZING},
    OrderState.FILLED: set(),
    OrderState.SKIPPED: set(),
    OrderState.ABANDONED: set(),
}


def transition(current: OrderState, target: OrderState) -> OrderState:
    """校验并返回目标状态"""
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)
    return target


def check_order_plan(plan: OrderPlan, unbounded: bool = False, funds_symbol: str = "") -> None:
    """
    下单前检查

    Raises:
        InsufficientFunds: amount > available (严格大于)
        OrderTooSmall: amount < minimum (严格小于)
    """
    # 超额下单的交易所会按余额截断数量
    amount = min(plan.amount, plan.available) if unbounded else plan.amount

    if amount > plan.available:
        raise InsufficientFunds(amount, plan.available, funds_symbol)

    if amount < plan.minimum:
        raise OrderTooSmall(amount, plan.minimum)


Planner = Callable[[OrderSide], Awaitable[Optional[OrderPlan]]]


@dataclass
class LifecycleResult:
    """一次生命周期的终态"""
    side: OrderSide
    state: OrderState
    submissions: int = 0
    order: Optional[Order] = None
    reason: Optional[str] = None

    @property
    def filled(self) -> bool:
        return self.state == OrderState.FILLED


class OrderLifecycleController:
    """
    订单生命周期控制器

    每个交易对一个实例，同一时间最多一个进行中的生命周期 (由 TradeCoordinator 保证)。
    """

    def __init__(
        self,
        exchange: AbstractExchange,
        capabilities: ExchangeCapabilities,
        currency: str,
        asset: str,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
        fill_check_delay: float = DEFAULT_FILL_CHECK_DELAY,
        cancel_cooldown: float = DEFAULT_CANCEL_COOLDOWN,
    ):
        self.exchange = exchange
        self.capabilities = capabilities
        self.currency = currency
        self.asset = asset
        self.clock = clock or AsyncioClock()
        self.events = events or EventBus()
        self.fill_check_delay = fill_check_delay
        self.cancel_cooldown = cancel_cooldown

        self._state = OrderState.IDLE
        self._attempt = 0
        self._submissions = 0

    @property
    def state(self) -> OrderState:
        return self._state

    @property
    def submissions(self) -> int:
        """本次 run() 已提交的订单数，run() 中途抛出异常后仍然可读"""
        return self._submissions

    @property
    def pair(self) -> str:
        return f"{self.asset}/{self.currency}"

    async def _enter(
        self,
        target: OrderState,
        side: OrderSide,
        amount: Optional[Decimal] = None,
        price: Optional[Decimal] = None,
        order_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        self._state = transition(self._state, target)
        await self.events.emit(LifecycleEvent(
            pair=self.pair,
            side=side.value,
            state=target.value,
            attempt=self._attempt,
            amount=amount,
            price=price,
            order_id=order_id,
            reason=reason,
            timestamp=self.clock.now(),
        ))

    async def run(self, side: OrderSide, planner: Planner) -> LifecycleResult:
        """
        驱动一个订单直到终态

        ExchangeUnavailable 向调用方传播，状态机停留在出错时的状态，
        下一次 run() 会重新从 IDLE 开始。
        """
        self._state = OrderState.IDLE
        self._attempt = 0
        self._submissions = 0
        order: Optional[Order] = None

        while True:
            self._attempt += 1
            await self._enter(OrderState.SIZING, side)

            plan = await planner(side)
            if plan is None:
                await self._enter(OrderState.SKIPPED, side, reason="skipped")
                return LifecycleResult(side, self._state, self._submissions, order, "skipped")

            try:
                await self.check(plan)
            except OrderRejected as e:
                await self._enter(
                    OrderState.ABANDONED, side, plan.amount, plan.price, reason=e.code
                )
                return LifecycleResult(side, self._state, self._submissions, order, e.code)

            order = await self.submit(plan)
            self._submissions += 1

            try:
                await self.monitor(order)
            except IncompleteFill:
                await self.cancel(order)
                continue

            logger.info(f"{side.value} {order.order_id} was successful")
            return LifecycleResult(side, self._state, self._submissions, order)

    async def check(self, plan: OrderPlan) -> None:
        """CHECKING: 资金与最小下单量检查"""
        await self._enter(OrderState.CHECKING, plan.side, plan.amount, plan.price)

        funds_symbol = self.currency if plan.side == OrderSide.BUY else self.asset
        logger.debug(
            f"{plan.side.value}: amount {plan.amount} with {plan.available} available, "
            f"and a minimum of {plan.minimum}"
        )
        try:
            check_order_plan(plan, self.capabilities.supports_unbounded_order_size, funds_symbol)
        except InsufficientFunds as e:
            logger.info(
                f"wanted to {plan.side.value} {self.asset} but insufficient "
                f"{funds_symbol} ({e.limit}) at {self.exchange.name}"
            )
            raise
        except OrderTooSmall as e:
            logger.info(
                f"wanted to {plan.side.value} {self.asset} but the amount is too small "
                f"({e.amount} < {e.limit}) at {self.exchange.name}"
            )
            raise

    async def submit(self, plan: OrderPlan) -> Order:
        """SUBMITTED: 提交订单并记录订单句柄"""
        logger.info(
            f"attempting to {plan.side.value} {plan.amount} {self.asset} "
            f"at {self.exchange.name} (price: {plan.price or 'market'}, attempt {self._attempt})"
        )

        if plan.side == OrderSide.BUY:
            handle = await self.exchange.buy(plan.amount, plan.price)
        else:
            handle = await self.exchange.sell(plan.amount, plan.price)

        order = Order(
            side=plan.side,
            amount=plan.amount,
            price=plan.price,
            reference_price=plan.reference_price,
            handle=handle,
            attempt=self._attempt,
        )
        await self._enter(OrderState.SUBMITTED, plan.side, plan.amount, plan.price, handle.order_id)
        return order

    async def monitor(self, order: Order) -> None:
        """
        MONITORING: 等待固定时间后查询成交状态

        Raises:
            IncompleteFill: 未完全成交
        """
        await self._enter(OrderState.MONITORING, order.side, order.amount, order.price, order.order_id)
        await self.clock.sleep(self.fill_check_delay)

        filled = await self.exchange.check_order(order.handle)
        if not filled:
            raise IncompleteFill(order.order_id)

        await self._enter(OrderState.FILLED, order.side, order.amount, order.price, order.order_id)

    async def cancel(self, order: Order) -> None:
        """CANCELLING: 撤单并冷却，之后回到 SIZING"""
        logger.info(
            f"{order.side.value} order {order.order_id} was not (fully) filled, "
            f"cancelling and creating new order"
        )
        await self._enter(
            OrderState.CANCELLING, order.side, order.amount, order.price, order.order_id,
            reason="incomplete_fill"
        )
        await self.exchange.cancel_order(order.handle)
        await self.clock.sleep(self.cancel_cooldown)
