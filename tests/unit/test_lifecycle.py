"""
测试订单生命周期状态机
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from tradeflow.core.exceptions import (
    ExchangeUnavailable,
    InsufficientFunds,
    InvalidTransition,
    OrderTooSmall,
)
from tradeflow.events import EventBus
from tradeflow.exchange.base import ExchangeCapabilities, MinimalOrder
from tradeflow.order.lifecycle import (
    OrderLifecycleController,
    OrderState,
    check_order_plan,
    transition,
)
from tradeflow.order.models import OrderHandle, OrderPlan, OrderSide

from conftest import FakeClock, make_exchange


def plan(side=OrderSide.BUY, amount="100", available="100", minimum="0.01", price="10"):
    return OrderPlan(
        side=side,
        amount=Decimal(amount),
        price=Decimal(price) if price is not None else None,
        reference_price=Decimal("10"),
        minimum=Decimal(minimum),
        available=Decimal(available),
    )


def planner_from(*plans):
    """按顺序返回计划，并记录调用次数"""
    queue = list(plans)
    calls = []

    async def _planner(side):
        calls.append(side)
        return queue.pop(0)

    _planner.calls = calls
    return _planner


def make_controller(exchange, clock, unbounded=False):
    events = EventBus()
    states = []
    events.register(lambda event: states.append(event.state))

    controller = OrderLifecycleController(
        exchange=exchange,
        capabilities=ExchangeCapabilities(
            supports_market_order=False,
            supports_unbounded_order_size=unbounded,
            minimal_order=MinimalOrder(Decimal("0.01"), "asset"),
        ),
        currency="USDT",
        asset="BTC",
        clock=clock,
        events=events,
    )
    return controller, states


class TestTransitions:
    """测试状态转换表"""

    def test_legal_transition(self):
        assert transition(OrderState.IDLE, OrderState.SIZING) == OrderState.SIZING
        assert transition(OrderState.CANCELLING, OrderState.SIZING) == OrderState.SIZING

    def test_illegal_transition(self):
        with pytest.raises(InvalidTransition):
            transition(OrderState.SIZING, OrderState.FILLED)

    def test_terminal_states_have_no_exit(self):
        for state in (OrderState.FILLED, OrderState.SKIPPED, OrderState.ABANDONED):
            with pytest.raises(InvalidTransition):
                transition(state, OrderState.SIZING)


class TestCheckOrderPlan:
    """测试下单前检查"""

    def test_amount_equal_to_available_is_accepted(self):
        check_order_plan(plan(amount="100", available="100"))

    def test_amount_above_available_is_rejected(self):
        with pytest.raises(InsufficientFunds) as exc_info:
            check_order_plan(plan(amount="100.00000001", available="100"), funds_symbol="USDT")

        assert exc_info.value.limit == Decimal("100")
        assert exc_info.value.symbol == "USDT"

    def test_amount_equal_to_minimum_is_accepted(self):
        check_order_plan(plan(amount="0.01", available="1", minimum="0.01"))

    def test_amount_below_minimum_is_rejected(self):
        with pytest.raises(OrderTooSmall):
            check_order_plan(plan(amount="0.009", available="1", minimum="0.01"))

    def test_unbounded_amount_is_clamped_to_available(self):
        check_order_plan(plan(amount="10000", available="5", minimum="1"), unbounded=True)

    def test_unbounded_still_checks_minimum(self):
        with pytest.raises(OrderTooSmall):
            check_order_plan(plan(amount="10000", available="0.5", minimum="1"), unbounded=True)


class TestLifecycle:
    """测试完整生命周期"""

    @pytest.mark.asyncio
    async def test_filled_on_first_check(self):
        clock = FakeClock()
        exchange = make_exchange()
        controller, states = make_controller(exchange, clock)

        result = await controller.run(OrderSide.BUY, planner_from(plan()))

        assert result.state == OrderState.FILLED
        assert result.filled
        assert result.submissions == 1
        assert result.order.order_id == "buy-1"
        exchange.buy.assert_awaited_once_with(Decimal("100"), Decimal("10"))
        exchange.cancel_order.assert_not_awaited()
        assert clock.sleeps == [30.0]
        assert states == ["sizing", "checking", "submitted", "monitoring", "filled"]

    @pytest.mark.asyncio
    async def test_sell_path(self):
        clock = FakeClock()
        exchange = make_exchange()
        controller, _ = make_controller(exchange, clock)

        result = await controller.run(OrderSide.SELL, planner_from(plan(side=OrderSide.SELL, amount="2", available="2")))

        assert result.filled
        exchange.sell.assert_awaited_once_with(Decimal("2"), Decimal("10"))
        exchange.buy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_incomplete_fill_cancels_and_resubmits_once(self):
        calls = []
        clock = FakeClock(calls)
        exchange = make_exchange(fills=[False, True], calls=calls)
        controller, states = make_controller(exchange, clock)
        planner = planner_from(plan(amount="100", available="100"), plan(amount="60", available="60"))

        result = await controller.run(OrderSide.BUY, planner)

        assert result.filled
        assert result.submissions == 2
        assert result.order.attempt == 2
        assert len(planner.calls) == 2
        assert exchange.cancel_order.await_count == 1
        assert calls == [
            ("buy", Decimal("100"), Decimal("10")),
            ("sleep", 30.0),
            ("cancel", "buy-1"),
            ("sleep", 1.0),
            ("buy", Decimal("60"), Decimal("10")),
            ("sleep", 30.0),
        ]
        assert states == [
            "sizing", "checking", "submitted", "monitoring", "cancelling",
            "sizing", "checking", "submitted", "monitoring", "filled",
        ]

    @pytest.mark.asyncio
    async def test_insufficient_funds_abandons_without_submission(self):
        clock = FakeClock()
        exchange = make_exchange()
        controller, states = make_controller(exchange, clock)

        result = await controller.run(OrderSide.BUY, planner_from(plan(amount="101", available="100")))

        assert result.state == OrderState.ABANDONED
        assert result.reason == "INSUFFICIENT_FUNDS"
        assert result.submissions == 0
        exchange.buy.assert_not_awaited()
        assert clock.sleeps == []
        assert states[-1] == "abandoned"

    @pytest.mark.asyncio
    async def test_shrinking_balance_ends_retry_loop(self):
        clock = FakeClock()
        exchange = make_exchange(fills=[False])
        controller, _ = make_controller(exchange, clock)
        planner = planner_from(plan(amount="1", available="1"), plan(amount="0.001", available="0.001"))

        result = await controller.run(OrderSide.BUY, planner)

        assert result.state == OrderState.ABANDONED
        assert result.reason == "ORDER_TOO_SMALL"
        assert result.submissions == 1
        assert result.order.order_id == "buy-1"
        exchange.cancel_order.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_planner_skip(self):
        clock = FakeClock()
        exchange = make_exchange()
        controller, states = make_controller(exchange, clock)

        result = await controller.run(OrderSide.BUY, planner_from(None))

        assert result.state == OrderState.SKIPPED
        assert states == ["sizing", "skipped"]
        exchange.buy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exchange_failure_propagates(self):
        clock = FakeClock()
        exchange = make_exchange()
        exchange.buy.side_effect = ExchangeUnavailable("down", exchange="Mock")
        controller, _ = make_controller(exchange, clock)

        with pytest.raises(ExchangeUnavailable):
            await controller.run(OrderSide.BUY, planner_from(plan()))

        # 下一次运行从头开始
        exchange.buy = AsyncMock(return_value=OrderHandle(order_id="buy-2"))
        result = await controller.run(OrderSide.BUY, planner_from(plan()))
        assert result.filled

    @pytest.mark.asyncio
    async def test_submission_count_survives_monitor_failure(self):
        clock = FakeClock()
        exchange = make_exchange()
        exchange.check_order = AsyncMock(side_effect=ExchangeUnavailable("down", exchange="Mock"))
        controller, _ = make_controller(exchange, clock)

        with pytest.raises(ExchangeUnavailable):
            await controller.run(OrderSide.BUY, planner_from(plan()))

        assert controller.submissions == 1
        assert controller.state == OrderState.MONITORING

    @pytest.mark.asyncio
    async def test_events_carry_order_details(self):
        clock = FakeClock()
        exchange = make_exchange()
        controller, _ = make_controller(exchange, clock)
        received = []
        controller.events.register(received.append)

        await controller.run(OrderSide.BUY, planner_from(plan()))

        submitted = next(e for e in received if e.state == "submitted")
        assert submitted.pair == "BTC/USDT"
        assert submitted.side == "BUY"
        assert submitted.order_id == "buy-1"
        assert submitted.amount == Decimal("100")
        assert submitted.attempt == 1
