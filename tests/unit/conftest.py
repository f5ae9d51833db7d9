import asyncio
import itertools
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from tradeflow.exchange.base import MinimalOrder, Ticker
from tradeflow.exchange.registry import ExchangeMetadata, MarketConfig
from tradeflow.order.models import OrderHandle


class FakeClock:
    """记录等待而不真正等待"""

    def __init__(self, calls=None):
        self._now = 0.0
        self.sleeps = []
        self.calls = calls if calls is not None else []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.calls.append(("sleep", seconds))
        self._now += seconds
        await asyncio.sleep(0)


def make_exchange(
    balances=None,
    bid="9.9",
    ask="10",
    fills=None,
    calls=None,
):
    """AsyncMock 交易所，calls 记录 buy/sell/cancel 的调用顺序"""
    calls = calls if calls is not None else []
    ids = itertools.count(1)

    exchange = MagicMock()
    exchange.name = "Mock"
    exchange.calls = calls
    exchange.get_portfolio = AsyncMock(
        return_value=balances if balances is not None else {"USDT": Decimal("1000"), "BTC": Decimal("0")}
    )
    exchange.get_fee = AsyncMock(return_value=Decimal("0.0025"))
    exchange.get_ticker = AsyncMock(return_value=Ticker(bid=Decimal(bid), ask=Decimal(ask)))

    def _place(side):
        def _inner(amount, price):
            calls.append((side, amount, price))
            return OrderHandle(order_id=f"{side}-{next(ids)}", symbol="BTCUSDT")
        return _inner

    def _cancel(handle):
        calls.append(("cancel", handle.order_id))

    exchange.buy = AsyncMock(side_effect=_place("buy"))
    exchange.sell = AsyncMock(side_effect=_place("sell"))
    exchange.cancel_order = AsyncMock(side_effect=_cancel)
    if fills is None:
        exchange.check_order = AsyncMock(return_value=True)
    else:
        exchange.check_order = AsyncMock(side_effect=list(fills))
    exchange.close = AsyncMock()
    return exchange


def make_metadata(direct=False, infinity_order=False, minimal=("0.01", "asset")) -> ExchangeMetadata:
    return ExchangeMetadata(
        slug="mock",
        name="Mock",
        direct=direct,
        infinity_order=infinity_order,
        requires_credentials=False,
        markets=[
            MarketConfig(pair=("USDT", "BTC"), minimal_order=MinimalOrder(Decimal(minimal[0]), minimal[1])),
        ],
    )


@pytest.fixture
def clock():
    return FakeClock()
