"""
订单规模计算

纯函数，无 I/O。给定方向、行情、余额、交易所能力和交易百分比，
计算下单数量、价格和最小下单量。相同输入总是得到相同输出。
"""

import logging
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Mapping, Optional

from ..exchange.base import ExchangeCapabilities, Ticker
from ..core.exceptions import UnknownAsset
from .models import OrderPlan, OrderSide

logger = logging.getLogger(__name__)

# 交易所支持超额下单时提交的数量，由交易所按实际余额截断
UNBOUNDED_ORDER_AMOUNT = Decimal("10000")

# 价格精度 (1e-8)
PRICE_TICK = Decimal("0.00000001")


def truncate_price(price: Decimal, side: OrderSide) -> Decimal:
    """
    按 1e-8 精度截断价格

    买单向下取整，卖单向上取整，截断后的价格不会比原价对对手方更不利。
    """
    rounding = ROUND_FLOOR if side == OrderSide.BUY else ROUND_CEILING
    return price.quantize(PRICE_TICK, rounding=rounding)


def _balance(balances: Mapping[str, Decimal], symbol: str) -> Decimal:
    try:
        return balances[symbol]
    except KeyError:
        raise UnknownAsset(symbol) from None


def available_funds(
    side: OrderSide,
    balances: Mapping[str, Decimal],
    currency: str,
    asset: str,
    price: Decimal,
) -> Decimal:
    """可用资金 (以资产数量计): 买单为 currency / price，卖单为 asset 余额"""
    if side == OrderSide.BUY:
        return _balance(balances, currency) / price
    return _balance(balances, asset)


def minimum_amount(capabilities: ExchangeCapabilities, price: Decimal) -> Decimal:
    """最小下单量 (以资产数量计)"""
    minimal = capabilities.minimal_order
    if minimal.unit == "currency":
        return minimal.amount / price
    return minimal.amount


def size_order(
    side: OrderSide,
    ticker: Ticker,
    balances: Mapping[str, Decimal],
    capabilities: ExchangeCapabilities,
    currency: str,
    asset: str,
    trade_percent: Optional[Decimal] = None,
) -> OrderPlan:
    """计算下单计划"""
    price = truncate_price(ticker.reference_price(side), side)
    if price <= 0:
        raise ValueError(f"Invalid {side.value} reference price: {price}")

    available = available_funds(side, balances, currency, asset, price)

    if capabilities.supports_unbounded_order_size:
        amount = UNBOUNDED_ORDER_AMOUNT
    else:
        amount = available

    if trade_percent:
        logger.debug(f"Trade percent: adjusting amount {amount} by {trade_percent}%")
        amount = amount * trade_percent / 100

    minimum = minimum_amount(capabilities, price)

    logger.debug(
        f"Sized {side.value}: amount={amount} price={price} "
        f"available={available} minimum={minimum} "
        f"market={capabilities.supports_market_order}"
    )

    return OrderPlan(
        side=side,
        amount=amount,
        price=None if capabilities.supports_market_order else price,
        reference_price=price,
        minimum=minimum,
        available=available,
    )
