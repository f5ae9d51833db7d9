"""
交易协调器

对外入口: 给定方向信号 (BUY/SELL)，刷新行情和余额，执行亏损规避策略，
然后驱动 Order Sizer 和订单生命周期控制器。

每个交易对一个实例，持有自己的余额账本和交易上下文，不同交易对之间不共享状态。
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from ..core.clock import AsyncioClock, Clock
from ..core.config import Config, TraderConfig
from ..core.exceptions import TradeFlowError, ValidationError
from ..events import EventBus
from ..exchange.base import AbstractExchange, Ticker
from ..exchange.registry import ExchangeMetadata, check_can_trade, get_exchange_metadata
from ..order.lifecycle import LifecycleResult, OrderLifecycleController, OrderState
from ..order.models import OrderPlan, OrderSide
from ..order.sizer import size_order, truncate_price
from ..portfolio.ledger import BalanceLedger

logger = logging.getLogger(__name__)


@dataclass
class TradeContext:
    """进程生命周期内的交易上下文，仅在成功提交订单后由协调器修改"""
    last_action: Optional[OrderSide] = None
    last_buy_price: Optional[Decimal] = None
    last_sell_price: Optional[Decimal] = None


class TradeCoordinator:
    """
    交易协调器

    同一交易对同一时间最多一个进行中的订单生命周期；
    监控期间收到的新信号直接跳过 (reason="busy")。
    """

    def __init__(
        self,
        exchange: AbstractExchange,
        metadata: ExchangeMetadata,
        config: TraderConfig,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
    ):
        config.validate()

        self.exchange = exchange
        self.metadata = metadata
        self.config = config
        self.currency = config.currency
        self.asset = config.asset

        # 交易对不存在时抛出 UnsupportedPair
        self.capabilities = metadata.capabilities(self.currency, self.asset)

        self.clock = clock or AsyncioClock()
        self.events = events or EventBus()
        self.ledger = BalanceLedger(exchange)
        self.context = TradeContext()
        self.ticker: Optional[Ticker] = None

        self.controller = OrderLifecycleController(
            exchange=exchange,
            capabilities=self.capabilities,
            currency=self.currency,
            asset=self.asset,
            clock=self.clock,
            events=self.events,
            fill_check_delay=config.fill_check_delay,
            cancel_cooldown=config.cancel_cooldown,
        )

        self._lock = asyncio.Lock()
        self._recheck_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        exchange: AbstractExchange,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
    ) -> "TradeCoordinator":
        """
        根据配置创建协调器

        Raises:
            ValidationError: 交易所未知 / 不可交易 / 缺少凭证
            UnsupportedPair: 交易所不支持该交易对
        """
        metadata = get_exchange_metadata(config.exchange)
        if metadata is None:
            raise ValidationError(f"{config.exchange} is not a supported exchange", field="exchange")

        coordinator = cls(exchange, metadata, config.trader, clock=clock, events=events)

        if error := check_can_trade(config):
            raise ValidationError(error, field="exchange")

        return coordinator

    @property
    def pair(self) -> str:
        return self.config.pair

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def recheck_enabled(self) -> bool:
        if self.config.recheck_portfolio is not None:
            return self.config.recheck_portfolio
        return self.metadata.passive_balance_growth

    async def init(self) -> None:
        """获取余额和手续费，确认交易对资产存在"""
        logger.debug(f"getting balance & fee from {self.exchange.name}")
        _, fee = await self.ledger.refresh()

        # 缺少资产时抛出 UnknownAsset
        self.ledger.require(self.currency, self.asset)

        logger.info(f"trading at {self.exchange.name} ACTIVE")
        logger.info(f"{self.exchange.name} trading fee will be: {fee * 100}%")
        self.log_portfolio()

        if self.recheck_enabled and self._recheck_task is None:
            self._recheck_task = asyncio.create_task(self._recheck_loop())

    async def close(self) -> None:
        """停止后台复查任务"""
        if self._recheck_task:
            self._recheck_task.cancel()
            try:
                await self._recheck_task
            except asyncio.CancelledError:
                pass
            self._recheck_task = None

    def log_portfolio(self) -> None:
        logger.info(f"{self.exchange.name} portfolio:")
        for line in self.ledger.describe():
            logger.info(line)

    async def trade(self, what: Union[OrderSide, str]) -> Optional[LifecycleResult]:
        """
        执行一次交易信号

        业务规则导致的跳过 / 放弃不会抛出异常；ExchangeUnavailable 向调用方传播。

        Returns:
            生命周期结果，无法识别的信号返回 None
        """
        side = OrderSide.parse(what)
        if side is None:
            logger.warning(f"Ignoring unknown trade action: {what!r}")
            return None

        if self._lock.locked():
            logger.warning(f"{self.pair}: {side.value} ignored, an order is still in flight")
            return LifecycleResult(side, OrderState.SKIPPED, reason="busy")

        async with self._lock:
            try:
                result = await self.controller.run(side, self._plan)
            finally:
                # 已提交的订单可能仍挂在交易所上，即使后续查询失败也要记录
                if self.controller.submissions:
                    self.context.last_action = side

        self._record(result)
        logger.info(f"{self.pair}: {side.value} finished as {result.state.value}")
        return result

    async def _plan(self, side: OrderSide) -> Optional[OrderPlan]:
        """刷新行情和余额 (顺序执行，两者都必须成功)，计算下单计划，执行亏损规避"""
        self.ticker = await self.exchange.get_ticker()
        balances = await self.ledger.refresh_balances()

        # 空盘口时 bookTicker 返回 0
        if truncate_price(self.ticker.reference_price(side), side) <= 0:
            logger.info(
                f"{self.pair}: no usable {side.value} price "
                f"(bid {self.ticker.bid}, ask {self.ticker.ask}), skipping"
            )
            return None

        plan = size_order(
            side=side,
            ticker=self.ticker,
            balances=balances,
            capabilities=self.capabilities,
            currency=self.currency,
            asset=self.asset,
            trade_percent=self.config.trade_percent,
        )

        if self._avoids_loss(plan):
            return None
        return plan

    def _avoids_loss(self, plan: OrderPlan) -> bool:
        """亏损规避: 跳过会锁定比上次反向成交更差价格的交易"""
        if not self.config.loss_avoidant:
            return False

        price = plan.reference_price
        last_sell = self.context.last_sell_price
        last_buy = self.context.last_buy_price

        if plan.side == OrderSide.BUY and last_sell is not None and price > last_sell:
            logger.info(
                f"We are loss avoidant. Got advice to buy at {price} "
                f"but our last selling price was {last_sell}. Skipping this trend."
            )
            return True

        if plan.side == OrderSide.SELL and last_buy is not None and price < last_buy:
            logger.info(
                f"We are loss avoidant. Got advice to sell at {price} "
                f"but our last buying price was {last_buy}. Skipping this trend."
            )
            return True

        return False

    def _record(self, result: LifecycleResult) -> None:
        if result.filled and result.order is not None:
            if result.side == OrderSide.BUY:
                self.context.last_buy_price = result.order.reference_price
            else:
                self.context.last_sell_price = result.order.reference_price

    async def reinforce_position(self) -> Optional[LifecycleResult]:
        """
        多头时加仓

        仅当上一次动作是 BUY 时再次买入 (看涨时把增长的余额继续投入资产)。
        """
        if self.context.last_action != OrderSide.BUY:
            return None

        return await self.trade(OrderSide.BUY)

    async def recheck_portfolio(self) -> Optional[LifecycleResult]:
        """刷新余额并尝试加仓"""
        await self.ledger.refresh_balances()
        self.log_portfolio()
        return await self.reinforce_position()

    async def _recheck_loop(self) -> None:
        """余额被动增长的交易所定期复查"""
        while True:
            await self.clock.sleep(self.config.portfolio_recheck_interval)
            try:
                await self.recheck_portfolio()
            except TradeFlowError as e:
                logger.error(f"{self.pair}: portfolio recheck failed: {e}")
