"""
余额账本

保存最近一次从交易所获取的各资产余额和手续费率。
每次刷新整体替换快照，读取方不会看到部分更新的余额。
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..core.exceptions import UnknownAsset
from ..exchange.base import AbstractExchange, Balance

logger = logging.getLogger(__name__)


class BalanceLedger:
    """
    余额账本

    不做内部重试: 刷新失败时 ExchangeUnavailable 直接传播，
    由调用方 (启动 / 交易中) 决定重试策略。
    """

    def __init__(self, exchange: AbstractExchange):
        self.exchange = exchange
        self._balances: Dict[str, Decimal] = {}
        self._fee: Optional[Decimal] = None

    async def refresh(self) -> Tuple[Balance, Decimal]:
        """刷新余额和手续费"""
        balances = await self.refresh_balances()
        fee = await self.exchange.get_fee()
        self._fee = Decimal(fee)
        return balances, self._fee

    async def refresh_balances(self) -> Balance:
        """仅刷新余额"""
        portfolio = await self.exchange.get_portfolio()
        snapshot = {symbol: Decimal(amount) for symbol, amount in portfolio.items()}
        self._balances = snapshot
        return dict(snapshot)

    @property
    def balances(self) -> Balance:
        return dict(self._balances)

    @property
    def fee(self) -> Optional[Decimal]:
        return self._fee

    def balance_of(self, symbol: str) -> Decimal:
        """
        获取资产余额

        Raises:
            UnknownAsset: 最近一次快照中不存在该资产 (区别于余额为 0)
        """
        try:
            return self._balances[symbol]
        except KeyError:
            raise UnknownAsset(symbol) from None

    def require(self, *symbols: str) -> None:
        """确认快照中包含全部资产，否则立即失败"""
        for symbol in symbols:
            self.balance_of(symbol)

    def describe(self) -> List[str]:
        """余额日志行"""
        return [f"\t{symbol}: {amount:f}" for symbol, amount in sorted(self._balances.items())]
