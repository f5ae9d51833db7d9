import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """
    时钟抽象

    订单生命周期中的两个固定延迟 (成交检查、撤单冷却) 都通过它等待，
    测试可注入假时钟而无需真实计时。
    """

    def now(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioClock:
    """基于事件循环的默认时钟"""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
