"""
订单生命周期事件

每次状态转换都会产生一个结构化事件，外部可注册回调 (同步或异步)
以重建完整的订单生命周期，例如 Prometheus 指标。
"""

import inspect
import logging
import time
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleEvent:
    """单次状态转换"""
    pair: str
    side: str
    state: str
    attempt: int
    amount: Optional[Decimal] = None
    price: Optional[Decimal] = None
    order_id: Optional[str] = None
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("amount", "price"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


class EventBus:
    """事件分发"""

    def __init__(self):
        self._sinks: List[Callable] = []

    def register(self, sink: Callable) -> None:
        """注册事件回调"""
        self._sinks.append(sink)
        logger.debug(f"Registered lifecycle sink {sink!r}")

    def unregister(self, sink: Callable) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    async def emit(self, event: LifecycleEvent) -> None:
        """分发事件到回调，回调异常只记录不传播"""
        logger.debug(f"{event.pair} {event.side} -> {event.state}", extra={"lifecycle": event.to_dict()})

        for sink in list(self._sinks):
            try:
                if inspect.iscoroutinefunction(sink):
                    await sink(event)
                else:
                    sink(event)
            except Exception as e:
                logger.error(f"Lifecycle sink error: {e}")
