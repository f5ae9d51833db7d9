"""
Binance 现货权重制速率限制器

规则:
- 6000 权重/分钟 (REQUEST_WEIGHT)
- 不同端点权重不同
- 超限返回 HTTP 429 + Retry-After
"""

import asyncio
import time
from collections import deque
from typing import Deque, Tuple


class WeightRateLimiter:
    """
    滑动窗口权重限制器

    所有请求共享一个窗口，预留 10% 缓冲。
    """

    ENDPOINT_WEIGHTS = {
        ("GET", "/api/v3/account"): 20,
        ("GET", "/api/v3/ticker/bookTicker"): 2,
        ("GET", "/api/v3/order"): 4,
        ("POST", "/api/v3/order"): 1,
        ("DELETE", "/api/v3/order"): 1,
    }

    def __init__(self, max_weight: int = 6000, window_seconds: int = 60):
        self.max_weight = max_weight
        self.window_seconds = window_seconds

        self._requests: Deque[Tuple[float, int]] = deque()  # (timestamp, weight)
        self._current_weight: int = 0
        self._blocked_until: float = 0
        self._lock = asyncio.Lock()

    async def acquire(self, method: str, endpoint: str) -> None:
        """获取请求许可"""
        weight = self.ENDPOINT_WEIGHTS.get((method, endpoint), 1)

        async with self._lock:
            now = time.time()

            # 检查是否被封禁
            if now < self._blocked_until:
                await asyncio.sleep(self._blocked_until - now)
                now = time.time()

            self._cleanup(now)

            effective_limit = int(self.max_weight * 0.9)

            # 等待直到有足够额度
            while self._current_weight + weight > effective_limit and self._requests:
                oldest = self._requests[0][0]
                sleep_time = oldest + self.window_seconds - now + 0.1
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
                now = time.time()
                self._cleanup(now)

            self._requests.append((now, weight))
            self._current_weight += weight

    def handle_429(self, retry_after: float) -> None:
        """处理 429 响应"""
        self._blocked_until = time.time() + retry_after

    def _cleanup(self, now: float) -> None:
        """清理过期请求"""
        cutoff = now - self.window_seconds
        while self._requests and self._requests[0][0] < cutoff:
            _, weight = self._requests.popleft()
            self._current_weight -= weight

    @property
    def current_usage(self) -> int:
        """当前使用的权重"""
        self._cleanup(time.time())
        return self._current_weight

    @property
    def available(self) -> int:
        """可用权重"""
        return self.max_weight - self.current_usage
