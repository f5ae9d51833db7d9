"""
Binance 现货 REST 网关

实现 AbstractExchange:
- 签名请求 (HMAC-SHA256)
- 权重制速率限制
- aiohttp 网络错误统一转换为 ExchangeUnavailable
"""

import asyncio
import hashlib
import hmac
import logging
import time
import uuid
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp

from ..core.config import ExchangeConfig
from ..core.exceptions import AuthenticationError, ExchangeUnavailable, RateLimitError
from ..order.models import OrderHandle
from .base import AbstractExchange, Balance, Ticker
from .rate_limiter import WeightRateLimiter

logger = logging.getLogger(__name__)


class BinanceSpotGateway(AbstractExchange):
    """
    Binance 现货网关

    每个交易对一个实例 (symbol = asset + currency)。
    """

    name = "Binance"
    CLIENT_ID_PREFIX = "TF"

    def __init__(
        self,
        config: ExchangeConfig,
        currency: str,
        asset: str,
        limiter: Optional[WeightRateLimiter] = None,
        step_size: Optional[Decimal] = None,
    ):
        self.config = config
        self.currency = currency
        self.asset = asset
        self.symbol = f"{asset}{currency}"
        self.step_size = step_size
        self.limiter = limiter or WeightRateLimiter()
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"X-MBX-APIKEY": self.config.api_key},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _sign(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """追加 timestamp / recvWindow / signature"""
        signed = dict(params)
        signed["timestamp"] = int(time.time() * 1000)
        signed["recvWindow"] = self.config.recv_window
        query = urlencode(signed)
        signed["signature"] = hmac.new(
            self.config.api_secret.encode(),
            query.encode(),
            hashlib.sha256
        ).hexdigest()
        return signed

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
    ) -> Any:
        params = params or {}

        # 限流等待可能长于 recvWindow，必须在等待之后签名
        await self.limiter.acquire(method, endpoint)
        logger.debug(
            f"Binance: {method} {endpoint} (weight used {self.limiter.current_usage}, "
            f"available {self.limiter.available})"
        )
        if signed:
            params = self._sign(params)

        session = await self._get_session()
        url = f"{self.config.rest_url}{endpoint}"

        try:
            async with session.request(method, url, params=params) as resp:
                if resp.status == 200:
                    return await resp.json()

                body = await resp.text()
                if resp.status in (418, 429):
                    retry_after = float(resp.headers.get("Retry-After", 60))
                    self.limiter.handle_429(retry_after)
                    raise RateLimitError(
                        f"Rate limited, retry after {retry_after}s",
                        exchange=self.name,
                        retry_after=retry_after,
                        endpoint=endpoint,
                    )
                if resp.status in (401, 403):
                    raise AuthenticationError(f"HTTP {resp.status}: {body}", exchange=self.name)
                raise ExchangeUnavailable(
                    f"HTTP {resp.status}: {body}", exchange=self.name, endpoint=endpoint
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExchangeUnavailable(
                f"{method} {endpoint} failed: {e}", exchange=self.name, endpoint=endpoint
            ) from e

    async def get_portfolio(self) -> Balance:
        """
        获取余额

        Endpoint: GET /api/v3/account
        """
        data = await self._request("GET", "/api/v3/account", signed=True)
        return {
            b["asset"]: Decimal(b["free"])
            for b in data.get("balances", [])
        }

    async def get_fee(self) -> Decimal:
        """taker 手续费率 (commissionRates.taker)"""
        data = await self._request("GET", "/api/v3/account", signed=True)
        rates = data.get("commissionRates") or {}
        if "taker" in rates:
            return Decimal(rates["taker"])
        # 旧版字段以基点计
        return Decimal(data.get("takerCommission", 0)) / Decimal(10000)

    async def get_ticker(self) -> Ticker:
        """
        获取买一 / 卖一

        Endpoint: GET /api/v3/ticker/bookTicker
        """
        data = await self._request("GET", "/api/v3/ticker/bookTicker", {"symbol": self.symbol})
        return Ticker(bid=Decimal(data["bidPrice"]), ask=Decimal(data["askPrice"]))

    def build_order_payload(
        self,
        side: str,
        amount: Decimal,
        price: Optional[Decimal],
        client_order_id: str,
    ) -> Dict[str, Any]:
        """
        转换为 Binance 现货下单格式

        Endpoint: POST /api/v3/order
        """
        payload = {
            "symbol": self.symbol,
            "side": side,
            "type": "MARKET" if price is None else "LIMIT",
            "quantity": f"{self.quantize_amount(amount).normalize():f}",
            "newClientOrderId": client_order_id,
        }

        # Limit 订单需要 timeInForce
        if price is not None:
            payload["price"] = f"{price.normalize():f}"
            payload["timeInForce"] = "GTC"

        return payload

    def quantize_amount(self, amount: Decimal) -> Decimal:
        """按 LOT_SIZE 步长向下截断，截断后不会超过可用资金"""
        if self.step_size is None:
            return amount
        return amount.quantize(self.step_size, rounding=ROUND_DOWN)

    def _client_order_id(self) -> str:
        return f"{self.CLIENT_ID_PREFIX}-{uuid.uuid4().hex[:16]}"

    async def _place(self, side: str, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        payload = self.build_order_payload(side, amount, price, self._client_order_id())
        data = await self._request("POST", "/api/v3/order", payload, signed=True)
        handle = OrderHandle(
            order_id=str(data["orderId"]),
            symbol=self.symbol,
            client_order_id=data.get("clientOrderId", payload["newClientOrderId"]),
        )
        logger.debug(f"Binance: placed {side} order {handle.order_id} ({handle.client_order_id})")
        return handle

    async def buy(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        return await self._place("BUY", amount, price)

    async def sell(self, amount: Decimal, price: Optional[Decimal]) -> OrderHandle:
        return await self._place("SELL", amount, price)

    async def check_order(self, handle: OrderHandle) -> bool:
        """
        查询成交状态

        Endpoint: GET /api/v3/order
        """
        data = await self._request(
            "GET", "/api/v3/order",
            {"symbol": handle.symbol or self.symbol, "orderId": handle.order_id},
            signed=True,
        )
        return data.get("status") == "FILLED"

    async def cancel_order(self, handle: OrderHandle) -> None:
        """
        撤单

        Endpoint: DELETE /api/v3/order
        """
        await self._request(
            "DELETE", "/api/v3/order",
            {"symbol": handle.symbol or self.symbol, "orderId": handle.order_id},
            signed=True,
        )
