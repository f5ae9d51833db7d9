"""
TradeFlow 自定义异常

提供层次化的异常类，用于精确的错误处理。

- 配置错误 (UnknownAsset / UnsupportedPair / ValidationError): 启动时致命
- 交易所错误 (ExchangeUnavailable): 向调用方传播，不做内部盲目重试
- 业务结果 (InsufficientFunds / OrderTooSmall / IncompleteFill): 记录日志，不抛给调用方
"""

from decimal import Decimal
from typing import Optional


class TradeFlowError(Exception):
    """TradeFlow 基础异常类"""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class ExchangeUnavailable(TradeFlowError):
    """交易所暂时不可用 (网络 / API 故障)"""

    def __init__(self, message: str, exchange: str = "", endpoint: str = ""):
        super().__init__(message, code="EXCHANGE_UNAVAILABLE")
        self.exchange = exchange
        self.endpoint = endpoint


class RateLimitError(ExchangeUnavailable):
    """速率限制错误"""

    def __init__(
        self,
        message: str,
        exchange: str = "",
        retry_after: float = 0,
        endpoint: str = ""
    ):
        super().__init__(message, exchange=exchange, endpoint=endpoint)
        self.code = "RATE_LIMIT_ERROR"
        self.retry_after = retry_after


class AuthenticationError(TradeFlowError):
    """认证错误 (API Key/Secret 无效)"""

    def __init__(self, message: str, exchange: str = ""):
        super().__init__(message, code="AUTH_ERROR")
        self.exchange = exchange


class UnknownAsset(TradeFlowError):
    """最近一次余额快照中不存在该资产"""

    def __init__(self, symbol: str):
        super().__init__(f"Unknown asset: {symbol}", code="UNKNOWN_ASSET")
        self.symbol = symbol


class UnsupportedPair(TradeFlowError):
    """交易所元数据中不存在该交易对"""

    def __init__(self, exchange: str, currency: str, asset: str):
        super().__init__(
            f"{exchange} does not support {asset}/{currency}",
            code="UNSUPPORTED_PAIR"
        )
        self.exchange = exchange
        self.currency = currency
        self.asset = asset


class ValidationError(TradeFlowError):
    """参数验证错误"""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class OrderRejected(TradeFlowError):
    """下单前检查未通过 (稳态结果，非异常情况)"""

    def __init__(
        self,
        message: str,
        code: str,
        amount: Decimal,
        limit: Decimal
    ):
        super().__init__(message, code=code)
        self.amount = amount
        self.limit = limit


class InsufficientFunds(OrderRejected):
    """订单数量超过可用资金"""

    def __init__(self, amount: Decimal, available: Decimal, symbol: str = ""):
        super().__init__(
            f"insufficient {symbol} ({available}) for amount {amount}",
            code="INSUFFICIENT_FUNDS",
            amount=amount,
            limit=available
        )
        self.symbol = symbol


class OrderTooSmall(OrderRejected):
    """订单数量低于交易所最小下单量"""

    def __init__(self, amount: Decimal, minimum: Decimal):
        super().__init__(
            f"amount {amount} is below the minimum of {minimum}",
            code="ORDER_TOO_SMALL",
            amount=amount,
            limit=minimum
        )


class IncompleteFill(TradeFlowError):
    """订单在检查时未完全成交 (触发撤单重下)"""

    def __init__(self, order_id: str):
        super().__init__(f"order {order_id} was not (fully) filled", code="INCOMPLETE_FILL")
        self.order_id = order_id


class InvalidTransition(TradeFlowError):
    """订单状态机非法转换"""

    def __init__(self, current: str, target: str):
        super().__init__(f"illegal transition {current} -> {target}", code="INVALID_TRANSITION")
        self.current = current
        self.target = target
