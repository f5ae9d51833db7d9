"""
TradeFlow

把方向信号 (BUY/SELL) 转换为交易所订单，跟踪订单直至成交或撤单重下，
并维护用于计算下单规模的内存余额视图。
"""

__version__ = "1.0.0"
__author__ = "TradeFlow Team"

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name == "core":
        from . import core
        return core
    elif name == "exchange":
        from . import exchange
        return exchange
    elif name == "order":
        from . import order
        return order
    elif name == "portfolio":
        from . import portfolio
        return portfolio
    elif name == "trader":
        from . import trader
        return trader
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "core",
    "exchange",
    "order",
    "portfolio",
    "trader",
]
