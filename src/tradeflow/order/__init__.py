"""Order sizing and lifecycle module."""

from .models import Order, OrderHandle, OrderPlan, OrderSide


# Lazy imports to avoid circular dependencies with the exchange layer
def __getattr__(name):
    if name in ("size_order", "truncate_price", "available_funds", "minimum_amount", "UNBOUNDED_ORDER_AMOUNT"):
        from . import sizer
        return getattr(sizer, name)
    if name in ("OrderLifecycleController", "OrderState", "LifecycleResult", "check_order_plan", "transition"):
        from . import lifecycle
        return getattr(lifecycle, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Order",
    "OrderHandle",
    "OrderPlan",
    "OrderSide",
    "size_order",
    "truncate_price",
    "available_funds",
    "minimum_amount",
    "UNBOUNDED_ORDER_AMOUNT",
    "OrderLifecycleController",
    "OrderState",
    "LifecycleResult",
    "check_order_plan",
    "transition",
]
