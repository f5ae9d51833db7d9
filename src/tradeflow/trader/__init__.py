"""Trade coordination module."""

from .coordinator import TradeContext, TradeCoordinator

__all__ = ["TradeContext", "TradeCoordinator"]
