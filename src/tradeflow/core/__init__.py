"""Core configuration and exceptions."""

from .clock import AsyncioClock, Clock
from .config import Config, ExchangeConfig, MetricsConfig, PaperConfig, TraderConfig, load_config
from .exceptions import (
    TradeFlowError,
    ExchangeUnavailable,
    RateLimitError,
    AuthenticationError,
    UnknownAsset,
    UnsupportedPair,
    ValidationError,
    OrderRejected,
    InsufficientFunds,
    OrderTooSmall,
    IncompleteFill,
    InvalidTransition,
)

__all__ = [
    "AsyncioClock",
    "Clock",
    "Config",
    "ExchangeConfig",
    "MetricsConfig",
    "PaperConfig",
    "TraderConfig",
    "load_config",
    "TradeFlowError",
    "ExchangeUnavailable",
    "RateLimitError",
    "AuthenticationError",
    "UnknownAsset",
    "UnsupportedPair",
    "ValidationError",
    "OrderRejected",
    "InsufficientFunds",
    "OrderTooSmall",
    "IncompleteFill",
    "InvalidTransition",
]
