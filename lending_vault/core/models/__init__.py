"""Core data models for the lending vault."""

from .market import MarketConfig, MarketSnapshot, UserPosition
from .price import (
    OracleReading,
    Pending,
    PriceState,
    Quote,
    RefreshResult,
    RefreshStatus,
    Stable,
    Unset,
)

__all__ = [
    "MarketConfig",
    "MarketSnapshot",
    "UserPosition",
    "OracleReading",
    "Pending",
    "PriceState",
    "Quote",
    "RefreshResult",
    "RefreshStatus",
    "Stable",
    "Unset",
]
