"""Core module - models, constants, errors and shared infrastructure."""

from .atomic import Stateful, atomic
from .clock import Clock, ManualClock, SystemClock
from .constants import BPS_SCALE, SCALE, SECONDS_PER_YEAR, WAD
from .errors import (
    DustDebtError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    MarketNotConfiguredError,
    SlippageError,
    SourceDeviationError,
    StalePriceError,
    UnauthorizedError,
    UnsafeError,
    VaultError,
)
from .models import MarketConfig, MarketSnapshot, OracleReading, UserPosition

__all__ = [
    "Stateful",
    "atomic",
    "Clock",
    "ManualClock",
    "SystemClock",
    "BPS_SCALE",
    "SCALE",
    "SECONDS_PER_YEAR",
    "WAD",
    "DustDebtError",
    "InsufficientBalanceError",
    "InsufficientLiquidityError",
    "MarketNotConfiguredError",
    "SlippageError",
    "SourceDeviationError",
    "StalePriceError",
    "UnauthorizedError",
    "UnsafeError",
    "VaultError",
    "MarketConfig",
    "MarketSnapshot",
    "OracleReading",
    "UserPosition",
]
