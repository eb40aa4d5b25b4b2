"""Oracle price models.

A composite oracle slot moves through three states:

    Unset --refresh--> Pending(None, next)
    Pending --refresh after window--> Stable(next) --> Pending(next, new)

``Stable`` only persists when the refresh that promoted a price could not
compute a new one (sources disagreed or were unavailable).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Union

from lending_vault.core.errors import VaultError


class OracleReading(NamedTuple):
    """Result of a price read: whether a price exists, and the price."""

    updated: bool
    price: int


@dataclass(frozen=True)
class Quote:
    """A price and the time it was computed."""

    price: int
    timestamp: int

    def age(self, now: int) -> int:
        return now - self.timestamp


@dataclass(frozen=True)
class Unset:
    """No price has ever been computed."""

    @property
    def current(self) -> Optional[Quote]:
        return None

    @property
    def next(self) -> Optional[Quote]:
        return None


@dataclass(frozen=True)
class Stable:
    """A readable price with nothing awaiting promotion."""

    current: Quote

    @property
    def next(self) -> Optional[Quote]:
        return None


@dataclass(frozen=True)
class Pending:
    """A computed price waiting for the refresh window to pass."""

    current: Optional[Quote]
    next: Quote

    def __post_init__(self):
        if self.current is not None and self.current.timestamp > self.next.timestamp:
            raise ValueError(
                f"current price time {self.current.timestamp} is after next price time {self.next.timestamp}"
            )

    def ready(self, now: int, refresh_window: int) -> bool:
        """Check if the pending price may be promoted."""
        return self.next.age(now) >= refresh_window


PriceState = Union[Unset, Stable, Pending]


class RefreshStatus(Enum):
    """Outcome of refreshing one asset."""

    UPDATED = "updated"
    DEVIATION = "deviation"
    SOURCE_UNAVAILABLE = "source_unavailable"
    UNKNOWN_ASSET = "unknown_asset"


@dataclass
class RefreshResult:
    """Per-asset result of a composite oracle refresh."""

    asset: str
    status: RefreshStatus
    promoted: bool = False
    price: Optional[int] = None
    error: Optional[VaultError] = field(default=None, repr=False)

    @property
    def is_updated(self) -> bool:
        return self.status == RefreshStatus.UPDATED
