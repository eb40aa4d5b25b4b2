"""Market configuration and state snapshot models."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from lending_vault.core.constants import BPS_SCALE
from lending_vault.core.fixed_point import to_decimal, wad_ratio


class MarketConfig(BaseModel):
    """Risk parameters of one market, as stored in the registry."""

    model_config = ConfigDict(frozen=True)

    collateral_factor: int = Field(ge=0, le=BPS_SCALE, description="Max borrow fraction in basis points")
    interest_per_second: int = Field(ge=0, description="WAD interest rate per second")
    min_debt_size: int = Field(ge=0, description="Smallest non-zero debt value allowed")

    @property
    def collateral_ratio(self) -> Decimal:
        """Collateral factor as a fraction (8500 -> 0.85)."""
        return Decimal(self.collateral_factor) / Decimal(BPS_SCALE)


@dataclass
class UserPosition:
    """A user's position in a market at snapshot time."""

    user: str
    collateral: int = 0
    debt_share: int = 0
    debt_value: int = 0

    @property
    def is_borrower(self) -> bool:
        """Check if user owes anything."""
        return self.debt_share > 0

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "collateral": str(self.collateral),
            "debt_share": str(self.debt_share),
            "debt_value": str(self.debt_value),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserPosition":
        return cls(
            user=data["user"],
            collateral=int(data.get("collateral", 0)),
            debt_share=int(data.get("debt_share", 0)),
            debt_value=int(data.get("debt_value", 0)),
        )


@dataclass
class MarketSnapshot:
    """Point-in-time view of a vault's accounting state."""

    market: str
    collateral_asset: str
    debt_asset: str
    timestamp: int

    total_debt_share: int
    total_debt_value: int
    surplus: int
    last_accrue_time: int

    # Idle debt asset held by the market in the clerk
    liquidity: int

    # Collateral price used for the snapshot, if the oracle had a fresh one
    price: Optional[int] = None

    positions: Dict[str, UserPosition] = field(default_factory=dict)

    @property
    def value_per_share(self) -> Decimal:
        """Debt value backing one debt share (1 before the first borrow)."""
        if self.total_debt_share == 0:
            return Decimal("1")
        return wad_ratio(self.total_debt_value, self.total_debt_share)

    @property
    def utilization(self) -> Decimal:
        """Share of lendable funds currently borrowed."""
        outstanding = self.total_debt_value - self.surplus
        return wad_ratio(outstanding, outstanding + self.liquidity)

    @property
    def total_debt(self) -> Decimal:
        """Total debt in token units."""
        return to_decimal(self.total_debt_value)

    def to_dict(self) -> dict:
        return {
            "market": self.market,
            "collateral_asset": self.collateral_asset,
            "debt_asset": self.debt_asset,
            "timestamp": self.timestamp,
            "total_debt_share": str(self.total_debt_share),
            "total_debt_value": str(self.total_debt_value),
            "surplus": str(self.surplus),
            "last_accrue_time": self.last_accrue_time,
            "liquidity": str(self.liquidity),
            "price": str(self.price) if self.price is not None else None,
            "positions": {user: p.to_dict() for user, p in self.positions.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarketSnapshot":
        price = data.get("price")
        return cls(
            market=data["market"],
            collateral_asset=data["collateral_asset"],
            debt_asset=data["debt_asset"],
            timestamp=int(data["timestamp"]),
            total_debt_share=int(data["total_debt_share"]),
            total_debt_value=int(data["total_debt_value"]),
            surplus=int(data["surplus"]),
            last_accrue_time=int(data["last_accrue_time"]),
            liquidity=int(data["liquidity"]),
            price=int(price) if price is not None else None,
            positions={
                user: UserPosition.from_dict(p) for user, p in data.get("positions", {}).items()
            },
        )
