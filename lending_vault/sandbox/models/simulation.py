"""Simulation step and result models."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from lending_vault.core.fixed_point import to_decimal


class ActionType(Enum):
    """Vault or oracle action performed by a simulation step."""

    FUND = "fund"
    PUSH_PRICE = "push_price"
    REFRESH = "refresh"
    DEPOSIT = "deposit"
    BORROW = "borrow"
    DEPOSIT_AND_BORROW = "deposit_and_borrow"
    REPAY = "repay"
    REMOVE_COLLATERAL = "remove_collateral"
    ACCRUE = "accrue"
    WITHDRAW_SURPLUS = "withdraw_surplus"
    ADD_SUPPLY = "add_supply"
    REDUCE_SUPPLY = "reduce_supply"


@dataclass
class SimulationStep:
    """
    One scheduled action.

    ``delay`` is the number of seconds to advance the clock before the
    action runs. ``params`` are the action's keyword arguments.
    """

    action: ActionType
    account: str = ""
    delay: int = 0
    params: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.params.items())
        who = f"{self.account}: " if self.account else ""
        return f"{who}{self.action.value}({args})"


@dataclass
class SimulationPoint:
    """Vault state after a step."""

    timestamp: int
    action: str

    total_debt_share: int
    total_debt_value: int
    surplus: int
    liquidity: int
    price: Optional[int] = None

    # Events
    success: bool = True
    error: str = ""

    @property
    def value_per_share(self) -> Decimal:
        if self.total_debt_share == 0:
            return Decimal("1")
        return Decimal(self.total_debt_value) / Decimal(self.total_debt_share)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "total_debt_share": str(self.total_debt_share),
            "total_debt_value": str(self.total_debt_value),
            "surplus": str(self.surplus),
            "liquidity": str(self.liquidity),
            "price": str(self.price) if self.price is not None else None,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class SimulationMetrics:
    """Aggregated metrics from a simulation run."""

    # Interest
    total_interest: Decimal         # Surplus accrued over the run, in tokens
    realized_rate: Decimal          # Annualized interest / average debt
    max_utilization: Decimal

    # Events
    step_count: int
    failed_steps: int

    # Time
    duration_seconds: int

    def to_dict(self) -> dict:
        return {
            "total_interest": str(self.total_interest),
            "realized_rate": str(self.realized_rate),
            "max_utilization": str(self.max_utilization),
            "step_count": self.step_count,
            "failed_steps": self.failed_steps,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class SimulationResult:
    """Complete result of a simulation run."""

    name: str
    market: str
    start_time: int
    end_time: int

    points: List[SimulationPoint] = field(default_factory=list)
    metrics: Optional[SimulationMetrics] = None

    success: bool = True
    error_message: Optional[str] = None

    @property
    def failures(self) -> List[SimulationPoint]:
        return [p for p in self.points if not p.success]

    @property
    def final_debt(self) -> Decimal:
        if not self.points:
            return Decimal("0")
        return to_decimal(self.points[-1].total_debt_value)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "market": self.market,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "points": [p.to_dict() for p in self.points],
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "success": self.success,
            "error_message": self.error_message,
        }
