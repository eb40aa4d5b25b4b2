"""Scenario simulation engine."""

import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import numpy as np

from lending_vault.core.clock import ManualClock
from lending_vault.core.constants import SECONDS_PER_YEAR
from lending_vault.core.errors import VaultError
from lending_vault.core.fixed_point import to_decimal
from lending_vault.deploy import Deployment
from lending_vault.sandbox.models import (
    ActionType,
    SimulationMetrics,
    SimulationPoint,
    SimulationResult,
    SimulationStep,
)

logger = logging.getLogger(__name__)


class VaultSimulator:
    """
    Engine for running scripted scenarios against a deployed vault.

    Each step advances the manual clock, runs one action and records the
    vault state. Failed actions are recorded, not raised, so a scenario can
    show which calls a vault rejects.
    """

    def __init__(self, deployment: Deployment):
        """
        Initialize simulator.

        Args:
            deployment: Deployed market driven by a ManualClock
        """
        if not isinstance(deployment.clock, ManualClock):
            raise TypeError("VaultSimulator needs a deployment with a ManualClock")
        self.deployment = deployment
        self.clock: ManualClock = deployment.clock
        self._withdrawn = 0
        self._surplus_at_start = 0

        self._handlers: Dict[ActionType, Callable[[SimulationStep], object]] = {
            ActionType.FUND: self._fund,
            ActionType.PUSH_PRICE: self._push_price,
            ActionType.REFRESH: self._refresh,
            ActionType.DEPOSIT: self._deposit,
            ActionType.BORROW: self._borrow,
            ActionType.DEPOSIT_AND_BORROW: self._deposit_and_borrow,
            ActionType.REPAY: self._repay,
            ActionType.REMOVE_COLLATERAL: self._remove_collateral,
            ActionType.ACCRUE: self._accrue,
            ActionType.WITHDRAW_SURPLUS: self._withdraw_surplus,
            ActionType.ADD_SUPPLY: self._add_supply,
            ActionType.REDUCE_SUPPLY: self._reduce_supply,
        }

    # Action handlers

    def _sender(self, step: SimulationStep) -> str:
        return step.account or self.deployment.deployer

    def _fund(self, step: SimulationStep):
        self.deployment.fund(
            self._sender(step),
            collateral=step.params.get("collateral", 0),
            debt=step.params.get("debt", 0),
        )

    def _push_price(self, step: SimulationStep):
        feeds = self.deployment.feeds
        if "feed" in step.params:
            feeds = [feeds[step.params["feed"]]]
        for feed in feeds:
            feed.set_prices(self._sender(step), [self.deployment.price_query], [step.params["price"]])

    def _refresh(self, step: SimulationStep):
        return self.deployment.oracle.set_prices(self._sender(step), [self.deployment.price_query])

    def _deposit(self, step: SimulationStep):
        sender = self._sender(step)
        self.deployment.vault.deposit(sender, step.params.get("beneficiary", sender), step.params.get("amount", 0))

    def _borrow(self, step: SimulationStep):
        sender = self._sender(step)
        return self.deployment.vault.borrow(
            sender,
            step.params.get("beneficiary", sender),
            step.params["amount"],
            step.params["min_price"],
            step.params["max_price"],
        )

    def _deposit_and_borrow(self, step: SimulationStep):
        sender = self._sender(step)
        return self.deployment.vault.deposit_and_borrow(
            sender,
            step.params.get("beneficiary", sender),
            step.params.get("collateral", 0),
            step.params.get("amount", 0),
            step.params["min_price"],
            step.params["max_price"],
        )

    def _repay(self, step: SimulationStep):
        vault = self.deployment.vault
        sender = self._sender(step)
        beneficiary = step.params.get("beneficiary", sender)
        share = step.params.get("share")
        if share is None:
            share = vault.debt_share_of(beneficiary)
        return vault.repay(sender, beneficiary, share)

    def _remove_collateral(self, step: SimulationStep):
        sender = self._sender(step)
        self.deployment.vault.remove_collateral(sender, step.params.get("to", sender), step.params["amount"])

    def _accrue(self, step: SimulationStep):
        return self.deployment.vault.accrue()

    def _withdraw_surplus(self, step: SimulationStep):
        amount = self.deployment.vault.withdraw_surplus(self._sender(step))
        self._withdrawn += amount
        return amount

    def _add_supply(self, step: SimulationStep):
        self.deployment.vault.add_supply(self._sender(step), step.params["amount"])

    def _reduce_supply(self, step: SimulationStep):
        self.deployment.vault.reduce_supply(self._sender(step), step.params["amount"])

    # Running

    def _record(self, step: SimulationStep, error: Optional[VaultError]) -> SimulationPoint:
        snapshot = self.deployment.vault.snapshot()
        return SimulationPoint(
            timestamp=snapshot.timestamp,
            action=step.describe(),
            total_debt_share=snapshot.total_debt_share,
            total_debt_value=snapshot.total_debt_value,
            surplus=snapshot.surplus,
            liquidity=snapshot.liquidity,
            price=snapshot.price,
            success=error is None,
            error=f"{type(error).__name__}: {error}" if error else "",
        )

    def run(
        self,
        steps: List[SimulationStep],
        name: str = "scenario",
        stop_on_error: bool = False,
    ) -> SimulationResult:
        """
        Run a scenario.

        Args:
            steps: Actions to run in order
            name: Scenario name
            stop_on_error: Stop at the first rejected action

        Returns:
            SimulationResult with one point per executed step and metrics
        """
        vault = self.deployment.vault
        start_time = self.clock.now()
        logger.info(f"Starting simulation: {name}, {len(steps)} steps on {vault.address}")

        points: List[SimulationPoint] = []
        self._withdrawn = 0
        self._surplus_at_start = vault.surplus
        result = SimulationResult(name=name, market=vault.address, start_time=start_time, end_time=start_time)

        for step in steps:
            self.clock.advance(step.delay)
            try:
                self._handlers[step.action](step)
                error = None
            except VaultError as e:
                logger.info(f"Step rejected: {step.describe()}: {e}")
                error = e
            points.append(self._record(step, error))

            if error is not None and stop_on_error:
                result.success = False
                result.error_message = f"{step.describe()} failed: {error}"
                break

        result.points = points
        result.end_time = self.clock.now()
        result.metrics = self._calculate_metrics(points, start_time, result.end_time)

        logger.info(
            f"Simulation complete: {len(points)} points, "
            f"{result.metrics.failed_steps} rejected, interest={result.metrics.total_interest}"
        )
        return result

    def _calculate_metrics(
        self,
        points: List[SimulationPoint],
        start_time: int,
        end_time: int,
    ) -> SimulationMetrics:
        """Interest, realized rate and utilization over the run."""
        total_interest = to_decimal(self.deployment.vault.surplus + self._withdrawn - self._surplus_at_start)
        if len(points) < 2:
            return SimulationMetrics(
                total_interest=total_interest,
                realized_rate=Decimal("0"),
                max_utilization=Decimal("0"),
                step_count=len(points),
                failed_steps=sum(1 for p in points if not p.success),
                duration_seconds=end_time - start_time,
            )

        timestamps = np.array([p.timestamp for p in points], dtype=float)
        debt = np.array([float(to_decimal(p.total_debt_value)) for p in points])
        surplus = np.array([float(to_decimal(p.surplus)) for p in points])
        liquidity = np.array([float(to_decimal(p.liquidity)) for p in points])

        # Interest accrued in an interval is charged on the debt at its start
        debt_seconds = float(np.sum(debt[:-1] * np.diff(timestamps)))
        if debt_seconds > 0:
            realized_rate = float(total_interest) * SECONDS_PER_YEAR / debt_seconds
        else:
            realized_rate = 0.0

        borrowed = debt - surplus
        lendable = borrowed + liquidity
        utilization = np.divide(borrowed, lendable, out=np.zeros_like(borrowed), where=lendable > 0)

        return SimulationMetrics(
            total_interest=total_interest,
            realized_rate=Decimal(str(round(realized_rate, 12))),
            max_utilization=Decimal(str(round(float(np.max(utilization)), 12))),
            step_count=len(points),
            failed_steps=sum(1 for p in points if not p.success),
            duration_seconds=end_time - start_time,
        )

    def format_summary(self, result: SimulationResult) -> str:
        """
        Format a plain-text summary of a simulation result.

        Args:
            result: Simulation result

        Returns:
            Formatted summary string
        """
        lines = []
        lines.append("=" * 80)
        lines.append(f"SIMULATION: {result.name} ({result.market})")
        lines.append("=" * 80)

        for p in result.points:
            status = "ok" if p.success else f"REJECTED {p.error}"
            lines.append(f"{p.timestamp:>12} {p.action:<50} {status}")

        if result.metrics:
            m = result.metrics
            lines.append("-" * 80)
            lines.append(
                f"interest={m.total_interest} rate={float(m.realized_rate) * 100:.4f}% "
                f"max_util={float(m.max_utilization) * 100:.2f}% rejected={m.failed_steps}"
            )
        lines.append("=" * 80)
        return "\n".join(lines)
