"""Integration tests running full market scenarios."""

import logging

import pytest
from rich.table import Table

from config.settings import configure_logging
from lending_vault.core.constants import SECONDS_PER_WEEK, WAD
from lending_vault.core.fixed_point import parse_units, to_decimal
from lending_vault.sandbox import SnapshotStorage, VaultSimulator, render_result, render_snapshot
from lending_vault.sandbox.models import ActionType, SimulationStep

from conftest import INTEREST_PER_SECOND, ONE

COLLATERAL = parse_units("10000000")


def deposit_and_borrow(account, amount, min_price=ONE, max_price=ONE, delay=0):
    return SimulationStep(
        action=ActionType.DEPOSIT_AND_BORROW,
        account=account,
        delay=delay,
        params={"collateral": COLLATERAL, "amount": amount, "min_price": min_price, "max_price": max_price},
    )


class TestVaultScenarios:
    """End-to-end scenarios driven through the simulator."""

    @pytest.fixture
    def simulator(self, deployment, alice, bob):
        return VaultSimulator(deployment)

    def test_accrue_for_52_weeks_and_withdraw_surplus(self, simulator, deployment):
        borrow_amount = parse_units("1000000")
        elapsed = 52 * SECONDS_PER_WEEK
        steps = [
            deposit_and_borrow("alice", borrow_amount),
            SimulationStep(action=ActionType.DEPOSIT, account="deployer", delay=elapsed, params={"amount": 0}),
            SimulationStep(action=ActionType.WITHDRAW_SURPLUS, account="deployer"),
        ]

        result = simulator.run(steps, name="one year")

        expected = borrow_amount * elapsed * INTEREST_PER_SECOND // WAD
        vault = deployment.vault
        assert result.success
        assert not result.failures
        assert deployment.debt.balance_of("alice") == borrow_amount
        assert vault.last_accrue_time == deployment.clock.now()
        assert vault.total_debt_share == borrow_amount
        assert vault.total_debt_value == borrow_amount + expected
        assert vault.surplus == 0
        assert result.metrics.total_interest == to_decimal(expected)
        assert result.points[1].surplus == expected

        before = deployment.debt.balance_of("deployer")
        deployment.clerk.withdraw("deployer", "SPELL", "deployer", "deployer", expected)
        assert deployment.debt.balance_of("deployer") - before == expected

    def test_realized_rate_and_utilization(self, simulator):
        steps = [
            deposit_and_borrow("alice", parse_units("1000000")),
            SimulationStep(action=ActionType.ACCRUE, delay=52 * SECONDS_PER_WEEK),
        ]

        result = simulator.run(steps, name="rate")

        assert float(result.metrics.realized_rate) == pytest.approx(0.005, rel=1e-6)
        assert float(result.metrics.max_utilization) == pytest.approx(0.01, rel=1e-6)
        assert result.metrics.duration_seconds == 52 * SECONDS_PER_WEEK

    def test_borrow_half_of_collateral(self, simulator, deployment):
        result = simulator.run([deposit_and_borrow("alice", parse_units("5000000"), max_price=parse_units("1.1"))])
        assert result.success
        assert deployment.debt.balance_of("alice") == parse_units("5000000")

    def test_borrow_at_max_collateral_ratio(self, simulator, deployment):
        steps = [
            deposit_and_borrow("alice", parse_units("8500000"), max_price=parse_units("1.1")),
            SimulationStep(
                action=ActionType.BORROW,
                account="alice",
                params={"amount": 1, "min_price": ONE, "max_price": ONE},
            ),
        ]

        result = simulator.run(steps, name="max ratio")

        assert deployment.debt.balance_of("alice") == parse_units("8500000")
        assert len(result.failures) == 1
        assert result.failures[0].error.startswith("UnsafeError")
        assert result.metrics.failed_steps == 1

    def test_stop_on_error(self, simulator):
        steps = [
            deposit_and_borrow("alice", parse_units("9000000")),
            deposit_and_borrow("bob", parse_units("1000000")),
        ]

        result = simulator.run(steps, stop_on_error=True)

        assert not result.success
        assert len(result.points) == 1
        assert "UnsafeError" in result.points[0].error

    def test_price_move_takes_a_refresh_window(self, simulator, deployment):
        window = deployment.oracle.refresh_window
        steps = [
            SimulationStep(action=ActionType.PUSH_PRICE, params={"price": 2 * ONE}),
            SimulationStep(action=ActionType.REFRESH),
            deposit_and_borrow("alice", parse_units("1000000"), min_price=2 * ONE, max_price=2 * ONE),
            SimulationStep(action=ActionType.REFRESH, delay=window),
            deposit_and_borrow("bob", parse_units("1000000"), min_price=2 * ONE, max_price=2 * ONE),
        ]

        result = simulator.run(steps)

        assert [p.success for p in result.points] == [True, True, False, True, True]
        assert result.points[2].error.startswith("SlippageError")
        assert result.points[4].price == 2 * ONE

    def test_repay_and_remove_collateral(self, simulator, deployment):
        steps = [
            deposit_and_borrow("bob", parse_units("1000000")),
            SimulationStep(action=ActionType.REPAY, account="bob", delay=SECONDS_PER_WEEK),
            SimulationStep(action=ActionType.REMOVE_COLLATERAL, account="bob", params={"amount": COLLATERAL}),
        ]

        result = simulator.run(steps)

        assert result.success
        assert not result.failures
        assert deployment.vault.debt_share_of("bob") == 0
        assert deployment.vault.collateral_of("bob") == 0
        assert deployment.collateral.balance_of("bob") == parse_units("100000000")

    def test_format_summary(self, simulator):
        steps = [
            deposit_and_borrow("alice", parse_units("8500000")),
            SimulationStep(
                action=ActionType.BORROW,
                account="alice",
                params={"amount": 1, "min_price": ONE, "max_price": ONE},
            ),
        ]
        result = simulator.run(steps, name="summary")

        summary = simulator.format_summary(result)

        assert "SIMULATION: summary" in summary
        assert "REJECTED" in summary


class TestReporting:
    """Tests for rich rendering."""

    def test_render_result(self, deployment, alice):
        simulator = VaultSimulator(deployment)
        result = simulator.run([deposit_and_borrow("alice", parse_units("1000000"))], name="render")

        table = render_result(result)

        assert isinstance(table, Table)
        assert table.row_count == 1
        assert "render" in table.title
        assert "rejected" in table.caption

    def test_render_snapshot(self, deployment):
        panel = render_snapshot(deployment.vault.snapshot())
        assert panel.title == deployment.vault.address


class TestStorage:
    """Tests for snapshot and result storage."""

    @pytest.fixture
    def storage(self, settings):
        return SnapshotStorage(settings=settings)

    def test_snapshot_round_trip(self, storage, deployment, alice):
        vault = deployment.vault
        vault.deposit_and_borrow(alice, alice, COLLATERAL, parse_units("1000000"), ONE, ONE)
        snapshot = vault.snapshot()

        snapshot_id = storage.save_snapshot(snapshot)
        loaded = storage.load_snapshot(vault.address, snapshot_id)

        assert loaded.total_debt_value == snapshot.total_debt_value
        assert loaded.price == snapshot.price
        assert loaded.positions[alice].debt_share == snapshot.positions[alice].debt_share
        assert storage.get_latest_snapshot(vault.address).timestamp == snapshot.timestamp

    def test_list_and_delete(self, storage, deployment, clock):
        vault = deployment.vault
        first = storage.save_snapshot(vault.snapshot())
        clock.advance(60)
        second = storage.save_snapshot(vault.snapshot())

        assert [s["id"] for s in storage.list_snapshots(vault.address)] == [second, first]
        assert storage.delete_snapshot(vault.address, first)
        assert not storage.delete_snapshot(vault.address, first)
        assert storage.load_snapshot(vault.address, first) is None

    def test_same_second_snapshots_are_kept(self, storage, deployment, alice):
        vault = deployment.vault
        first = storage.save_snapshot(vault.snapshot())
        vault.deposit(alice, alice, COLLATERAL)
        second = storage.save_snapshot(vault.snapshot())

        assert first != second
        assert second == f"{first}_1"
        assert storage.load_snapshot(vault.address, first).positions == {}
        assert alice in storage.load_snapshot(vault.address, second).positions
        assert [s["id"] for s in storage.list_snapshots(vault.address)] == [second, first]
        assert alice in storage.get_latest_snapshot(vault.address).positions

    def test_missing_market(self, storage):
        assert storage.list_snapshots("nowhere") == []
        assert storage.get_latest_snapshot("nowhere") is None

    def test_save_result(self, storage, deployment, alice):
        result = VaultSimulator(deployment).run([deposit_and_borrow("alice", parse_units("1000000"))], name="saved run")

        result_id = storage.save_result(result)
        data = storage.load_result_data(result_id)

        assert data["name"] == "saved run"
        assert len(data["points"]) == 1
        assert storage.load_result_data("missing") is None


def test_configure_logging(settings):
    configure_logging(settings)
    assert logging.getLogger("lending_vault").level == logging.DEBUG
