"""Unit tests for the Vault lending market."""

import pytest
from decimal import Decimal

from lending_vault.core.constants import SECONDS_PER_WEEK, WAD
from lending_vault.core.errors import (
    DustDebtError,
    InsufficientLiquidityError,
    SlippageError,
    StalePriceError,
    UnauthorizedError,
    UnsafeError,
)
from lending_vault.core.fixed_point import parse_units

from conftest import INTEREST_PER_SECOND, MAX_STALENESS, ONE, REFRESH_WINDOW

TEN_MILLION = parse_units("10000000")
ONE_MILLION = parse_units("1000000")


@pytest.fixture
def vault(deployment):
    return deployment.vault


def borrow(vault, account, collateral, amount, price=ONE):
    return vault.deposit_and_borrow(account, account, collateral, amount, price, price)


@pytest.fixture
def grown_market(deployment, bob, clock):
    """bob owes 1,000,000 SPELL plus 500 weeks of interest, with a fresh price."""
    vault = deployment.vault
    borrow(vault, bob, TEN_MILLION, ONE_MILLION)
    clock.advance(500 * SECONDS_PER_WEEK)
    deployment.commit_price(ONE)
    vault.accrue()
    return vault


class TestAccrue:
    """Tests for interest accrual."""

    def test_no_elapsed_time_is_noop(self, vault, bob):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        before = (vault.total_debt_value, vault.surplus, vault.last_accrue_time)
        assert vault.accrue() == 0
        assert (vault.total_debt_value, vault.surplus, vault.last_accrue_time) == before

    def test_no_debt_only_moves_time(self, vault, clock):
        clock.advance(3600)
        assert vault.accrue() == 0
        assert vault.surplus == 0
        assert vault.total_debt_value == 0
        assert vault.last_accrue_time == clock.now()

    def test_interest_after_52_weeks(self, vault, bob, clock):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        elapsed = 52 * SECONDS_PER_WEEK
        clock.advance(elapsed)

        interest = vault.accrue()

        expected = ONE_MILLION * elapsed * INTEREST_PER_SECOND // WAD
        assert interest == expected
        assert vault.surplus == expected
        assert vault.total_debt_value == ONE_MILLION + expected
        assert vault.user_debt_value(bob) == ONE_MILLION + expected

    def test_mutating_calls_accrue_first(self, vault, bob, alice, clock):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        clock.advance(SECONDS_PER_WEEK)
        vault.deposit(alice, alice, 0)
        assert vault.last_accrue_time == clock.now()
        assert vault.surplus > 0


class TestBorrow:
    """Tests for borrowing."""

    def test_first_borrow_mints_shares_one_to_one(self, vault, alice, deployment):
        share = borrow(vault, alice, TEN_MILLION, ONE_MILLION)
        assert share == ONE_MILLION
        assert vault.debt_share_of(alice) == ONE_MILLION
        assert vault.total_debt_share == vault.total_debt_value == ONE_MILLION
        assert deployment.debt.balance_of(alice) == ONE_MILLION
        assert vault.collateral_of(alice) == TEN_MILLION

    def test_borrow_up_to_limit(self, vault, alice):
        borrow(vault, alice, TEN_MILLION, parse_units("8500000"))
        with pytest.raises(UnsafeError):
            vault.borrow(alice, alice, 1, ONE, ONE)
        assert vault.debt_share_of(alice) == parse_units("8500000")

    def test_borrow_over_limit(self, vault, alice):
        with pytest.raises(UnsafeError):
            borrow(vault, alice, TEN_MILLION, parse_units("8500000") + 1)

    def test_borrow_against_existing_collateral(self, vault, alice):
        vault.deposit(alice, alice, TEN_MILLION)
        vault.borrow(alice, alice, ONE_MILLION, ONE, ONE)
        assert vault.user_debt_value(alice) == ONE_MILLION

    def test_price_below_range(self, vault, alice):
        with pytest.raises(SlippageError) as exc_info:
            borrow(vault, alice, TEN_MILLION, ONE_MILLION, price=2 * ONE)
        assert exc_info.value.price == ONE

    def test_price_above_range(self, vault, alice):
        with pytest.raises(SlippageError):
            vault.deposit_and_borrow(alice, alice, TEN_MILLION, ONE_MILLION, 0, ONE - 1)

    def test_failed_borrow_rolls_back_deposit(self, vault, alice, deployment):
        with pytest.raises(SlippageError):
            borrow(vault, alice, TEN_MILLION, ONE_MILLION, price=2 * ONE)
        assert vault.collateral_of(alice) == 0
        assert deployment.collateral.balance_of(alice) == parse_units("100000000")
        assert alice not in vault.users

    def test_stale_price(self, vault, alice, clock):
        clock.advance(MAX_STALENESS - REFRESH_WINDOW + 1)
        with pytest.raises(StalePriceError):
            borrow(vault, alice, TEN_MILLION, ONE_MILLION)

    def test_insufficient_liquidity(self, vault, alice, deployment):
        available = vault.liquidity
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            borrow(vault, alice, parse_units("100000000"), available + 1)
        assert exc_info.value.available == available

    def test_dust_borrow(self, vault, alice):
        with pytest.raises(DustDebtError):
            borrow(vault, alice, TEN_MILLION, parse_units("0.5"))

    def test_zero_borrow_only_deposits(self, vault, alice):
        assert borrow(vault, alice, TEN_MILLION, 0) == 0
        assert vault.collateral_of(alice) == TEN_MILLION
        assert vault.total_debt_share == 0

    def test_borrow_for_someone_else(self, vault, alice):
        vault.deposit(alice, "carol", TEN_MILLION)
        with pytest.raises(UnauthorizedError):
            vault.borrow(alice, "carol", ONE_MILLION, ONE, ONE)

    def test_deposit_for_someone_else(self, vault, alice):
        vault.deposit(alice, "carol", TEN_MILLION)
        assert vault.collateral_of("carol") == TEN_MILLION
        assert vault.collateral_of(alice) == 0

    def test_later_borrow_rounds_shares_down(self, vault, alice, bob, clock):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        clock.advance(SECONDS_PER_WEEK)
        vault.accrue()
        total_share, total_value = vault.total_debt_share, vault.total_debt_value

        share = borrow(vault, alice, TEN_MILLION, ONE_MILLION)

        assert share == ONE_MILLION * total_share // total_value
        assert share < ONE_MILLION
        assert vault.total_debt_value >= vault.total_debt_share

    def test_borrow_below_one_share_value(self, vault, grown_market, alice):
        one_share = -(-vault.total_debt_value // vault.total_debt_share)
        assert one_share > 1

        with pytest.raises(DustDebtError) as exc_info:
            borrow(vault, alice, TEN_MILLION, 1)

        assert exc_info.value.min_debt_size == one_share
        assert vault.debt_share_of(alice) == 0
        assert vault.collateral_of(alice) == 0

    def test_fresh_borrower_never_owes_more_than_received(self, vault, grown_market, deployment):
        for offset in range(50):
            account = f"borrower-{offset}"
            amount = 2 * ONE + offset
            deployment.fund(account, collateral=parse_units("10"))
            total_share, total_value = vault.total_debt_share, vault.total_debt_value

            vault.deposit_and_borrow(account, account, parse_units("10"), amount, ONE, ONE)

            owed = vault.user_debt_value(account)
            assert owed <= amount
            assert (amount - owed) * total_share <= total_value


class TestRepay:
    """Tests for repaying debt."""

    def test_repay_all(self, vault, bob, clock, deployment):
        share = borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        clock.advance(52 * SECONDS_PER_WEEK)
        owed = vault.user_debt_value(bob)
        wallet = deployment.debt.balance_of(bob)

        paid = vault.repay(bob, bob, share)

        assert paid >= ONE_MILLION
        assert paid == vault.surplus + ONE_MILLION
        assert owed <= paid
        assert vault.debt_share_of(bob) == 0
        assert vault.total_debt_share == 0
        assert vault.total_debt_value == 0
        assert deployment.debt.balance_of(bob) == wallet - paid

    def test_round_trip_with_interest_and_other_borrower(self, vault, grown_market, alice, deployment):
        total_share, total_value = vault.total_debt_share, vault.total_debt_value
        one_share = -(-total_value // total_share)
        amount = parse_units("1234.567")

        share = borrow(vault, alice, TEN_MILLION, amount)
        paid = vault.repay(alice, alice, share)

        assert vault.debt_share_of(alice) == 0
        assert vault.total_debt_share == total_share
        assert total_value <= vault.total_debt_value <= total_value + one_share
        assert paid <= amount
        assert deployment.debt.balance_of(alice) == amount - paid

    def test_repay_more_than_owed_is_clamped(self, vault, bob):
        share = borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        paid = vault.repay(bob, bob, share * 2)
        assert paid == ONE_MILLION
        assert vault.debt_share_of(bob) == 0

    def test_repay_without_debt(self, vault, alice):
        assert vault.repay(alice, alice, ONE_MILLION) == 0

    def test_partial_repay(self, vault, bob):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        paid = vault.repay(bob, bob, ONE_MILLION // 4)
        assert paid == ONE_MILLION // 4
        assert vault.user_debt_value(bob) == ONE_MILLION - ONE_MILLION // 4

    def test_repay_leaving_dust(self, vault, bob):
        borrow(vault, bob, TEN_MILLION, parse_units("2"))
        with pytest.raises(DustDebtError):
            vault.repay(bob, bob, parse_units("1.5"))
        assert vault.debt_share_of(bob) == parse_units("2")

    def test_repay_for_someone_else(self, vault, alice, bob, deployment):
        share = borrow(vault, alice, TEN_MILLION, ONE_MILLION)
        bob_wallet = deployment.debt.balance_of(bob)
        vault.repay(bob, alice, share)
        assert vault.debt_share_of(alice) == 0
        assert deployment.debt.balance_of(bob) == bob_wallet - ONE_MILLION

    def test_repay_needs_no_price(self, vault, bob, clock):
        share = borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        clock.advance(MAX_STALENESS * 2)
        vault.repay(bob, bob, share)
        assert vault.total_debt_share == 0


class TestCollateral:
    """Tests for collateral removal."""

    def test_remove_without_debt(self, vault, alice, clock, deployment):
        vault.deposit(alice, alice, TEN_MILLION)
        clock.advance(MAX_STALENESS * 2)
        vault.remove_collateral(alice, alice, TEN_MILLION)
        assert vault.collateral_of(alice) == 0
        assert deployment.collateral.balance_of(alice) == parse_units("100000000")

    def test_remove_keeping_position_safe(self, vault, alice):
        borrow(vault, alice, TEN_MILLION, parse_units("8000000"))
        vault.remove_collateral(alice, alice, parse_units("500000"))
        assert vault.collateral_of(alice) == parse_units("9500000")

    def test_remove_making_position_unsafe(self, vault, alice):
        borrow(vault, alice, TEN_MILLION, parse_units("8000000"))
        with pytest.raises(UnsafeError):
            vault.remove_collateral(alice, alice, ONE_MILLION)
        assert vault.collateral_of(alice) == TEN_MILLION

    def test_remove_to_other_wallet(self, vault, alice, deployment):
        vault.deposit(alice, alice, TEN_MILLION)
        vault.remove_collateral(alice, "carol", ONE_MILLION)
        assert deployment.collateral.balance_of("carol") == ONE_MILLION

    def test_is_safe(self, vault, alice):
        borrow(vault, alice, TEN_MILLION, parse_units("8500000"))
        assert vault.is_safe(alice, ONE)
        assert not vault.is_safe(alice, ONE - 1)


class TestSupplyAndSurplus:
    """Tests for owner-only liquidity and surplus management."""

    def test_withdraw_surplus_to_treasury(self, vault, bob, clock, deployment):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        clock.advance(52 * SECONDS_PER_WEEK)
        vault.accrue()
        surplus = vault.surplus

        amount = vault.withdraw_surplus("deployer")

        assert amount == surplus
        assert vault.surplus == 0
        assert deployment.clerk.balance_of("SPELL", "deployer") == surplus

        wallet = deployment.debt.balance_of("deployer")
        deployment.clerk.withdraw("deployer", "SPELL", "deployer", "deployer", surplus)
        assert deployment.debt.balance_of("deployer") == wallet + surplus

    def test_withdraw_surplus_only_owner(self, vault):
        with pytest.raises(UnauthorizedError):
            vault.withdraw_surplus("alice")

    def test_reduce_and_add_supply(self, vault, deployment):
        liquidity = vault.liquidity
        vault.reduce_supply("deployer", ONE_MILLION)
        assert vault.liquidity == liquidity - ONE_MILLION
        assert deployment.debt.balance_of("deployer") == ONE_MILLION

        vault.add_supply("deployer", ONE_MILLION)
        assert vault.liquidity == liquidity

    def test_reduce_supply_beyond_liquidity(self, vault):
        with pytest.raises(InsufficientLiquidityError):
            vault.reduce_supply("deployer", vault.liquidity + 1)

    def test_supply_only_owner(self, vault, bob):
        with pytest.raises(UnauthorizedError):
            vault.add_supply(bob, 1)
        with pytest.raises(UnauthorizedError):
            vault.reduce_supply(bob, 1)

    def test_reduce_supply_keeps_debt(self, vault, bob):
        borrow(vault, bob, TEN_MILLION, ONE_MILLION)
        vault.reduce_supply("deployer", vault.liquidity)
        assert vault.liquidity == 0
        assert vault.user_debt_value(bob) == ONE_MILLION


class TestSnapshot:
    """Tests for snapshots."""

    def test_snapshot(self, vault, alice, bob):
        borrow(vault, alice, TEN_MILLION, ONE_MILLION)
        vault.deposit(bob, bob, TEN_MILLION)
        snapshot = vault.snapshot()

        assert snapshot.market == vault.address
        assert snapshot.price == ONE
        assert set(snapshot.positions) == {alice, bob}
        assert snapshot.positions[alice].debt_value == ONE_MILLION
        assert snapshot.positions[bob].debt_share == 0
        assert snapshot.total_debt == Decimal("1000000")

    def test_snapshot_with_stale_price(self, vault, clock):
        clock.advance(MAX_STALENESS * 2)
        assert vault.snapshot().price is None
