"""Collateralized lending market with debt-share accounting."""

import logging
from typing import Dict, Iterable, List, Optional, Set

from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.clock import Clock
from lending_vault.core.constants import BPS_SCALE, WAD
from lending_vault.core.errors import (
    DustDebtError,
    InsufficientLiquidityError,
    SlippageError,
    StalePriceError,
    UnauthorizedError,
    UnsafeError,
)
from lending_vault.core.fixed_point import mul_div_down, mul_div_up
from lending_vault.core.models import MarketSnapshot, UserPosition
from lending_vault.ledger.clerk import Clerk
from lending_vault.oracle.composite import CompositeOracle
from lending_vault.risk.registry import VaultConfig

logger = logging.getLogger(__name__)


class Vault(Stateful):
    """
    Lending market for one collateral/debt asset pair.

    Borrowers hold debt shares; ``total_debt_value`` grows with accrued
    interest so every share is worth ``total_debt_value / total_debt_share``.
    Interest is accrued lazily at the start of every mutating call and the
    accrued amount is booked as protocol surplus.

    Collateral lives in the clerk under a per-user collateral account owned
    by this market, and idle debt asset (lendable liquidity) under the
    market's own account. The market must be whitelisted in the clerk.
    """

    _state_fields = (
        "total_debt_share",
        "total_debt_value",
        "surplus",
        "last_accrue_time",
        "_debt_shares",
        "_users",
    )

    def __init__(
        self,
        address: str,
        owner: str,
        collateral_asset: str,
        debt_asset: str,
        clerk: Clerk,
        vault_config: VaultConfig,
        oracle: CompositeOracle,
        oracle_query: str,
        clock: Clock,
        treasury: Optional[str] = None,
    ):
        self.address = address
        self.owner = owner
        self.collateral_asset = collateral_asset
        self.debt_asset = debt_asset
        self.clerk = clerk
        self.vault_config = vault_config
        self.oracle = oracle
        self.oracle_query = oracle_query
        self.clock = clock
        self.treasury = treasury or owner

        self.total_debt_share = 0
        self.total_debt_value = 0
        self.surplus = 0
        self.last_accrue_time = clock.now()
        self._debt_shares: Dict[str, int] = {}
        self._users: Set[str] = set()

    def participants(self) -> Iterable[Stateful]:
        return (self, *self.clerk.participants())

    # Accounts and balances

    def collateral_account(self, user: str) -> str:
        """Clerk account holding ``user``'s collateral in this market."""
        return f"{self.address}/{user}"

    def collateral_of(self, user: str) -> int:
        return self.clerk.balance_of(self.collateral_asset, self.collateral_account(user))

    def debt_share_of(self, user: str) -> int:
        return self._debt_shares.get(user, 0)

    @property
    def liquidity(self) -> int:
        """Idle debt asset available to borrowers."""
        return self.clerk.balance_of(self.debt_asset, self.address)

    @property
    def users(self) -> List[str]:
        return sorted(self._users)

    # Share conversion

    def debt_share_to_value(self, share: int, round_up: bool = False) -> int:
        """Convert debt shares into debt value."""
        if self.total_debt_share == 0:
            return share
        mul_div = mul_div_up if round_up else mul_div_down
        return mul_div(share, self.total_debt_value, self.total_debt_share)

    def debt_value_to_share(self, value: int, round_up: bool = False) -> int:
        """Convert debt value into debt shares (1:1 before the first borrow)."""
        if self.total_debt_share == 0:
            return value
        mul_div = mul_div_up if round_up else mul_div_down
        return mul_div(value, self.total_debt_share, self.total_debt_value)

    def user_debt_value(self, user: str) -> int:
        """What ``user`` owes, rounded up."""
        return self.debt_share_to_value(self.debt_share_of(user), round_up=True)

    # Safety

    def borrow_limit(self, user: str, price: int, collateral: Optional[int] = None) -> int:
        """
        Maximum debt value ``user``'s collateral supports at ``price``.

        borrow_limit = collateral * price / SCALE * collateral_factor / BPS_SCALE
        """
        if collateral is None:
            collateral = self.collateral_of(user)
        collateral_value = mul_div_down(collateral, price, WAD)
        factor = self.vault_config.collateral_factor(self.address, user)
        return mul_div_down(collateral_value, factor, BPS_SCALE)

    def is_safe(self, user: str, price: int) -> bool:
        return self.user_debt_value(user) <= self.borrow_limit(user, price)

    def _check_safe(self, user: str, debt_value: int, price: int) -> None:
        limit = self.borrow_limit(user, price)
        if debt_value > limit:
            raise UnsafeError(user, debt_value, limit)

    def _check_dust(self, debt_value: int) -> None:
        min_debt_size = self.vault_config.min_debt_size(self.address)
        if 0 < debt_value < min_debt_size:
            raise DustDebtError(debt_value, min_debt_size)

    def _read_price(self) -> int:
        updated, price = self.oracle.get(self.oracle_query)
        if not updated:
            raise StalePriceError(self.oracle_query)
        return price

    def _read_price_within(self, min_price: int, max_price: int) -> int:
        price = self._read_price()
        if not min_price <= price <= max_price:
            raise SlippageError(price, min_price, max_price)
        return price

    # Interest

    @atomic
    def accrue(self) -> int:
        """
        Accrue interest since the last accrual.

        Returns:
            Interest added to the total debt and to surplus
        """
        return self._accrue()

    def _accrue(self) -> int:
        now = self.clock.now()
        elapsed = now - self.last_accrue_time
        if elapsed <= 0:
            return 0
        if self.total_debt_value == 0:
            self.last_accrue_time = now
            return 0

        rate = self.vault_config.interest_per_second(self.address)
        interest = self.total_debt_value * elapsed * rate // WAD
        self.total_debt_value += interest
        self.surplus += interest
        self.last_accrue_time = now
        logger.debug(f"{self.address}: accrued {interest} over {elapsed}s")
        return interest

    # Collateral

    def _deposit_collateral(self, sender: str, beneficiary: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        if amount == 0:
            return
        self.clerk.deposit(
            self.address, self.collateral_asset, sender, self.collateral_account(beneficiary), amount
        )
        self._users.add(beneficiary)
        logger.info(f"{self.address}: {sender} deposited {amount} {self.collateral_asset} for {beneficiary}")

    @atomic
    def deposit(self, sender: str, beneficiary: str, amount: int) -> None:
        """
        Deposit collateral for ``beneficiary``.

        A zero deposit is valid and only accrues interest.
        """
        self._accrue()
        self._deposit_collateral(sender, beneficiary, amount)

    @atomic
    def remove_collateral(self, sender: str, to: str, amount: int) -> None:
        """Withdraw the sender's collateral to ``to``'s wallet; the position must stay safe."""
        self._accrue()
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        self.clerk.withdraw(
            self.address, self.collateral_asset, self.collateral_account(sender), to, amount
        )
        debt_value = self.user_debt_value(sender)
        if debt_value > 0:
            self._check_safe(sender, debt_value, self._read_price())
        logger.info(f"{self.address}: {sender} removed {amount} {self.collateral_asset}")

    # Borrowing

    def _borrow(self, sender: str, beneficiary: str, amount: int, price: int) -> int:
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        if amount == 0:
            return 0
        if sender != beneficiary:
            raise UnauthorizedError(sender, f"borrow on behalf of {beneficiary}")

        available = self.liquidity
        if available < amount:
            raise InsufficientLiquidityError(amount, available)

        share = self.debt_value_to_share(amount)
        if share == 0:
            # smaller than one share's value
            raise DustDebtError(amount, self.debt_share_to_value(1, round_up=True))
        user_share = self.debt_share_of(beneficiary) + share
        total_share = self.total_debt_share + share
        total_value = self.total_debt_value + amount
        debt_value = mul_div_up(user_share, total_value, total_share)

        self._check_dust(debt_value)
        self._check_safe(beneficiary, debt_value, price)

        self._debt_shares[beneficiary] = user_share
        self.total_debt_share = total_share
        self.total_debt_value = total_value
        self._users.add(beneficiary)

        self.clerk.withdraw(self.address, self.debt_asset, self.address, beneficiary, amount)
        logger.info(f"{self.address}: {beneficiary} borrowed {amount} {self.debt_asset} ({share} shares)")
        return share

    @atomic
    def borrow(
        self,
        sender: str,
        beneficiary: str,
        borrow_amount: int,
        min_price: int,
        max_price: int,
    ) -> int:
        """
        Borrow against collateral already deposited.

        Only the debtor may borrow: ``sender`` must equal ``beneficiary``,
        otherwise UnauthorizedError is raised.

        Returns:
            Debt shares minted
        """
        self._accrue()
        price = self._read_price_within(min_price, max_price)
        return self._borrow(sender, beneficiary, borrow_amount, price)

    @atomic
    def deposit_and_borrow(
        self,
        sender: str,
        beneficiary: str,
        collateral_amount: int,
        borrow_amount: int,
        min_price: int,
        max_price: int,
    ) -> int:
        """
        Deposit collateral and borrow in one call.

        Args:
            sender: Caller, pays the collateral
            beneficiary: Account credited with collateral, debt and borrowed funds.
                Must be ``sender`` when ``borrow_amount`` is non-zero
            collateral_amount: Collateral to deposit (may be 0)
            borrow_amount: Debt asset to borrow (may be 0)
            min_price: Lowest collateral price the caller accepts
            max_price: Highest collateral price the caller accepts

        Returns:
            Debt shares minted

        Raises:
            StalePriceError, SlippageError, InsufficientLiquidityError,
            DustDebtError, UnsafeError, UnauthorizedError (borrowing for
            another account)
        """
        self._accrue()
        self._deposit_collateral(sender, beneficiary, collateral_amount)
        price = self._read_price_within(min_price, max_price)
        return self._borrow(sender, beneficiary, borrow_amount, price)

    @atomic
    def repay(self, sender: str, beneficiary: str, share: int) -> int:
        """
        Repay up to ``share`` debt shares of ``beneficiary``, paid from the sender's wallet.

        Returns:
            Debt value paid
        """
        self._accrue()
        if share < 0:
            raise ValueError(f"share cannot be negative, got {share}")
        user_share = self.debt_share_of(beneficiary)
        share = min(share, user_share)
        if share == 0:
            return 0

        value = self.debt_share_to_value(share, round_up=True)
        remaining_share = user_share - share
        total_share = self.total_debt_share - share
        total_value = self.total_debt_value - value
        remaining_value = mul_div_up(remaining_share, total_value, total_share) if total_share else 0
        self._check_dust(remaining_value)

        self._debt_shares[beneficiary] = remaining_share
        self.total_debt_share = total_share
        self.total_debt_value = total_value

        self.clerk.deposit(self.address, self.debt_asset, sender, self.address, value)
        logger.info(f"{self.address}: {sender} repaid {value} {self.debt_asset} ({share} shares) for {beneficiary}")
        return value

    # Protocol administration

    def _only_owner(self, sender: str, action: str) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, action)

    @atomic
    def add_supply(self, sender: str, amount: int) -> None:
        """Deposit debt asset from the sender's wallet as lendable liquidity."""
        self._only_owner(sender, "add supply")
        self._accrue()
        self.clerk.deposit(self.address, self.debt_asset, sender, self.address, amount)
        logger.info(f"{self.address}: supply +{amount} {self.debt_asset}")

    @atomic
    def reduce_supply(self, sender: str, amount: int) -> None:
        """Withdraw idle liquidity to the sender's wallet. Existing debt is unaffected."""
        self._only_owner(sender, "reduce supply")
        self._accrue()
        available = self.liquidity
        if available < amount:
            raise InsufficientLiquidityError(amount, available)
        self.clerk.withdraw(self.address, self.debt_asset, self.address, sender, amount)
        logger.info(f"{self.address}: supply -{amount} {self.debt_asset}")

    @atomic
    def withdraw_surplus(self, sender: str) -> int:
        """
        Move all accrued surplus to the treasury's clerk balance.

        Returns:
            Amount moved
        """
        self._only_owner(sender, "withdraw surplus")
        self._accrue()
        amount = self.surplus
        available = self.liquidity
        if available < amount:
            raise InsufficientLiquidityError(amount, available)
        self.surplus = 0
        self.clerk.transfer(self.address, self.debt_asset, self.address, self.treasury, amount)
        logger.info(f"{self.address}: surplus {amount} {self.debt_asset} to {self.treasury}")
        return amount

    # Inspection

    def snapshot(self) -> MarketSnapshot:
        """Current accounting state, without accruing."""
        try:
            price: Optional[int] = self._read_price()
        except StalePriceError:
            price = None

        positions = {
            user: UserPosition(
                user=user,
                collateral=self.collateral_of(user),
                debt_share=self.debt_share_of(user),
                debt_value=self.user_debt_value(user),
            )
            for user in self.users
        }
        return MarketSnapshot(
            market=self.address,
            collateral_asset=self.collateral_asset,
            debt_asset=self.debt_asset,
            timestamp=self.clock.now(),
            total_debt_share=self.total_debt_share,
            total_debt_value=self.total_debt_value,
            surplus=self.surplus,
            last_accrue_time=self.last_accrue_time,
            liquidity=self.liquidity,
            price=price,
            positions=positions,
        )
