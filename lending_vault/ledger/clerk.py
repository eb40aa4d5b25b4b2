"""Shared custody ledger for collateral and debt assets."""

import logging
from typing import Dict, Iterable, Set, Tuple

from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.errors import InsufficientBalanceError, UnauthorizedError
from lending_vault.ledger.token import Token

logger = logging.getLogger(__name__)


class Clerk(Stateful):
    """
    Custody of registered assets, with balances per (asset, account).

    Tokens deposited into the clerk are held in its own wallet and credited
    to an internal account. Funds of an account can be moved by the account
    itself or by a whitelisted operator (a vault).
    """

    _state_fields = ("_balances", "_totals", "_whitelist")

    def __init__(self, owner: str, address: str = "clerk"):
        self.owner = owner
        self.address = address
        self._tokens: Dict[str, Token] = {}
        self._balances: Dict[Tuple[str, str], int] = {}
        self._totals: Dict[str, int] = {}
        self._whitelist: Set[str] = set()

    def participants(self) -> Iterable[Stateful]:
        return (self, *self._tokens.values())

    def register_token(self, token: Token) -> None:
        """Make an asset custodiable. The token must accept the clerk as spender."""
        self._tokens[token.symbol] = token
        logger.info(f"Registered {token.symbol} in {self.address}")

    def token(self, asset: str) -> Token:
        try:
            return self._tokens[asset]
        except KeyError:
            raise ValueError(f"Unknown asset: {asset}") from None

    # Authorization

    def is_whitelisted(self, operator: str) -> bool:
        return operator in self._whitelist

    @atomic
    def whitelist(self, sender: str, operator: str, allowed: bool = True) -> None:
        """Grant or revoke the right to move any account's funds."""
        if sender != self.owner:
            raise UnauthorizedError(sender, "manage the clerk whitelist")
        if allowed:
            self._whitelist.add(operator)
        else:
            self._whitelist.discard(operator)
        logger.info(f"Whitelist {operator}: {allowed}")

    def _authorize(self, sender: str, from_: str, action: str) -> None:
        if sender != from_ and sender not in self._whitelist:
            raise UnauthorizedError(sender, f"{action} on behalf of {from_}")

    # Balances

    def balance_of(self, asset: str, account: str) -> int:
        return self._balances.get((asset, account), 0)

    def total_of(self, asset: str) -> int:
        """Total amount of an asset held in custody."""
        return self._totals.get(asset, 0)

    def _credit(self, asset: str, account: str, amount: int) -> None:
        self._balances[(asset, account)] = self.balance_of(asset, account) + amount

    def _debit(self, asset: str, account: str, amount: int) -> None:
        available = self.balance_of(asset, account)
        if available < amount:
            raise InsufficientBalanceError(asset, account, amount, available)
        self._balances[(asset, account)] = available - amount

    @staticmethod
    def _check_amount(amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")

    # Movements

    @atomic
    def deposit(self, sender: str, asset: str, from_: str, to: str, amount: int) -> int:
        """
        Pull tokens from ``from_``'s wallet into custody, credited to ``to``.

        Returns:
            Amount credited
        """
        self._check_amount(amount)
        self._authorize(sender, from_, "deposit")
        token = self.token(asset)
        if amount:
            token.transfer_from(self.address, from_, self.address, amount)
            self._credit(asset, to, amount)
            self._totals[asset] = self.total_of(asset) + amount
        logger.debug(f"Deposit {amount} {asset}: {from_} -> {to}")
        return amount

    @atomic
    def withdraw(self, sender: str, asset: str, from_: str, to: str, amount: int) -> int:
        """
        Debit ``from_``'s custody balance and pay the tokens to ``to``'s wallet.

        Returns:
            Amount paid out
        """
        self._check_amount(amount)
        self._authorize(sender, from_, "withdraw")
        token = self.token(asset)
        if amount:
            self._debit(asset, from_, amount)
            self._totals[asset] = self.total_of(asset) - amount
            token.transfer(self.address, to, amount)
        logger.debug(f"Withdraw {amount} {asset}: {from_} -> {to}")
        return amount

    @atomic
    def transfer(self, sender: str, asset: str, from_: str, to: str, amount: int) -> None:
        """Move a custody balance between two accounts."""
        self._check_amount(amount)
        self._authorize(sender, from_, "transfer")
        self.token(asset)
        self._debit(asset, from_, amount)
        self._credit(asset, to, amount)
        logger.debug(f"Transfer {amount} {asset}: {from_} -> {to}")
