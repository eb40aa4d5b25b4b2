"""Minimal fungible token holding wallet balances."""

import logging
from typing import Dict

from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.errors import InsufficientBalanceError, UnauthorizedError

logger = logging.getLogger(__name__)


class Token(Stateful):
    """
    Fungible asset with per-account wallet balances.

    Only the owner may mint. The clerk registered through ``approve_spender``
    may move balances on behalf of any holder.
    """

    _state_fields = ("_balances", "_total_supply", "_spenders")

    def __init__(self, symbol: str, owner: str, decimals: int = 18):
        self.symbol = symbol
        self.owner = owner
        self.decimals = decimals
        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        self._spenders: set = set()

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @atomic
    def mint(self, sender: str, to: str, amount: int) -> None:
        """Create new tokens in ``to``'s wallet."""
        if sender != self.owner:
            raise UnauthorizedError(sender, f"mint {self.symbol}")
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount
        logger.info(f"Minted {amount} {self.symbol} to {to}")

    @atomic
    def approve_spender(self, sender: str, spender: str, allowed: bool = True) -> None:
        """Allow or forbid ``spender`` to move any holder's balance."""
        if sender != self.owner:
            raise UnauthorizedError(sender, f"approve spenders of {self.symbol}")
        if allowed:
            self._spenders.add(spender)
        else:
            self._spenders.discard(spender)

    @atomic
    def transfer(self, sender: str, to: str, amount: int) -> None:
        """Move tokens from the sender's own wallet."""
        self._move(sender, to, amount)

    @atomic
    def transfer_from(self, spender: str, from_: str, to: str, amount: int) -> None:
        """Move tokens out of ``from_``'s wallet on its behalf."""
        if spender != from_ and spender not in self._spenders:
            raise UnauthorizedError(spender, f"spend {self.symbol} of {from_}")
        self._move(from_, to, amount)

    def _move(self, from_: str, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        available = self.balance_of(from_)
        if available < amount:
            raise InsufficientBalanceError(self.symbol, from_, amount, available)
        self._balances[from_] = available - amount
        self._balances[to] = self.balance_of(to) + amount
