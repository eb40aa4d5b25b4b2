"""Error taxonomy for vault, ledger and oracle operations."""

from typing import Optional


class VaultError(Exception):
    """Base class for every failure surfaced by a vault component."""


class SlippageError(VaultError):
    """Oracle price is outside the caller supplied [min_price, max_price] bound."""

    def __init__(self, price: int, min_price: int, max_price: int):
        self.price = price
        self.min_price = min_price
        self.max_price = max_price
        super().__init__(f"price {price} outside [{min_price}, {max_price}]")


class UnsafeError(VaultError):
    """Debt would exceed the collateral implied borrow limit."""

    def __init__(self, account: str, debt_value: int, borrow_limit: int):
        self.account = account
        self.debt_value = debt_value
        self.borrow_limit = borrow_limit
        super().__init__(f"{account}: debt {debt_value} exceeds borrow limit {borrow_limit}")


class StalePriceError(VaultError):
    """Oracle has no price fresher than the staleness window."""

    def __init__(self, query: str, age: Optional[int] = None):
        self.query = query
        self.age = age
        if age is None:
            message = f"no price committed for {query}"
        else:
            message = f"price for {query} is {age}s old"
        super().__init__(message)


class SourceDeviationError(VaultError):
    """Primary sources disagree beyond the tolerated deviation."""

    def __init__(self, asset: str, deviation: int, max_deviation: int):
        self.asset = asset
        self.deviation = deviation
        self.max_deviation = max_deviation
        super().__init__(f"{asset}: source deviation {deviation} exceeds {max_deviation}")


class InsufficientLiquidityError(VaultError):
    """Market cannot supply the requested amount of debt asset."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"requested {requested}, only {available} available")


class DustDebtError(VaultError):
    """Resulting non-zero debt is below the market minimum debt size."""

    def __init__(self, debt_value: int, min_debt_size: int):
        self.debt_value = debt_value
        self.min_debt_size = min_debt_size
        super().__init__(f"debt {debt_value} below minimum {min_debt_size}")


class UnauthorizedError(VaultError):
    """Caller lacks the whitelist, feeder, refresher or owner role."""

    def __init__(self, caller: str, action: str):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not allowed to {action}")


class InsufficientBalanceError(VaultError):
    """Wallet or ledger balance is too small for the requested movement."""

    def __init__(self, asset: str, account: str, requested: int, available: int):
        self.asset = asset
        self.account = account
        self.requested = requested
        self.available = available
        super().__init__(f"{account} has {available} {asset}, needs {requested}")


class MarketNotConfiguredError(VaultError):
    """Risk registry holds no configuration for the market."""

    def __init__(self, market: str):
        self.market = market
        super().__init__(f"market {market} is not configured")
