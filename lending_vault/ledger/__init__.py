"""Asset custody: tokens and the shared clerk ledger."""

from .clerk import Clerk
from .token import Token

__all__ = ["Clerk", "Token"]
