"""Risk parameter registry."""

from .registry import VaultConfig

__all__ = ["VaultConfig"]
