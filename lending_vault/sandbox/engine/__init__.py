"""Sandbox simulation engine."""

from .simulator import VaultSimulator

__all__ = ["VaultSimulator"]
