"""Collateralized lending vault with a multi-source price oracle."""

from .deploy import Deployment, deploy_environment
from .ledger import Clerk, Token
from .market import Vault
from .oracle import CompositeOracle, PriceFeed
from .risk import VaultConfig

__all__ = [
    "Deployment",
    "deploy_environment",
    "Clerk",
    "Token",
    "Vault",
    "CompositeOracle",
    "PriceFeed",
    "VaultConfig",
]
