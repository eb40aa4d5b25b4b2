"""Wire tokens, clerk, registry, oracle and vault into a working market."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from config.settings import Settings, get_settings
from lending_vault.core.clock import Clock, ManualClock
from lending_vault.core.models import MarketConfig
from lending_vault.ledger import Clerk, Token
from lending_vault.market import Vault
from lending_vault.oracle import CompositeOracle, PriceFeed
from lending_vault.risk import VaultConfig

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """All components of one deployed market."""

    deployer: str
    clock: Clock
    collateral: Token
    debt: Token
    clerk: Clerk
    vault_config: VaultConfig
    feeds: List[PriceFeed]
    oracle: CompositeOracle
    vault: Vault

    @property
    def price_query(self) -> str:
        return self.vault.oracle_query

    def push_price(self, price: int, sender: Optional[str] = None) -> None:
        """Feed the same price to every feed and refresh the composite oracle."""
        sender = sender or self.deployer
        for feed in self.feeds:
            feed.set_prices(sender, [self.price_query], [price])
        self.oracle.set_prices(sender, [self.price_query])

    def commit_price(self, price: int) -> None:
        """
        Make ``price`` readable right away.

        Pushes the price, waits out the refresh window and refreshes again,
        so the clock must be a ManualClock.
        """
        if not isinstance(self.clock, ManualClock):
            raise TypeError("commit_price needs a ManualClock")
        self.push_price(price)
        self.clock.advance(self.oracle.refresh_window)
        self.oracle.set_prices(self.deployer, [self.price_query])

    def fund(self, account: str, collateral: int = 0, debt: int = 0) -> None:
        """Mint tokens into an account's wallet."""
        if collateral:
            self.collateral.mint(self.deployer, account, collateral)
        if debt:
            self.debt.mint(self.deployer, account, debt)


def deploy_environment(
    config: MarketConfig,
    deployer: str = "deployer",
    collateral_symbol: str = "MAGIC",
    debt_symbol: str = "SPELL",
    feed_count: int = 1,
    max_deviation: int = 0,
    initial_supply: int = 0,
    clock: Optional[Clock] = None,
    settings: Optional[Settings] = None,
    treasury: Optional[str] = None,
) -> Deployment:
    """
    Deploy a complete market.

    Args:
        config: Risk parameters of the vault
        deployer: Owner of every component
        collateral_symbol: Collateral asset key
        debt_symbol: Debt asset key
        feed_count: Number of primary price feeds
        max_deviation: Tolerated spread between feeds (WAD fraction)
        initial_supply: Debt asset minted to the deployer and added as liquidity
        clock: Time source (ManualClock at 0 by default)
        settings: Oracle settings
        treasury: Surplus receiver (deployer by default)

    Returns:
        Deployment with every component wired together
    """
    settings = settings or get_settings()
    clock = clock or ManualClock()

    collateral = Token(collateral_symbol, owner=deployer)
    debt = Token(debt_symbol, owner=deployer)

    clerk = Clerk(owner=deployer)
    for token in (collateral, debt):
        token.approve_spender(deployer, clerk.address)
        clerk.register_token(token)

    vault_config = VaultConfig(owner=deployer)

    feeds = [PriceFeed(owner=deployer, clock=clock, name=f"feed-{i}") for i in range(feed_count)]
    oracle = CompositeOracle(owner=deployer, clock=clock, settings=settings)
    query = f"{collateral_symbol}/{debt_symbol}"
    oracle.set_primary_sources(deployer, query, max_deviation, feeds, [query] * feed_count)

    vault = Vault(
        address=f"vault:{query}",
        owner=deployer,
        collateral_asset=collateral_symbol,
        debt_asset=debt_symbol,
        clerk=clerk,
        vault_config=vault_config,
        oracle=oracle,
        oracle_query=query,
        clock=clock,
        treasury=treasury,
    )
    clerk.whitelist(deployer, vault.address)
    vault_config.set_config(deployer, [vault.address], [config])

    deployment = Deployment(
        deployer=deployer,
        clock=clock,
        collateral=collateral,
        debt=debt,
        clerk=clerk,
        vault_config=vault_config,
        feeds=feeds,
        oracle=oracle,
        vault=vault,
    )

    if initial_supply:
        deployment.fund(deployer, debt=initial_supply)
        vault.add_supply(deployer, initial_supply)

    logger.info(f"Deployed {vault.address} with {feed_count} feed(s)")
    return deployment
