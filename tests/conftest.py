"""Pytest configuration and fixtures."""

import pytest

from config.settings import Settings
from lending_vault.core.clock import ManualClock
from lending_vault.core.constants import SECONDS_PER_YEAR, WAD
from lending_vault.core.fixed_point import parse_units
from lending_vault.core.models import MarketConfig
from lending_vault.deploy import Deployment, deploy_environment

MIN_DEBT_SIZE = parse_units("1")
COLLATERAL_FACTOR = 8500  # 85%
INTEREST_PER_SECOND = parse_units("0.005") // SECONDS_PER_YEAR  # 0.5% per year
REFRESH_WINDOW = 15 * 60
MAX_STALENESS = 24 * 60 * 60
ONE = WAD


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        max_staleness_seconds=MAX_STALENESS,
        refresh_window_seconds=REFRESH_WINDOW,
        storage_dir=tmp_path / "storage",
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def market_config() -> MarketConfig:
    return MarketConfig(
        collateral_factor=COLLATERAL_FACTOR,
        interest_per_second=INTEREST_PER_SECOND,
        min_debt_size=MIN_DEBT_SIZE,
    )


@pytest.fixture
def deployment(market_config, clock, settings) -> Deployment:
    """
    A deployed MAGIC/SPELL vault with plenty of SPELL liquidity and a
    committed price of 1 SPELL per MAGIC.
    """
    deployment = deploy_environment(
        market_config,
        deployer="deployer",
        feed_count=1,
        initial_supply=parse_units("100000000"),
        clock=clock,
        settings=settings,
    )
    deployment.commit_price(ONE)
    return deployment


@pytest.fixture
def alice(deployment) -> str:
    """Account funded with 100,000,000 MAGIC."""
    deployment.fund("alice", collateral=parse_units("100000000"))
    return "alice"


@pytest.fixture
def bob(deployment) -> str:
    """Account funded with 100,000,000 MAGIC and 1,000,000 SPELL."""
    deployment.fund("bob", collateral=parse_units("100000000"), debt=parse_units("1000000"))
    return "bob"
