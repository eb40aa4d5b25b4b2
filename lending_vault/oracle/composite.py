"""Multi-source oracle with deviation checks and delayed price commits."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from config.settings import Settings, get_settings
from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.clock import Clock
from lending_vault.core.constants import WAD
from lending_vault.core.errors import SourceDeviationError, StalePriceError, UnauthorizedError
from lending_vault.core.models import (
    OracleReading,
    Pending,
    PriceState,
    Quote,
    RefreshResult,
    RefreshStatus,
    Stable,
    Unset,
)
from lending_vault.oracle.price_feed import PriceFeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrimarySources:
    """Price sources registered for one asset."""

    max_deviation: int  # WAD fraction
    sources: Tuple[Tuple[PriceFeed, str], ...]


class CompositeOracle(Stateful):
    """
    Aggregates several price feeds per asset behind a two-phase commit.

    A refresh computes the mean of all sources into a pending price. The
    pending price becomes readable only on a later refresh made at least
    ``refresh_window`` seconds after it was computed, so a price moved
    within one transaction cannot be read until a second refresh.

    Reads never aggregate; they return the committed price while it is
    younger than ``max_staleness``.
    """

    _state_fields = ("_primary", "_states", "_refreshers")

    def __init__(
        self,
        owner: str,
        clock: Clock,
        refresh_window: Optional[int] = None,
        max_staleness: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.owner = owner
        self.clock = clock
        self.refresh_window = (
            settings.refresh_window_seconds if refresh_window is None else refresh_window
        )
        self.max_staleness = (
            settings.max_staleness_seconds if max_staleness is None else max_staleness
        )
        if self.refresh_window < 0:
            raise ValueError(f"refresh_window cannot be negative, got {self.refresh_window}")
        if self.max_staleness <= 0:
            raise ValueError(f"max_staleness must be positive, got {self.max_staleness}")

        self._primary: Dict[str, PrimarySources] = {}
        self._states: Dict[str, PriceState] = {}
        self._refreshers: Set[str] = {owner}

    # Administration

    @atomic
    def set_primary_sources(
        self,
        sender: str,
        asset: str,
        max_deviation: int,
        sources: List[PriceFeed],
        queries: List[str],
    ) -> None:
        """
        Register the price sources of an asset.

        Args:
            sender: Caller, must be the owner
            asset: Asset key used by ``get`` and ``set_prices``
            max_deviation: Max relative spread between sources (WAD fraction)
            sources: Price feeds
            queries: Feed-specific query, one per source
        """
        if sender != self.owner:
            raise UnauthorizedError(sender, "set primary sources")
        if not sources:
            raise ValueError(f"{asset}: at least one source is required")
        if len(sources) != len(queries):
            raise ValueError(f"Got {len(sources)} sources and {len(queries)} queries")
        if max_deviation < 0:
            raise ValueError(f"max_deviation cannot be negative, got {max_deviation}")

        self._primary[asset] = PrimarySources(
            max_deviation=max_deviation,
            sources=tuple(zip(sources, queries)),
        )
        self._states.setdefault(asset, Unset())
        logger.info(f"Primary sources for {asset}: {len(sources)} feed(s), max deviation {max_deviation}")

    @atomic
    def grant_refresher(self, sender: str, account: str) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, "grant refresher role")
        self._refreshers.add(account)

    @atomic
    def revoke_refresher(self, sender: str, account: str) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, "revoke refresher role")
        self._refreshers.discard(account)

    def primary_sources(self, asset: str) -> Optional[PrimarySources]:
        return self._primary.get(asset)

    # Refresh

    @atomic
    def set_prices(self, sender: str, queries: List[str]) -> List[RefreshResult]:
        """
        Refresh the price of each asset in ``queries``.

        For every asset a due pending price is promoted first, then a new
        pending price is computed from the sources. An asset whose sources
        disagree or report nothing keeps its price state; the other assets
        are still refreshed.

        Returns:
            One RefreshResult per query, in order
        """
        if sender not in self._refreshers:
            raise UnauthorizedError(sender, "refresh oracle prices")

        now = self.clock.now()
        return [self._refresh(asset, now) for asset in queries]

    def _refresh(self, asset: str, now: int) -> RefreshResult:
        primary = self._primary.get(asset)
        if primary is None:
            logger.warning(f"Refresh skipped for {asset}: no primary sources")
            return RefreshResult(asset=asset, status=RefreshStatus.UNKNOWN_ASSET)

        state = self._states.get(asset, Unset())
        promoted = False
        if isinstance(state, Pending) and state.ready(now, self.refresh_window):
            state = Stable(current=state.next)
            self._states[asset] = state
            promoted = True
            logger.info(f"Promoted {asset} price {state.current.price} computed at {state.current.timestamp}")

        prices = []
        for feed, query in primary.sources:
            updated, price = feed.get(query)
            if not updated or price <= 0:
                logger.warning(f"Refresh skipped for {asset}: {feed.name} has no price for {query}")
                return RefreshResult(asset=asset, status=RefreshStatus.SOURCE_UNAVAILABLE, promoted=promoted)
            prices.append(price)

        try:
            price = self._aggregate(asset, prices, primary.max_deviation)
        except SourceDeviationError as e:
            logger.warning(f"Refresh skipped: {e}")
            return RefreshResult(asset=asset, status=RefreshStatus.DEVIATION, promoted=promoted, error=e)

        self._states[asset] = Pending(current=state.current, next=Quote(price=price, timestamp=now))
        return RefreshResult(asset=asset, status=RefreshStatus.UPDATED, promoted=promoted, price=price)

    @staticmethod
    def _aggregate(asset: str, prices: List[int], max_deviation: int) -> int:
        """Mean of the source prices, rejecting sources that disagree."""
        low, high = min(prices), max(prices)
        deviation = (high - low) * WAD // low
        if deviation > max_deviation:
            raise SourceDeviationError(asset, deviation, max_deviation)
        return sum(prices) // len(prices)

    # Reads

    def peek(self, query: str) -> PriceState:
        """Raw price state of an asset."""
        return self._states.get(query, Unset())

    def get(self, query: str) -> OracleReading:
        """
        Committed price of an asset.

        Raises:
            StalePriceError: No price committed, or older than max_staleness
        """
        current = self.peek(query).current
        if current is None:
            raise StalePriceError(query)
        age = current.age(self.clock.now())
        if age > self.max_staleness:
            raise StalePriceError(query, age)
        return OracleReading(updated=True, price=current.price)
