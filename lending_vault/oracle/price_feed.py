"""Single trusted price source fed by privileged accounts."""

import logging
from typing import Dict, List, Set

from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.clock import Clock
from lending_vault.core.errors import UnauthorizedError
from lending_vault.core.models import OracleReading, Quote

logger = logging.getLogger(__name__)


class PriceFeed(Stateful):
    """
    Price source that feeders push prices into.

    There is no staleness or deviation logic: the last write wins and trust
    lies entirely with the feeder role.
    """

    _state_fields = ("_prices", "_feeders")

    def __init__(self, owner: str, clock: Clock, name: str = "feed"):
        self.owner = owner
        self.name = name
        self.clock = clock
        self._prices: Dict[str, Quote] = {}
        self._feeders: Set[str] = {owner}

    def is_feeder(self, account: str) -> bool:
        return account in self._feeders

    @atomic
    def grant_feeder(self, sender: str, account: str) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, f"grant feeder role on {self.name}")
        self._feeders.add(account)

    @atomic
    def revoke_feeder(self, sender: str, account: str) -> None:
        if sender != self.owner:
            raise UnauthorizedError(sender, f"revoke feeder role on {self.name}")
        self._feeders.discard(account)

    @atomic
    def set_prices(self, sender: str, assets: List[str], prices: List[int]) -> None:
        """
        Record new prices for several assets.

        Args:
            sender: Caller, must hold the feeder role
            assets: Asset keys
            prices: WAD prices, one per asset
        """
        if sender not in self._feeders:
            raise UnauthorizedError(sender, f"feed prices to {self.name}")
        if len(assets) != len(prices):
            raise ValueError(f"Got {len(assets)} assets and {len(prices)} prices")

        now = self.clock.now()
        for asset, price in zip(assets, prices):
            if price < 0:
                raise ValueError(f"price cannot be negative, got {price} for {asset}")
            self._prices[asset] = Quote(price=price, timestamp=now)
            logger.debug(f"{self.name}: {asset} = {price}")

    def get(self, query: str) -> OracleReading:
        """Latest price for ``query``; ``updated`` is False if none was pushed."""
        quote = self._prices.get(query)
        if quote is None:
            return OracleReading(updated=False, price=0)
        return OracleReading(updated=True, price=quote.price)

    def last_update(self, query: str) -> int:
        """Timestamp of the last price for ``query`` (0 if never set)."""
        quote = self._prices.get(query)
        return quote.timestamp if quote else 0
