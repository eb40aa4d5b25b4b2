"""Per-market risk parameter registry."""

import logging
from typing import Dict, List, Union

from lending_vault.core.atomic import Stateful, atomic
from lending_vault.core.errors import MarketNotConfiguredError, UnauthorizedError
from lending_vault.core.models import MarketConfig

logger = logging.getLogger(__name__)


class VaultConfig(Stateful):
    """Collateral factor, interest rate and minimum debt size for each market."""

    _state_fields = ("_configs",)

    def __init__(self, owner: str):
        self.owner = owner
        self._configs: Dict[str, MarketConfig] = {}

    @atomic
    def set_config(
        self,
        sender: str,
        markets: List[str],
        configs: List[Union[MarketConfig, dict]],
    ) -> None:
        """
        Set risk parameters for several markets at once.

        Args:
            sender: Caller, must be the owner
            markets: Market addresses
            configs: One config (or dict of config fields) per market
        """
        if sender != self.owner:
            raise UnauthorizedError(sender, "set market config")
        if len(markets) != len(configs):
            raise ValueError(f"Got {len(markets)} markets and {len(configs)} configs")

        for market, config in zip(markets, configs):
            if not isinstance(config, MarketConfig):
                config = MarketConfig.model_validate(config)
            self._configs[market] = config
            logger.info(
                f"Config {market}: factor={config.collateral_factor}bps "
                f"rate={config.interest_per_second}/s min_debt={config.min_debt_size}"
            )

    def is_configured(self, market: str) -> bool:
        return market in self._configs

    def config(self, market: str) -> MarketConfig:
        try:
            return self._configs[market]
        except KeyError:
            raise MarketNotConfiguredError(market) from None

    def collateral_factor(self, market: str, account: str) -> int:
        """Collateral factor in basis points. The same for every account."""
        return self.config(market).collateral_factor

    def interest_per_second(self, market: str) -> int:
        return self.config(market).interest_per_second

    def min_debt_size(self, market: str) -> int:
        return self.config(market).min_debt_size
