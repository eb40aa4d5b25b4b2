"""Price oracles."""

from .composite import CompositeOracle, PrimarySources
from .price_feed import PriceFeed

__all__ = ["CompositeOracle", "PrimarySources", "PriceFeed"]
