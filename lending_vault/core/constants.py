"""Constants for vault accounting and oracle calculations.

All amounts, prices and rates are integers in WAD fixed point.
Collateral factors are integers in basis points.
"""

# Time constants
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY  # Rates are quoted per 365-day year

# Precision constants
WAD = 10**18  # 18 decimal fixed point for amounts, prices and rates
SCALE = WAD
BPS_SCALE = 10_000  # Collateral factor unit (8500 = 85%)


def rate_per_second(annual_rate: int) -> int:
    """
    Convert a WAD annual rate into a WAD per-second rate.

    Example: rate_per_second(parse_units("0.005")) is 0.5% per year.
    """
    return annual_rate // SECONDS_PER_YEAR
