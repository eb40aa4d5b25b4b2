"""Integer fixed-point helpers."""

from decimal import Decimal
from typing import Union

from .constants import WAD


def mul_div_down(a: int, b: int, denominator: int) -> int:
    """Return floor(a * b / denominator)."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_down by zero")
    return (a * b) // denominator


def mul_div_up(a: int, b: int, denominator: int) -> int:
    """Return ceil(a * b / denominator)."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_up by zero")
    product = a * b
    return product // denominator + (1 if product % denominator else 0)


def parse_units(value: Union[str, int, Decimal], decimals: int = 18) -> int:
    """
    Convert a human readable amount into integer units.

    parse_units("1.5") == 1_500_000_000_000_000_000
    """
    scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value} has more than {decimals} decimals")
    return int(scaled)


def to_decimal(amount: int, decimals: int = 18) -> Decimal:
    """Convert integer units into a Decimal token amount."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def wad_ratio(numerator: int, denominator: int) -> Decimal:
    """Ratio of two integers as a Decimal, 0 when the denominator is 0."""
    if denominator == 0:
        return Decimal("0")
    return Decimal(numerator) / Decimal(denominator)


__all__ = [
    "WAD",
    "mul_div_down",
    "mul_div_up",
    "parse_units",
    "to_decimal",
    "wad_ratio",
]
