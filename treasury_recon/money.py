"""
Money helpers.

Amounts are carried as signed integer cents everywhere inside the engine.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

from .exceptions import ValidationError

Number = Union[int, float, str, Decimal]

_CENT = Decimal("0.01")


def to_cents(value: Number) -> int:
    """
    Convert a dollar amount to integer cents, rounding half away from zero.

    Floats are routed through their shortest repr so 0.1 becomes 10 cents,
    not 9.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Not a monetary amount: {value!r}")
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        raise ValidationError(f"Not a monetary amount: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"Not a monetary amount: {value!r}")

    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int) -> float:
    """Return amount in standard units (dollars)."""
    return cents / 100.0


def format_amount(cents: int) -> str:
    """
    Shortest plain rendering of an amount: 25000 -> "250", 2550 -> "25.5",
    -14145 -> "-141.45". Used for text search over amounts.
    """
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:02d}".rstrip("0")


def format_currency(cents: int) -> str:
    """Human readable dollar string, e.g. -$1,234.50."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole:,}.{frac:02d}"
