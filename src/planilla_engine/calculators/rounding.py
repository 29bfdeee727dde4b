"""Rounding and currency policy.

All money and quantity values are ``Decimal``. Results are quantized to two
places with round-half-to-even so rounding does not drift in one direction
across a large roster. Intermediate products are never rounded; only the final
output of each calculator is.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Convert a value to Decimal, rejecting binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to convert {type(value).__name__} to Decimal: {value!r}")
    return Decimal(value)


def round_currency(amount: Decimal | int | str) -> Decimal:
    """Round a money amount to cents (banker's rounding)."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_EVEN)


def round_quantity(value: Decimal | int | str) -> Decimal:
    """Round hours or days to two places (banker's rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def percent_of(base: Decimal, rate: Decimal) -> Decimal:
    """Unrounded ``base * rate`` where rate is a decimal fraction."""
    return to_decimal(base) * to_decimal(rate)


def cap(amount: Decimal, limit: Decimal) -> Decimal:
    """Clamp ``amount`` into ``[0, limit]``."""
    if amount <= ZERO or limit <= ZERO:
        return ZERO
    return min(amount, limit)
