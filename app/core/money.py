"""
Money helpers.

All amounts are ``Decimal`` dollars rounded half-up to the cent after
every arithmetic step, matching the integer-cents representation Stripe
uses. Conversion to and from cents happens only at the Stripe boundary.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Coerce int, str, float or Decimal to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    """Round to the cent, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    """Dollars to integer cents (e.g. Decimal("19.99") -> 1999)."""
    return int(round_money(value) * 100)

