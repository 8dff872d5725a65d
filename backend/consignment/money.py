# Overview: Conversions between Decimal amounts, integer cents and basis points.

"""
Money representation

Amounts are persisted as integer cents and split rates as integer basis
points (6000 == 60.00%). Arithmetic that needs rounding is done on Decimal
values; floats are never used for money.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .validation import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
MAX_PRICE_CENTS = 99_999_999  # $999,999.99
MAX_SPLIT_BPS = 10_000


def to_decimal(value, field: str = "value") -> Decimal:
    """Parse int / Decimal / numeric string into a Decimal (floats go through str)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / HUNDRED).quantize(CENT)


def decimal_to_cents(amount: Decimal) -> int:
    """Exact conversion; amounts with sub-cent precision are rejected."""
    scaled = amount * HUNDRED
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"Amount {amount} has more than 2 decimal places")
    return int(scaled)


def bps_to_percentage(bps: int) -> Decimal:
    return (Decimal(bps) / HUNDRED).quantize(CENT)


def percentage_to_bps(value, field: str = "split_percentage") -> int:
    """
    Parse a percentage in [0, 100] with at most 2 decimals into basis points.
    """
    pct = to_decimal(value, field)
    if pct < 0 or pct > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100", field=field)
    scaled = pct * HUNDRED
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"{field} allows at most 2 decimal places", field=field)
    return int(scaled)


def format_cents(cents: int) -> str:
    return f"{cents_to_decimal(cents):.2f}"
