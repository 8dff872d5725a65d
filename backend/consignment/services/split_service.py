# Overview: Consignor/shop split of a sale price.

"""
Commission split calculator.

consignor_amount = round(sale_price * split_percentage / 100, 2)
shop_amount      = sale_price - consignor_amount

Rounding is half-even (banker's rounding) on Decimal values, so the two
shares always add back up to the sale price exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from ..money import CENT, HUNDRED, MAX_SPLIT_BPS, cents_to_decimal, decimal_to_cents, to_decimal
from ..validation import ValidationError


@dataclass(frozen=True)
class SplitResult:
    consignor_amount: Decimal
    shop_amount: Decimal
    split_percentage: Decimal


def compute_split(sale_price, split_percentage) -> SplitResult:
    """
    Split a sale price between consignor and shop.

    sale_price must be > 0 and split_percentage within [0, 100]; both accept
    Decimal, int or numeric strings.
    """
    price = to_decimal(sale_price, "sale_price")
    pct = to_decimal(split_percentage, "split_percentage")

    if price <= 0:
        raise ValidationError("sale_price must be greater than 0", field="sale_price")
    if pct < 0 or pct > HUNDRED:
        raise ValidationError("split_percentage must be between 0 and 100", field="split_percentage")

    consignor_amount = (price * pct / HUNDRED).quantize(CENT, rounding=ROUND_HALF_EVEN)
    shop_amount = price - consignor_amount

    return SplitResult(
        consignor_amount=consignor_amount,
        shop_amount=shop_amount,
        split_percentage=pct,
    )


def split_cents(sale_price_cents: int, split_bps: int) -> tuple[int, int]:
    """Cents form of compute_split: returns (consignor_cents, shop_cents)."""
    if not 0 <= split_bps <= MAX_SPLIT_BPS:
        raise ValidationError("split must be between 0 and 100 percent", field="split_percentage")
    result = compute_split(cents_to_decimal(sale_price_cents), Decimal(split_bps) / HUNDRED)
    consignor_cents = decimal_to_cents(result.consignor_amount)
    return consignor_cents, sale_price_cents - consignor_cents


def effective_split_bps(item, consignor) -> int:
    """Per-item override wins over the consignor's default rate."""
    if item.override_split_bps is not None:
        return item.override_split_bps
    return consignor.default_split_bps
