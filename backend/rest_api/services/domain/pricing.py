"""
Order pricing.

Pure functions over Decimal amounts. Intermediate values keep full
precision; each presented amount is rounded half-up to cents once, and the
total is the sum of the rounded parts so it always adds up on a receipt.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from shared.config.constants import SettingsDefaults

CENTS = Decimal("0.01")
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    vat_amount: Decimal
    tip_amount: Decimal
    total: Decimal


def to_cents(amount: Decimal) -> Decimal:
    """Round a currency amount to two decimals, half-up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_totals(
    lines: Iterable[tuple[Decimal, int]],
    vat_rate: Decimal | None = None,
    tip_percentage: Decimal | None = None,
) -> PriceBreakdown:
    """
    Price an order.

    Args:
        lines: (unit_price, quantity) pairs
        vat_rate: VAT percentage, e.g. Decimal("10.00"); system default if None
        tip_percentage: Tip percentage over the subtotal, or None for no tip

    Returns:
        PriceBreakdown with every amount rounded to cents and
        total == subtotal + vat_amount + tip_amount

    Example:
        2 x 15.00 + 1 x 10.00 at 10% VAT with a 10% tip
        -> subtotal 40.00, vat 4.00, tip 4.00, total 48.00
    """
    if vat_rate is None:
        vat_rate = Decimal(SettingsDefaults.VAT_RATE)

    subtotal = sum((Decimal(price) * quantity for price, quantity in lines), Decimal(0))
    vat = subtotal * Decimal(vat_rate) / HUNDRED
    tip = subtotal * Decimal(tip_percentage) / HUNDRED if tip_percentage else Decimal(0)

    subtotal, vat, tip = to_cents(subtotal), to_cents(vat), to_cents(tip)
    return PriceBreakdown(
        subtotal=subtotal,
        vat_amount=vat,
        tip_amount=tip,
        total=subtotal + vat + tip,
    )
