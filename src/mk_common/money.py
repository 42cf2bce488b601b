"""Money helpers for the cents-based marketplace.

All prices, fees and totals are int cents (minor units, MYR).
Fractional intermediate values are Decimal and are rounded half-up to
whole cents exactly once, at the output boundary.
"""

from decimal import ROUND_HALF_UP, Decimal


def round_cents(value: Decimal) -> int:
    """Round a fractional cent amount half-up to an int cent amount."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: Decimal | int) -> Decimal:
    """Unrounded `percent`% of `amount` cents."""
    return Decimal(amount) * Decimal(percent) / Decimal(100)


def bps_of(amount: int, bps: int) -> Decimal:
    """Unrounded basis-point share of `amount` cents."""
    return Decimal(amount) * Decimal(bps) / Decimal(10000)


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 1250 -> 'RM 12.50', -300 -> '-RM 3.00'."""
    sign = "-" if cents < 0 else ""
    abs_cents = abs(cents)
    return f"{sign}RM {abs_cents // 100:,}.{abs_cents % 100:02d}"
