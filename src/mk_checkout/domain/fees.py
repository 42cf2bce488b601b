"""Tiered platform fee + payment-processor fee — pure functions, no I/O.

Tier is picked from the amount the buyer pays (subtotal + shipping):

    tier1  amount <  1000     0%   cash on delivery only
    tier2  1000 .. 4999       3%   online allowed
    tier3  amount >= 5000     5%   online allowed

Processor fee = amount x 2.9% + 150 cents, charged only for online payment
in a tier that allows it. Fractions stay Decimal until the output fields,
each of which is rounded half-up once.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.mk_common.enums import PaymentMethod
from src.mk_common.money import percent_of, round_cents


@dataclass(frozen=True)
class FeeTier:
    name: str
    min_amount: int  # inclusive, cents
    platform_fee_percentage: Decimal
    allow_online_payment: bool


@dataclass(frozen=True)
class FeeSchedule:
    tiers: tuple[FeeTier, ...]  # ascending by min_amount
    processor_percentage: Decimal
    processor_fixed_fee: int  # cents

    def tier_for(self, amount: int) -> FeeTier:
        chosen = self.tiers[0]
        for tier in self.tiers:
            if amount >= tier.min_amount:
                chosen = tier
        return chosen

    @property
    def online_minimum(self) -> int:
        return min(t.min_amount for t in self.tiers if t.allow_online_payment)


DEFAULT_FEE_SCHEDULE = FeeSchedule(
    tiers=(
        FeeTier("tier1", 0, Decimal("0"), False),
        FeeTier("tier2", 1000, Decimal("3"), True),
        FeeTier("tier3", 5000, Decimal("5"), True),
    ),
    processor_percentage=Decimal("2.9"),
    processor_fixed_fee=150,
)


@dataclass(frozen=True)
class FeeBreakdown:
    subtotal: int
    shipping_fee: int
    platform_fee: int
    platform_fee_percentage: Decimal
    processor_fee: int
    total_amount: int
    seller_receives: int
    allow_online_payment: bool
    tier: str


def is_online_payment(payment_method: str | None) -> bool:
    return payment_method is not None and payment_method != PaymentMethod.COD.value


def compute_fees(
    subtotal: int,
    shipping_fee: int,
    payment_method: str | None = PaymentMethod.COD.value,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> FeeBreakdown:
    """Fee breakdown for one seller group.

    Always: seller_receives + platform_fee + processor_fee == total_amount,
    and seller_receives >= 0.
    """
    if subtotal < 0 or shipping_fee < 0:
        raise ValueError("subtotal and shipping_fee must be non-negative")

    total = subtotal + shipping_fee
    tier = schedule.tier_for(total)

    platform_fee = round_cents(percent_of(total, tier.platform_fee_percentage))
    processor_fee = 0
    if is_online_payment(payment_method) and tier.allow_online_payment:
        processor_fee = round_cents(
            percent_of(total, schedule.processor_percentage) + schedule.processor_fixed_fee
        )

    # Fees never exceed what the buyer pays; seller_receives floors at zero.
    platform_fee = min(platform_fee, total)
    processor_fee = min(processor_fee, total - platform_fee)

    return FeeBreakdown(
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        platform_fee=platform_fee,
        platform_fee_percentage=tier.platform_fee_percentage,
        processor_fee=processor_fee,
        total_amount=total,
        seller_receives=total - platform_fee - processor_fee,
        allow_online_payment=tier.allow_online_payment,
        tier=tier.name,
    )
