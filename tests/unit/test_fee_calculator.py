"""Tests for tiered platform fees and the processor fee."""

from decimal import Decimal

import pytest

from src.mk_checkout.domain.fees import (
    DEFAULT_FEE_SCHEDULE,
    FeeSchedule,
    FeeTier,
    compute_fees,
    is_online_payment,
)


class TestTiers:
    def test_below_online_minimum_is_tier1_cod_only(self) -> None:
        fees = compute_fees(999, 0, "credit_card")
        assert fees.tier == "tier1"
        assert fees.platform_fee == 0
        assert fees.processor_fee == 0
        assert fees.allow_online_payment is False
        assert fees.seller_receives == 999

    def test_boundary_1000_is_tier2(self) -> None:
        fees = compute_fees(1000, 0, "cod")
        assert fees.tier == "tier2"
        assert fees.platform_fee == 30
        assert fees.platform_fee_percentage == Decimal("3")
        assert fees.allow_online_payment is True

    def test_boundary_5000_is_tier3(self) -> None:
        assert compute_fees(4999, 0).tier == "tier2"
        fees = compute_fees(5000, 0)
        assert fees.tier == "tier3"
        assert fees.platform_fee == 250

    def test_tier_uses_subtotal_plus_shipping(self) -> None:
        fees = compute_fees(800, 250, "cod")
        assert fees.total_amount == 1050
        assert fees.tier == "tier2"

    def test_online_minimum(self) -> None:
        assert DEFAULT_FEE_SCHEDULE.online_minimum == 1000


class TestAmounts:
    def test_cod_group_with_delivery(self) -> None:
        fees = compute_fees(4000, 500, "cod")
        assert fees.total_amount == 4500
        assert fees.platform_fee == 135
        assert fees.processor_fee == 0
        assert fees.seller_receives == 4365

    def test_online_payment_adds_processor_fee(self) -> None:
        fees = compute_fees(1000, 0, "credit_card")
        # 2.9% of 1000 = 29, + 150 fixed
        assert fees.processor_fee == 179
        assert fees.seller_receives == 1000 - 30 - 179

    def test_platform_fee_rounds_half_up(self) -> None:
        # 3% of 1050 = 31.5
        assert compute_fees(1050, 0).platform_fee == 32

    @pytest.mark.parametrize("subtotal", [0, 1, 999, 1000, 1234, 4999, 5000, 77777])
    @pytest.mark.parametrize("method", ["cod", "credit_card", "online_banking"])
    def test_parts_always_sum_to_total(self, subtotal: int, method: str) -> None:
        fees = compute_fees(subtotal, 250, method)
        assert fees.seller_receives + fees.platform_fee + fees.processor_fee == fees.total_amount
        assert fees.seller_receives >= 0

    def test_fees_clamped_to_total(self) -> None:
        greedy = FeeSchedule(
            tiers=(FeeTier("only", 0, Decimal("50"), True),),
            processor_percentage=Decimal("10"),
            processor_fixed_fee=1000,
        )
        fees = compute_fees(100, 0, "credit_card", greedy)
        assert fees.platform_fee == 50
        assert fees.processor_fee == 50
        assert fees.seller_receives == 0

    def test_negative_input_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_fees(-1, 0)
        with pytest.raises(ValueError):
            compute_fees(100, -5)


def test_is_online_payment() -> None:
    assert is_online_payment("credit_card")
    assert is_online_payment("online_banking")
    assert not is_online_payment("cod")
    assert not is_online_payment(None)
