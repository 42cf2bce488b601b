"""Tests for mk_common.money, mk_common.ids and mk_common.datetime_utils."""

import re
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.mk_common.datetime_utils import expires_after, utc_now
from src.mk_common.ids import IdGenerator, generate_id, generate_order_number
from src.mk_common.money import bps_of, cents_to_display, percent_of, round_cents


class TestMoney:
    def test_round_half_up(self) -> None:
        assert round_cents(Decimal("31.5")) == 32
        assert round_cents(Decimal("31.49")) == 31
        assert round_cents(Decimal("0.5")) == 1

    def test_percent_of(self) -> None:
        assert percent_of(1000, Decimal("2.9")) == Decimal("29")
        assert percent_of(1050, 3) == Decimal("31.5")

    def test_bps_of(self) -> None:
        assert bps_of(10_000, 500) == Decimal("500")

    def test_cents_to_display(self) -> None:
        assert cents_to_display(1250) == "RM 12.50"
        assert cents_to_display(0) == "RM 0.00"
        assert cents_to_display(123456) == "RM 1,234.56"
        assert cents_to_display(-300) == "-RM 3.00"


class TestIdGenerator:
    def test_returns_digit_str(self) -> None:
        assert generate_id().isdigit()

    def test_unique_ids(self) -> None:
        gen = IdGenerator(machine_id=1)
        assert len({gen.next_id() for _ in range(1000)}) == 1000

    def test_monotonically_increasing(self) -> None:
        gen = IdGenerator(machine_id=1)
        prev = int(gen.next_id())
        for _ in range(100):
            current = int(gen.next_id())
            assert current > prev
            prev = current

    def test_machine_id_range(self) -> None:
        with pytest.raises(ValueError):
            IdGenerator(machine_id=1024)


def test_order_number_format() -> None:
    number = generate_order_number(datetime(2026, 3, 7, tzinfo=UTC))
    assert re.fullmatch(r"ORD-20260307-[A-Z0-9]{6}", number)


class TestDatetime:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_expires_after(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert expires_after(600, now) == now + timedelta(minutes=10)
