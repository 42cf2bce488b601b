"""Tests for delivery address validation against the delivery method."""

import pytest

from src.mk_checkout.domain.address import validate_delivery_address
from src.mk_common.errors import InvalidDeliveryAddressError
from tests.unit.world import CAMPUS_ADDRESS, PERSONAL_ADDRESS, PICKUP_ADDRESS


class TestValidateDeliveryAddress:
    def test_campus_address_for_campus_delivery(self) -> None:
        address = validate_delivery_address("campus_delivery", CAMPUS_ADDRESS)
        assert address.campus == "Main"

    def test_campus_address_for_room_delivery(self) -> None:
        assert validate_delivery_address("room_delivery", CAMPUS_ADDRESS).campus == "Main"

    def test_personal_address_for_delivery(self) -> None:
        address = validate_delivery_address("delivery", PERSONAL_ADDRESS)
        assert address.personal_address.postcode == "46200"
        assert address.campus is None

    def test_pickup_details_for_meetup(self) -> None:
        address = validate_delivery_address("meetup", PICKUP_ADDRESS)
        assert address.pickup_details.location == "Library entrance"

    def test_type_must_match_method(self) -> None:
        with pytest.raises(InvalidDeliveryAddressError) as exc:
            validate_delivery_address("delivery", CAMPUS_ADDRESS)
        assert exc.value.code == "INVALID_DELIVERY_ADDRESS"
        assert exc.value.details["delivery_method"] == "delivery"

    def test_part_for_type_required(self) -> None:
        with pytest.raises(InvalidDeliveryAddressError):
            validate_delivery_address("campus_delivery", {"type": "campus"})

    def test_none_rejected(self) -> None:
        with pytest.raises(InvalidDeliveryAddressError):
            validate_delivery_address("meetup", None)

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(InvalidDeliveryAddressError):
            validate_delivery_address("drone", PICKUP_ADDRESS)

    def test_bad_postcode_lists_field_errors(self) -> None:
        bad = {
            "type": "personal",
            "personal_address": {**PERSONAL_ADDRESS["personal_address"], "postcode": "4620"},
        }
        with pytest.raises(InvalidDeliveryAddressError) as exc:
            validate_delivery_address("delivery", bad)
        fields = [e["field"] for e in exc.value.details["errors"]]
        assert "personal_address.postcode" in fields

    def test_city_must_be_letters(self) -> None:
        bad = {
            "type": "personal",
            "personal_address": {**PERSONAL_ADDRESS["personal_address"], "city": "KL 50000"},
        }
        with pytest.raises(InvalidDeliveryAddressError):
            validate_delivery_address("delivery", bad)

    def test_room_length_limit(self) -> None:
        bad = {
            "type": "campus",
            "campus_address": {**CAMPUS_ADDRESS["campus_address"], "room": "R" * 26},
        }
        with pytest.raises(InvalidDeliveryAddressError):
            validate_delivery_address("campus_delivery", bad)
