"""Delivery address snapshots and their fit against the delivery method.

Three shapes, selected by `type`:
    pickup   -> pickup_details   (self_pickup, meetup)
    campus   -> campus_address   (campus_delivery, room_delivery)
    personal -> personal_address (delivery)
"""

from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from src.mk_checkout.domain.delivery import category_for
from src.mk_common.enums import FeeCategory
from src.mk_common.errors import InvalidDeliveryAddressError


class PickupDetails(BaseModel):
    location: str = Field(..., min_length=1, max_length=150)
    notes: str | None = Field(None, max_length=250)


class CampusAddress(BaseModel):
    campus: str = Field(..., min_length=1)
    building: str = Field(..., min_length=1, max_length=100)
    floor: str = Field(..., min_length=1, max_length=25)
    room: str = Field(..., min_length=1, max_length=25)


class PersonalAddress(BaseModel):
    address_line1: str = Field(..., min_length=1, max_length=150)
    address_line2: str | None = Field(None, max_length=150)
    city: str = Field(..., max_length=50, pattern=r"^[A-Za-z]+(?:[ '-][A-Za-z]+)*$")
    state: str = Field(..., min_length=1)
    postcode: str = Field(..., pattern=r"^\d{5}$")


class DeliveryAddress(BaseModel):
    type: FeeCategory
    recipient_name: str | None = None
    recipient_phone: str | None = None
    pickup_details: PickupDetails | None = None
    campus_address: CampusAddress | None = None
    personal_address: PersonalAddress | None = None
    address_id: str | None = None

    @property
    def campus(self) -> str | None:
        return self.campus_address.campus if self.campus_address else None


_REQUIRED_PART = {
    FeeCategory.PICKUP: "pickup_details",
    FeeCategory.CAMPUS: "campus_address",
    FeeCategory.PERSONAL: "personal_address",
}


def validate_delivery_address(
    delivery_method: str, raw: dict[str, Any] | DeliveryAddress | None
) -> DeliveryAddress:
    """Parse `raw` and check its shape matches `delivery_method`.

    Raises InvalidDeliveryAddressError on any mismatch or malformed field.
    """
    if raw is None:
        raise InvalidDeliveryAddressError(delivery_method)
    try:
        address = raw if isinstance(raw, DeliveryAddress) else DeliveryAddress.model_validate(raw)
    except PydanticValidationError as e:
        err = InvalidDeliveryAddressError(delivery_method)
        err.details["errors"] = [
            {"field": ".".join(str(p) for p in x["loc"]), "message": x["msg"]} for x in e.errors()
        ]
        raise err from e

    category = category_for(delivery_method)
    if category is None or address.type.value != category:
        raise InvalidDeliveryAddressError(delivery_method)
    if getattr(address, _REQUIRED_PART[address.type]) is None:
        raise InvalidDeliveryAddressError(delivery_method)
    return address
