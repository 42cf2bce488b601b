"""Delivery fee rules — pure, no I/O.

Five delivery methods collapse onto three fee categories. A seller's per-category
config can disable the category (-> None, the method is unavailable for that
seller), override the fee, or waive it above a free-delivery threshold.
"""

from src.mk_common.enums import DeliveryMethod, FeeCategory
from src.mk_user.domain.models import DeliveryFeeSettings

DELIVERY_METHOD_CATEGORY: dict[str, str] = {
    DeliveryMethod.DELIVERY.value: FeeCategory.PERSONAL.value,
    DeliveryMethod.CAMPUS_DELIVERY.value: FeeCategory.CAMPUS.value,
    DeliveryMethod.ROOM_DELIVERY.value: FeeCategory.CAMPUS.value,
    DeliveryMethod.SELF_PICKUP.value: FeeCategory.PICKUP.value,
    DeliveryMethod.MEETUP.value: FeeCategory.PICKUP.value,
}

PLATFORM_DEFAULT_FEES: dict[str, int] = {
    FeeCategory.PERSONAL.value: 500,  # RM 5.00
    FeeCategory.CAMPUS.value: 250,
    FeeCategory.PICKUP.value: 100,
}


def category_for(delivery_method: str) -> str | None:
    return DELIVERY_METHOD_CATEGORY.get(delivery_method)


def platform_default_fee(delivery_method: str) -> int:
    category = category_for(delivery_method)
    return PLATFORM_DEFAULT_FEES[category] if category else 0


def resolve_delivery_fee(
    delivery_method: str,
    fee_settings: DeliveryFeeSettings | None,
    order_subtotal: int,
) -> int | None:
    """Delivery fee in cents for one seller, or None if the seller disabled this category."""
    category = category_for(delivery_method)
    if category is None:
        return 0
    if fee_settings is None:
        return PLATFORM_DEFAULT_FEES[category]
    if fee_settings.free_delivery_for_all:
        return 0

    config = fee_settings.categories.get(category)
    if config is None:
        return PLATFORM_DEFAULT_FEES[category]
    if not config.enabled:
        return None
    if config.free_threshold_cents and order_subtotal >= config.free_threshold_cents:
        return 0
    if config.fee_cents is not None:
        return config.fee_cents
    return PLATFORM_DEFAULT_FEES[category]
