"""Pydantic schemas for the checkout API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.mk_checkout.domain.models import CheckoutSession, PricingSummary, SellerGroup
from src.mk_common.enums import DeliveryMethod, PaymentMethod
from src.mk_common.money import cents_to_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateDirectSessionRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=999)
    variant_id: str | None = None


class UpdateSessionRequest(BaseModel):
    delivery_method: DeliveryMethod | None = None
    delivery_address: dict[str, Any] | None = None
    payment_method: PaymentMethod | None = None
    address_id: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SessionItemResponse(BaseModel):
    listing_id: str
    variant_id: str | None
    variant: dict[str, Any] | None
    name: str
    type: str
    price: int
    price_display: str
    quantity: int
    images: list[str]


class SellerGroupResponse(BaseModel):
    seller_id: str
    seller_name: str
    items: list[SessionItemResponse]
    subtotal: int
    delivery_fee: int
    delivery_available: bool
    platform_fee: int
    platform_fee_percentage: str
    processor_fee: int
    total_amount: int
    total_display: str
    seller_receives: int
    allow_online_payment: bool
    tier: str

    @classmethod
    def from_group(cls, g: SellerGroup) -> "SellerGroupResponse":
        return cls(
            seller_id=g.seller_id,
            seller_name=g.seller_name,
            items=[
                SessionItemResponse(
                    listing_id=i.listing_id,
                    variant_id=i.variant_id,
                    variant=i.variant,
                    name=i.name,
                    type=i.type,
                    price=i.price,
                    price_display=cents_to_display(i.price),
                    quantity=i.quantity,
                    images=i.images,
                )
                for i in g.items
            ],
            subtotal=g.subtotal,
            delivery_fee=g.delivery_fee,
            delivery_available=g.delivery_available,
            platform_fee=g.platform_fee,
            platform_fee_percentage=g.platform_fee_percentage,
            processor_fee=g.processor_fee,
            total_amount=g.total_amount,
            total_display=cents_to_display(g.total_amount),
            seller_receives=g.seller_receives,
            allow_online_payment=g.allow_online_payment,
            tier=g.tier,
        )


class PricingResponse(BaseModel):
    subtotal: int
    delivery_fee: int
    platform_fee: int
    processor_fee: int
    total_amount: int
    total_display: str
    item_count: int
    seller_count: int

    @classmethod
    def from_pricing(cls, p: PricingSummary) -> "PricingResponse":
        return cls(
            subtotal=p.subtotal,
            delivery_fee=p.delivery_fee,
            platform_fee=p.platform_fee,
            processor_fee=p.processor_fee,
            total_amount=p.total_amount,
            total_display=cents_to_display(p.total_amount),
            item_count=p.item_count,
            seller_count=p.seller_count,
        )


class CheckoutSessionResponse(BaseModel):
    id: str
    session_type: str
    status: str
    seller_groups: list[SellerGroupResponse]
    pricing: PricingResponse
    delivery_method: str | None
    delivery_address: dict[str, Any] | None
    payment_method: str | None
    payment_intent_id: str | None
    created_orders: list[str]
    version: int
    expires_at: datetime
    created_at: datetime | None

    @classmethod
    def from_session(cls, s: CheckoutSession) -> "CheckoutSessionResponse":
        return cls(
            id=s.id,
            session_type=s.session_type,
            status=s.status,
            seller_groups=[SellerGroupResponse.from_group(g) for g in s.seller_groups],
            pricing=PricingResponse.from_pricing(s.pricing),
            delivery_method=s.delivery_method,
            delivery_address=s.delivery_address,
            payment_method=s.payment_method,
            payment_intent_id=s.payment_intent_id,
            created_orders=s.created_orders,
            version=s.version,
            expires_at=s.expires_at,
            created_at=s.created_at,
        )


class PaymentIntentResponse(BaseModel):
    payment_intent_id: str
    client_secret: str | None
    amount: int
    currency: str
    publishable_key: str
    status: str


class PaymentStatusResponse(BaseModel):
    session_id: str
    status: str
