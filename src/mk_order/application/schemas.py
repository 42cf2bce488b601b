"""Pydantic schemas and cursor utilities for the orders API."""

import base64
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.mk_common.enums import OrderStatus
from src.mk_common.money import cents_to_display
from src.mk_order.domain.models import Order

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode an order id into an opaque Base64 cursor string."""
    return base64.b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return str(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    note: str | None = Field(None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)


OrderRole = Literal["buyer", "seller"]

# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderItemResponse(BaseModel):
    listing_id: str
    variant_id: str | None
    variant: dict[str, Any] | None
    name: str
    type: str
    price: int
    quantity: int
    line_total: int


class StatusChangeResponse(BaseModel):
    status: str
    note: str | None
    updated_by: str | None
    timestamp: datetime


class OrderResponse(BaseModel):
    id: str
    order_number: str
    buyer: dict[str, Any]
    seller: dict[str, Any]
    items: list[OrderItemResponse]
    items_total: int
    shipping_fee: int
    total_amount: int
    total_display: str
    payment_method: str
    payment_status: str
    payment_details: dict[str, Any]
    delivery_method: str
    delivery_address: dict[str, Any]
    status: str
    status_history: list[StatusChangeResponse]
    checkout_session_id: str | None
    confirmed_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_order(cls, o: Order) -> "OrderResponse":
        return cls(
            id=o.id,
            order_number=o.order_number,
            buyer=o.buyer,
            seller=o.seller,
            items=[
                OrderItemResponse(
                    listing_id=i.listing_id,
                    variant_id=i.variant_id,
                    variant=i.variant,
                    name=i.name,
                    type=i.type,
                    price=i.price,
                    quantity=i.quantity,
                    line_total=i.line_total,
                )
                for i in o.items
            ],
            items_total=o.items_total,
            shipping_fee=o.shipping_fee,
            total_amount=o.total_amount,
            total_display=cents_to_display(o.total_amount),
            payment_method=o.payment_method,
            payment_status=o.payment_status,
            payment_details=o.payment_details,
            delivery_method=o.delivery_method,
            delivery_address=o.delivery_address,
            status=o.status,
            status_history=[
                StatusChangeResponse(
                    status=h.status, note=h.note, updated_by=h.updated_by, timestamp=h.timestamp
                )
                for h in o.status_history
            ],
            checkout_session_id=o.checkout_session_id,
            confirmed_at=o.confirmed_at,
            shipped_at=o.shipped_at,
            delivered_at=o.delivered_at,
            completed_at=o.completed_at,
            cancelled_at=o.cancelled_at,
            created_at=o.created_at,
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class ConfirmCheckoutResponse(BaseModel):
    session_id: str
    orders: list[OrderResponse]
    failures: list[dict[str, Any]]
    partial: bool
