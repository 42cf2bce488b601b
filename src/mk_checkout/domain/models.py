"""Checkout session domain models — pure dataclasses, no SQLAlchemy dependency.

A session row is one JSON-shaped document: items, seller groups, pricing and
the address snapshot are serialized with to_dict()/from_dict() into JSONB.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.mk_catalog.domain.models import ItemSnapshot, StockReservation
from src.mk_common.enums import NON_TERMINAL_SESSION_STATUSES, SessionStatus


@dataclass
class SellerGroup:
    seller_id: str
    seller_name: str
    items: list[ItemSnapshot]
    subtotal: int
    delivery_fee: int
    platform_fee: int
    platform_fee_percentage: str  # Decimal as text, e.g. "3"
    processor_fee: int
    total_amount: int
    seller_receives: int
    allow_online_payment: bool
    tier: str
    delivery_available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "seller_id": self.seller_id,
            "seller_name": self.seller_name,
            "items": [i.to_dict() for i in self.items],
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "platform_fee": self.platform_fee,
            "platform_fee_percentage": self.platform_fee_percentage,
            "processor_fee": self.processor_fee,
            "total_amount": self.total_amount,
            "seller_receives": self.seller_receives,
            "allow_online_payment": self.allow_online_payment,
            "tier": self.tier,
            "delivery_available": self.delivery_available,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SellerGroup":
        return cls(
            seller_id=raw["seller_id"],
            seller_name=raw.get("seller_name", ""),
            items=[ItemSnapshot.from_dict(i) for i in raw.get("items", [])],
            subtotal=raw["subtotal"],
            delivery_fee=raw["delivery_fee"],
            platform_fee=raw["platform_fee"],
            platform_fee_percentage=str(raw.get("platform_fee_percentage", "0")),
            processor_fee=raw["processor_fee"],
            total_amount=raw["total_amount"],
            seller_receives=raw["seller_receives"],
            allow_online_payment=raw.get("allow_online_payment", False),
            tier=raw.get("tier", ""),
            delivery_available=raw.get("delivery_available", True),
        )


@dataclass
class PricingSummary:
    subtotal: int = 0
    delivery_fee: int = 0
    platform_fee: int = 0
    processor_fee: int = 0
    total_amount: int = 0
    seller_receives: int = 0
    item_count: int = 0
    seller_count: int = 0

    @classmethod
    def from_groups(cls, groups: list[SellerGroup]) -> "PricingSummary":
        return cls(
            subtotal=sum(g.subtotal for g in groups),
            delivery_fee=sum(g.delivery_fee for g in groups),
            platform_fee=sum(g.platform_fee for g in groups),
            processor_fee=sum(g.processor_fee for g in groups),
            total_amount=sum(g.total_amount for g in groups),
            seller_receives=sum(g.seller_receives for g in groups),
            item_count=sum(i.quantity for g in groups for i in g.items),
            seller_count=len(groups),
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "PricingSummary":
        if not raw:
            return cls()
        return cls(**{k: raw[k] for k in cls.__dataclass_fields__ if k in raw})


@dataclass
class CheckoutSession:
    id: str
    user_id: str
    session_type: str  # cart / direct
    items: list[ItemSnapshot]
    seller_groups: list[SellerGroup]
    pricing: PricingSummary
    expires_at: datetime
    delivery_method: str | None = None
    delivery_address: dict[str, Any] | None = None
    payment_method: str | None = None
    payment_intent_id: str | None = None
    status: str = SessionStatus.PENDING.value
    stock_reservations: list[StockReservation] = field(default_factory=list)
    created_orders: list[str] = field(default_factory=list)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in NON_TERMINAL_SESSION_STATUSES

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def listing_ids(self) -> list[str]:
        return list(dict.fromkeys(i.listing_id for i in self.items))
