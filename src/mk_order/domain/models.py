"""Order domain models — pure dataclasses, no SQLAlchemy dependency.

Item prices and party snapshots are frozen when the order is created and are
never recomputed from live listings or profiles.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.mk_catalog.domain.models import ItemSnapshot


@dataclass
class StatusChange:
    status: str
    note: str | None
    updated_by: str | None
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "note": self.note,
            "updated_by": self.updated_by,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StatusChange":
        return cls(
            status=raw["status"],
            note=raw.get("note"),
            updated_by=raw.get("updated_by"),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
        )


@dataclass
class Order:
    id: str
    order_number: str
    buyer_id: str
    seller_id: str
    buyer: dict[str, Any]  # id, username, email, phone
    seller: dict[str, Any]  # id, name, email, phone
    items: list[ItemSnapshot]
    items_total: int
    shipping_fee: int
    total_amount: int
    payment_method: str
    payment_status: str
    delivery_method: str
    delivery_address: dict[str, Any]
    status: str = "pending"
    payment_details: dict[str, Any] = field(default_factory=dict)
    status_history: list[StatusChange] = field(default_factory=list)
    checkout_session_id: str | None = None
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def item_quantity(self) -> int:
        return sum(i.quantity for i in self.items)

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


@dataclass
class SideEffect:
    """One outbox row: a side effect owed by a committed order status change."""

    id: str
    order_id: str
    effect_type: str
    payload: dict[str, Any]
    status: str = "pending"
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None
