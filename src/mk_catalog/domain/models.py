"""Catalog domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ListingVariant:
    id: str
    listing_id: str
    name: str
    sku: str | None
    price: int  # cents
    stock: int
    is_available: bool = True
    attributes: dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> dict[str, Any]:
        return {
            "variant_id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price": self.price,
            "attributes": dict(self.attributes),
        }


@dataclass
class Listing:
    id: str
    seller_id: str
    seller_name: str
    name: str
    price: int  # cents
    stock: int
    type: str  # product / service
    is_available: bool = True
    images: list[str] = field(default_factory=list)
    variants: dict[str, ListingVariant] = field(default_factory=dict)

    @property
    def tracks_stock(self) -> bool:
        return self.type == "product"

    def get_variant(self, variant_id: str) -> ListingVariant | None:
        return self.variants.get(variant_id)


@dataclass
class RequestedItem:
    """A (listing, variant, quantity) triple as it arrives from a cart or a direct buy."""

    listing_id: str
    quantity: int
    variant_id: str | None = None


@dataclass
class ItemSnapshot:
    """Immutable view of a validated line item carried into sessions and orders."""

    listing_id: str
    seller_id: str
    seller_name: str
    name: str
    price: int  # unit price in cents (variant price wins)
    quantity: int
    type: str
    stock: int
    images: list[str] = field(default_factory=list)
    variant_id: str | None = None
    variant: dict[str, Any] | None = None

    @property
    def line_total(self) -> int:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "seller_id": self.seller_id,
            "seller_name": self.seller_name,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "type": self.type,
            "stock": self.stock,
            "images": list(self.images),
            "variant_id": self.variant_id,
            "variant": dict(self.variant) if self.variant else None,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ItemSnapshot":
        return cls(
            listing_id=raw["listing_id"],
            seller_id=raw["seller_id"],
            seller_name=raw.get("seller_name", ""),
            name=raw["name"],
            price=int(raw["price"]),
            quantity=int(raw["quantity"]),
            type=raw["type"],
            stock=int(raw.get("stock", 0)),
            images=list(raw.get("images") or []),
            variant_id=raw.get("variant_id"),
            variant=raw.get("variant"),
        )


@dataclass
class StockReservation:
    """Advisory bookkeeping record: intended consumption during a checkout window.

    Never touches live stock. The atomic decrement at order creation is the
    only oversell guard.
    """

    listing_id: str
    quantity: int
    variant_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StockReservation":
        return cls(
            listing_id=raw["listing_id"],
            quantity=int(raw["quantity"]),
            variant_id=raw.get("variant_id"),
        )


@dataclass
class ValidationResult:
    valid: bool
    validated_items: list[ItemSnapshot] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
