"""Cart read model — pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class CartItem:
    listing_id: str
    quantity: int
    variant_id: str | None = None
    added_at: datetime | None = None


@dataclass
class Cart:
    buyer_id: str
    items: list[CartItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items
