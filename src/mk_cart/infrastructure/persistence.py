"""CartRepository — raw SQL over cart_items.

A buyer with no cart_items rows has no cart (find_by_buyer returns None).
remove_items deletes by listing id only, so lines added while a checkout
was in flight survive.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_cart.domain.models import Cart, CartItem

_GET_CART_SQL = text("""
    SELECT listing_id, variant_id, quantity, added_at
    FROM cart_items
    WHERE buyer_id = :buyer_id
    ORDER BY added_at, id
""")

_REMOVE_ITEMS_SQL = text("""
    DELETE FROM cart_items
    WHERE buyer_id = :buyer_id AND listing_id = ANY(:listing_ids)
""")


def _row_to_item(row: Any) -> CartItem:
    return CartItem(
        listing_id=str(row.listing_id),
        quantity=row.quantity,
        variant_id=str(row.variant_id) if row.variant_id else None,
        added_at=row.added_at,
    )


class CartRepository:
    async def find_by_buyer(self, db: AsyncSession, buyer_id: str) -> Cart | None:
        result = await db.execute(_GET_CART_SQL, {"buyer_id": buyer_id})
        rows = result.fetchall()
        if not rows:
            return None
        return Cart(buyer_id=buyer_id, items=[_row_to_item(r) for r in rows])

    async def remove_items(
        self, db: AsyncSession, buyer_id: str, listing_ids: list[str]
    ) -> int:
        if not listing_ids:
            return 0
        result = await db.execute(
            _REMOVE_ITEMS_SQL, {"buyer_id": buyer_id, "listing_ids": listing_ids}
        )
        return result.rowcount
