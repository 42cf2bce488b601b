"""ListingRepository — raw SQL over listings / listing_variants.

Stock mutations are single guarded UPDATE ... RETURNING statements.
0 rows means the guard rejected the change (missing row or stock would go negative);
nothing is ever read-modify-written in application memory.

Transaction ownership: the CALLER commits.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_catalog.domain.models import Listing, ListingVariant

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_LISTING_COLUMNS = "id, seller_id, seller_name, name, price, stock, type, is_available, images"

_VARIANT_COLUMNS = "id, listing_id, name, sku, price, stock, is_available, attributes"

_GET_LISTINGS_SQL = text(f"SELECT {_LISTING_COLUMNS} FROM listings WHERE id = ANY(:ids)")

_GET_VARIANTS_SQL = text(f"""
    SELECT {_VARIANT_COLUMNS}
    FROM listing_variants
    WHERE listing_id = ANY(:listing_ids)
""")

_INCREMENT_STOCK_SQL = text("""
    UPDATE listings
    SET stock = stock + :delta,
        updated_at = NOW()
    WHERE id = :id AND stock + :delta >= 0
    RETURNING stock
""")

_INCREMENT_VARIANT_STOCK_SQL = text("""
    UPDATE listing_variants
    SET stock = stock + :delta,
        updated_at = NOW()
    WHERE id = :variant_id AND listing_id = :listing_id AND stock + :delta >= 0
    RETURNING stock
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_variant(row: Any) -> ListingVariant:
    return ListingVariant(
        id=str(row.id),
        listing_id=str(row.listing_id),
        name=row.name,
        sku=row.sku,
        price=row.price,
        stock=row.stock,
        is_available=row.is_available,
        attributes=_json(row.attributes, {}),
    )


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=str(row.id),
        seller_id=str(row.seller_id),
        seller_name=row.seller_name or "",
        name=row.name,
        price=row.price,
        stock=row.stock,
        type=row.type,
        is_available=row.is_available,
        images=_json(row.images, []),
    )


class ListingRepository:
    async def find_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None:
        listings = await self.find_many(db, [listing_id])
        return listings.get(listing_id)

    async def find_many(self, db: AsyncSession, listing_ids: list[str]) -> dict[str, Listing]:
        ids = list(dict.fromkeys(listing_ids))
        if not ids:
            return {}
        result = await db.execute(_GET_LISTINGS_SQL, {"ids": ids})
        listings = {l.id: l for l in (_row_to_listing(r) for r in result.fetchall())}
        if listings:
            result = await db.execute(_GET_VARIANTS_SQL, {"listing_ids": list(listings)})
            for row in result.fetchall():
                variant = _row_to_variant(row)
                listing = listings.get(variant.listing_id)
                if listing is not None:
                    listing.variants[variant.id] = variant
        return listings

    async def increment_stock(
        self, db: AsyncSession, listing_id: str, delta: int
    ) -> int | None:
        result = await db.execute(_INCREMENT_STOCK_SQL, {"id": listing_id, "delta": delta})
        row = result.fetchone()
        return row.stock if row else None

    async def increment_variant_stock(
        self, db: AsyncSession, listing_id: str, variant_id: str, delta: int
    ) -> int | None:
        result = await db.execute(
            _INCREMENT_VARIANT_STOCK_SQL,
            {"listing_id": listing_id, "variant_id": variant_id, "delta": delta},
        )
        row = result.fetchone()
        return row.stock if row else None
