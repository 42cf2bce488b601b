"""UserRepository — raw SQL read model over the users table."""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_user.domain.models import DeliveryFeeSettings, MerchantDetails, UserProfile

_GET_USER_SQL = text("""
    SELECT id, username, email, phone, roles,
           shop_name, delivery_fees, deliverable_campuses,
           shop_total_revenue, shop_total_sales
    FROM users WHERE id = :id
""")

_INCREMENT_METRICS_SQL = text("""
    UPDATE users
    SET shop_total_revenue = shop_total_revenue + :revenue,
        shop_total_sales   = shop_total_sales   + :sales,
        updated_at = NOW()
    WHERE id = :id
""")


def _row_to_user(row: Any) -> UserProfile:
    roles = list(row.roles or [])
    merchant = None
    if "merchant" in roles or row.shop_name:
        fees = row.delivery_fees
        if isinstance(fees, str):
            fees = json.loads(fees)
        merchant = MerchantDetails(
            shop_name=row.shop_name,
            delivery_fees=DeliveryFeeSettings.from_dict(fees),
            deliverable_campuses=list(row.deliverable_campuses or []),
            total_revenue=row.shop_total_revenue or 0,
            total_sales=row.shop_total_sales or 0,
        )
    return UserProfile(
        id=str(row.id),
        username=row.username,
        email=row.email,
        phone=row.phone,
        roles=roles,
        merchant=merchant,
    )


class UserRepository:
    async def get_by_id(self, db: AsyncSession, user_id: str) -> UserProfile | None:
        result = await db.execute(_GET_USER_SQL, {"id": user_id})
        row = result.fetchone()
        return _row_to_user(row) if row else None

    async def increment_shop_metrics(
        self, db: AsyncSession, seller_id: str, revenue: int, sales: int
    ) -> None:
        await db.execute(
            _INCREMENT_METRICS_SQL, {"id": seller_id, "revenue": revenue, "sales": sales}
        )
