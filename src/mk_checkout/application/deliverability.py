"""Campus deliverability across sellers."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_user.domain.repository import UserRepositoryProtocol


async def find_non_deliverable_sellers(
    db: AsyncSession,
    users: UserRepositoryProtocol,
    sellers: list[tuple[str, str]],
    campus: str,
) -> list[dict[str, Any]]:
    """Return one entry per (seller_id, seller_name) that cannot deliver to `campus`.

    An empty deliverable_campuses list means the seller delivers everywhere;
    a seller that cannot be loaded is treated as non-deliverable.
    """
    invalid: list[dict[str, Any]] = []
    for seller_id, seller_name in sellers:
        seller = await users.get_by_id(db, seller_id)
        if seller is None:
            invalid.append(
                {"seller_id": seller_id, "seller_name": seller_name, "reason": "Seller not found"}
            )
            continue
        campuses = seller.merchant.deliverable_campuses if seller.merchant else []
        if campuses and campus not in campuses:
            invalid.append(
                {
                    "seller_id": seller_id,
                    "seller_name": seller.display_name or seller_name,
                    "reason": "Campus not in seller's delivery area",
                }
            )
    return invalid
