"""CartRepository Protocol."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_cart.domain.models import Cart


class CartRepositoryProtocol(Protocol):
    async def find_by_buyer(self, db: AsyncSession, buyer_id: str) -> Cart | None: ...

    async def remove_items(
        self, db: AsyncSession, buyer_id: str, listing_ids: list[str]
    ) -> int: ...
