"""ListingRepository Protocol — interface contract for persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_catalog.domain.models import Listing


class ListingRepositoryProtocol(Protocol):
    async def find_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None: ...

    async def find_many(self, db: AsyncSession, listing_ids: list[str]) -> dict[str, Listing]: ...

    async def increment_stock(
        self, db: AsyncSession, listing_id: str, delta: int
    ) -> int | None:
        """Atomic stock += delta. Returns new stock, or None when the guard
        (listing exists and stock + delta >= 0) rejected the update."""
        ...

    async def increment_variant_stock(
        self, db: AsyncSession, listing_id: str, variant_id: str, delta: int
    ) -> int | None: ...
