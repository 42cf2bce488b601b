"""StockReservationService — item validation, advisory reservations, live stock moves.

Reservations are bookkeeping only: reserve() and release() never touch live
stock, so two buyers can both hold a reservation for the last unit. The guarded
decrement in deduct() (one atomic UPDATE per item) is what actually prevents
overselling, and it fails the specific item that lost the race.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_catalog.domain.models import (
    ItemSnapshot,
    RequestedItem,
    StockReservation,
    ValidationResult,
)
from src.mk_catalog.domain.repository import ListingRepositoryProtocol
from src.mk_catalog.infrastructure.persistence import ListingRepository
from src.mk_common.errors import InsufficientStockError

logger = logging.getLogger(__name__)


class StockReservationService:
    def __init__(self, repo: ListingRepositoryProtocol | None = None) -> None:
        self._repo: ListingRepositoryProtocol = repo or ListingRepository()

    async def validate_items(
        self, db: AsyncSession, items: list[RequestedItem]
    ) -> ValidationResult:
        """Resolve every requested item against live listings in one batch."""
        if not items:
            return ValidationResult(valid=False, errors=["No items to validate"])

        listings = await self._repo.find_many(db, [i.listing_id for i in items])
        validated: list[ItemSnapshot] = []
        errors: list[str] = []

        for item in items:
            listing = listings.get(item.listing_id)
            if listing is None:
                errors.append(f"Listing {item.listing_id} not found")
                continue
            if not listing.is_available:
                errors.append(f"{listing.name} is no longer available")
                continue
            if item.quantity <= 0:
                errors.append(f"Invalid quantity for {listing.name}")
                continue

            price = listing.price
            stock = listing.stock
            variant_snapshot = None
            if item.variant_id:
                variant = listing.get_variant(item.variant_id)
                if variant is None:
                    errors.append(f"Selected variant of {listing.name} not found")
                    continue
                if not variant.is_available:
                    errors.append(f"Selected variant of {listing.name} is no longer available")
                    continue
                price = variant.price
                stock = variant.stock
                variant_snapshot = variant.snapshot()

            if listing.tracks_stock and item.quantity > stock:
                errors.append(f"Insufficient stock for {listing.name}. Only {stock} available")
                continue

            validated.append(
                ItemSnapshot(
                    listing_id=listing.id,
                    seller_id=listing.seller_id,
                    seller_name=listing.seller_name,
                    name=listing.name,
                    price=price,
                    quantity=item.quantity,
                    type=listing.type,
                    stock=stock,
                    images=list(listing.images),
                    variant_id=item.variant_id,
                    variant=variant_snapshot,
                )
            )

        return ValidationResult(valid=not errors, validated_items=validated, errors=errors)

    def reserve(self, items: list[ItemSnapshot]) -> list[StockReservation]:
        reservations = [
            StockReservation(listing_id=i.listing_id, quantity=i.quantity, variant_id=i.variant_id)
            for i in items
            if i.type == "product"
        ]
        logger.debug("Reserved %d item(s) (advisory)", len(reservations))
        return reservations

    def release(self, reservations: list[StockReservation], session_id: str) -> None:
        for r in reservations:
            logger.info(
                "Released reservation session=%s listing=%s variant=%s qty=%d",
                session_id, r.listing_id, r.variant_id, r.quantity,
            )

    async def deduct(self, db: AsyncSession, items: list[ItemSnapshot]) -> None:
        """Atomically decrement live stock for every product item.

        Raises InsufficientStockError naming the first item whose guard failed.
        Callers run this inside a savepoint so earlier decrements roll back with it.
        """
        for item in items:
            if item.type != "product":
                continue
            if item.variant_id:
                remaining = await self._repo.increment_variant_stock(
                    db, item.listing_id, item.variant_id, -item.quantity
                )
            else:
                remaining = await self._repo.increment_stock(db, item.listing_id, -item.quantity)
            if remaining is None:
                current = await self._current_stock(db, item)
                raise InsufficientStockError(
                    item.listing_id, item.quantity, current, item.variant_id
                )

    async def restore(self, db: AsyncSession, items: list[ItemSnapshot]) -> list[dict]:
        """Give back product stock; returns one record per restored item."""
        restored: list[dict] = []
        for item in items:
            if item.type != "product":
                continue
            if item.variant_id:
                new_stock = await self._repo.increment_variant_stock(
                    db, item.listing_id, item.variant_id, item.quantity
                )
            else:
                new_stock = await self._repo.increment_stock(db, item.listing_id, item.quantity)
            if new_stock is None:
                logger.warning(
                    "Stock restore skipped, listing gone listing=%s variant=%s",
                    item.listing_id, item.variant_id,
                )
                continue
            restored.append(
                {
                    "listing_id": item.listing_id,
                    "variant_id": item.variant_id,
                    "quantity": item.quantity,
                    "stock_after": new_stock,
                }
            )
        return restored

    async def _current_stock(self, db: AsyncSession, item: ItemSnapshot) -> int | None:
        listing = await self._repo.find_by_id(db, item.listing_id)
        if listing is None:
            return None
        if item.variant_id:
            variant = listing.get_variant(item.variant_id)
            return variant.stock if variant else None
        return listing.stock
