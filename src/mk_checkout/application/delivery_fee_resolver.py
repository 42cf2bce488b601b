"""DeliveryFeeResolver — loads the seller's fee settings and applies the pure rules.

A missing or broken merchant record never blocks checkout: the platform
default fee for the category is used instead. The lookup runs in its own
savepoint, so a failed query leaves the caller's transaction usable.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_checkout.domain.delivery import platform_default_fee, resolve_delivery_fee
from src.mk_user.domain.repository import UserRepositoryProtocol
from src.mk_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class DeliveryFeeResolver:
    def __init__(self, user_repo: UserRepositoryProtocol | None = None) -> None:
        self._users: UserRepositoryProtocol = user_repo or UserRepository()

    async def resolve(
        self, db: AsyncSession, delivery_method: str, seller_id: str, order_subtotal: int
    ) -> int | None:
        try:
            async with db.begin_nested():
                seller = await self._users.get_by_id(db, seller_id)
            if seller is None or seller.merchant is None:
                logger.warning(
                    "Merchant not found, using platform default fee seller=%s", seller_id
                )
                return platform_default_fee(delivery_method)
            return resolve_delivery_fee(
                delivery_method, seller.merchant.delivery_fees, order_subtotal
            )
        except Exception:
            logger.exception(
                "Delivery fee lookup failed seller=%s method=%s, using platform default",
                seller_id, delivery_method,
            )
            return platform_default_fee(delivery_method)
