"""UserRepository Protocol — read access plus merchant metric counters."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_user.domain.models import UserProfile


class UserRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, user_id: str) -> UserProfile | None: ...

    async def increment_shop_metrics(
        self, db: AsyncSession, seller_id: str, revenue: int, sales: int
    ) -> None: ...
