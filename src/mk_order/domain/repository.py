"""Order and outbox repository Protocols."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_order.domain.models import Order, SideEffect


class OrderRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, order: Order) -> None: ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]: ...

    async def update_status(
        self, db: AsyncSession, order: Order, expected_status: str, timestamp_field: str | None
    ) -> bool:
        """Write status/history/timestamp only if the stored status is still
        `expected_status`. False means another writer moved the order first."""
        ...


class SideEffectRepositoryProtocol(Protocol):
    async def enqueue(self, db: AsyncSession, effects: list[SideEffect]) -> None: ...

    async def list_pending(
        self, db: AsyncSession, limit: int, effect_ids: list[str] | None = None
    ) -> list[SideEffect]: ...

    async def mark_done(self, db: AsyncSession, effect_id: str) -> None: ...

    async def mark_failed(
        self, db: AsyncSession, effect_id: str, error: str, give_up: bool
    ) -> None: ...
