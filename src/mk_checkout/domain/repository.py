"""CheckoutSessionRepository Protocol."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_checkout.domain.models import CheckoutSession


class CheckoutSessionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, session: CheckoutSession) -> None:
        """Raises ActiveSessionConflictError when the buyer already has a live session."""
        ...

    async def get_by_id(self, db: AsyncSession, session_id: str) -> CheckoutSession | None: ...

    async def get_active_for_user(
        self, db: AsyncSession, user_id: str
    ) -> CheckoutSession | None: ...

    async def save(self, db: AsyncSession, session: CheckoutSession) -> bool:
        """Write the whole document if the stored version still equals
        session.version; bumps session.version on success. False on conflict."""
        ...

    async def cancel_active_for_user(self, db: AsyncSession, user_id: str) -> list[CheckoutSession]:
        """Cancel the user's pending and payment_intent_created sessions; returns them."""
        ...

    async def list_expired(self, db: AsyncSession, limit: int) -> list[CheckoutSession]: ...

    async def list_stuck_processing(
        self, db: AsyncSession, updated_before: datetime, limit: int
    ) -> list[CheckoutSession]:
        """Sessions still in processing whose last write is older than updated_before."""
        ...

    async def list_orders_for_session(
        self, db: AsyncSession, session_id: str
    ) -> list[tuple[str, str]]:
        """(order_id, seller_id) of every order created from the session."""
        ...
