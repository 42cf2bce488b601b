"""Periodic maintenance: drain the side-effect outbox, expire stale sessions.

Each job gets its own database session so one failing job never poisons
the other. Errors are logged and the loop keeps running.
"""

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_checkout.application.service import CheckoutSessionManager
from src.mk_common.database import async_session_factory
from src.mk_order.application.side_effects import SideEffectDispatcher

logger = logging.getLogger(__name__)


class MaintenanceRunner:
    def __init__(
        self,
        dispatcher: SideEffectDispatcher | None = None,
        sessions: CheckoutSessionManager | None = None,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
    ) -> None:
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._sessions = sessions or CheckoutSessionManager()
        self._session_factory = session_factory

    async def run_once(self) -> tuple[int, int]:
        """Returns (effects processed, sessions expired)."""
        processed = expired = 0
        try:
            async with self._session_factory() as db:
                processed = await self._dispatcher.drain(db)
        except Exception:
            logger.exception("Outbox drain failed")
        try:
            async with self._session_factory() as db:
                expired = await self._sessions.expire_stale(db)
        except Exception:
            logger.exception("Checkout session expiry sweep failed")
        if processed or expired:
            logger.info("Maintenance: effects=%d expired_sessions=%d", processed, expired)
        return processed, expired

    async def run_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.run_once()
