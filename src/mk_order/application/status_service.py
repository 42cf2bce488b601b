"""OrderStatusStateMachine — validated status changes and their side effects.

One transaction per transition holds the guarded status write, the history
entry, stock restoration (cancel only) and the outbox rows. Notifications,
earnings and merchant metrics run from the outbox after commit, so their
failures never undo or fail the transition.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_catalog.application.stock_service import StockReservationService
from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import OrderStatus, UserRole
from src.mk_common.errors import OrderForbiddenError, OrderNotFoundError, OrderStatusConflictError
from src.mk_order.application.side_effects import SideEffectDispatcher
from src.mk_order.domain.effects import effects_for_transition
from src.mk_order.domain.models import Order, StatusChange
from src.mk_order.domain.repository import OrderRepositoryProtocol, SideEffectRepositoryProtocol
from src.mk_order.domain.state_machine import STATUS_TIMESTAMP_FIELD, validate_transition
from src.mk_order.infrastructure.persistence import OrderRepository
from src.mk_order.infrastructure.side_effect_persistence import SideEffectRepository

logger = logging.getLogger(__name__)


class OrderStatusStateMachine:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol | None = None,
        outbox: SideEffectRepositoryProtocol | None = None,
        stock: StockReservationService | None = None,
        dispatcher: SideEffectDispatcher | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._outbox: SideEffectRepositoryProtocol = outbox or SideEffectRepository()
        self._stock = stock or StockReservationService()
        self._dispatcher = dispatcher or SideEffectDispatcher(outbox=self._outbox)

    async def get(
        self, db: AsyncSession, order_id: str, actor_id: str, actor_roles: list[str]
    ) -> Order:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.is_party(actor_id) and UserRole.ADMIN.value not in actor_roles:
            raise OrderForbiddenError(
                "ORDER_ACCESS_DENIED", "You are not allowed to view this order", order_id
            )
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> tuple[list[Order], bool]:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self._orders.list_for_user(db, user_id, role, status, cursor_id, limit + 1)
        return orders[:limit], len(orders) > limit

    async def update_status(
        self,
        db: AsyncSession,
        order_id: str,
        actor_id: str,
        actor_roles: list[str],
        target: str,
        note: str | None = None,
    ) -> Order:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return await self._transition(db, order, actor_id, actor_roles, target, note)

    async def cancel(
        self,
        db: AsyncSession,
        order_id: str,
        actor_id: str,
        actor_roles: list[str],
        reason: str,
        description: str | None = None,
    ) -> Order:
        note = f"{reason}: {description}" if description else reason
        return await self.update_status(
            db, order_id, actor_id, actor_roles, OrderStatus.CANCELLED.value, note
        )

    async def _transition(
        self,
        db: AsyncSession,
        order: Order,
        actor_id: str,
        actor_roles: list[str],
        target: str,
        note: str | None,
    ) -> Order:
        validate_transition(order, actor_id, actor_roles, target)

        expected = order.status
        now = utc_now()
        effects = effects_for_transition(
            order, target, actor_id, settings.EARNINGS_PLATFORM_FEE_BPS
        )
        try:
            if target == OrderStatus.CANCELLED.value:
                restored = await self._stock.restore(db, order.items)
                if restored:
                    units = sum(r["quantity"] for r in restored)
                    suffix = f"stock restored: {units} unit(s)"
                    note = f"{note} ({suffix})" if note else suffix.capitalize()
                    logger.info("Order %s cancelled, %s", order.id, suffix)

            order.status = target
            order.status_history.append(StatusChange(target, note, actor_id, now))
            timestamp_field = STATUS_TIMESTAMP_FIELD.get(target)
            if not await self._orders.update_status(db, order, expected, timestamp_field):
                raise OrderStatusConflictError(order.id)
            await self._outbox.enqueue(db, effects)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if timestamp_field:
            setattr(order, timestamp_field, now)
        logger.info(
            "Order status changed order=%s %s -> %s by=%s", order.id, expected, target, actor_id
        )

        if effects:
            try:
                await self._dispatcher.dispatch(db, [e.id for e in effects])
            except Exception:
                logger.exception("Side-effect dispatch failed order=%s, left for retry", order.id)
        return order
