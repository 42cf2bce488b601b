"""SideEffectDispatcher — executes outbox rows for order side effects.

Each effect runs in its own savepoint together with its mark_done, so a
failing handler rolls back only its own writes; the row stays pending with
attempts + 1 and last_error, and is picked up again by the next drain.
After MAX_ATTEMPTS the row is parked as failed for manual follow-up.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.enums import SideEffectType
from src.mk_notification.dispatcher import NotificationDispatcher, NotifierProtocol
from src.mk_order.domain.effects import earnings_credited_notice
from src.mk_order.domain.models import SideEffect
from src.mk_order.domain.repository import SideEffectRepositoryProtocol
from src.mk_order.infrastructure.side_effect_persistence import SideEffectRepository
from src.mk_payout.ledger import EarningsLedger, EarningsLedgerProtocol, split_earnings
from src.mk_user.domain.repository import UserRepositoryProtocol
from src.mk_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10


class SideEffectDispatcher:
    def __init__(
        self,
        outbox: SideEffectRepositoryProtocol | None = None,
        notifier: NotifierProtocol | None = None,
        ledger: EarningsLedgerProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
    ) -> None:
        self._outbox: SideEffectRepositoryProtocol = outbox or SideEffectRepository()
        self._notifier: NotifierProtocol = notifier or NotificationDispatcher()
        self._ledger: EarningsLedgerProtocol = ledger or EarningsLedger()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()

    async def dispatch(self, db: AsyncSession, effect_ids: list[str]) -> int:
        """Run the given pending effects now. Returns how many succeeded."""
        return await self._run(db, len(effect_ids), effect_ids)

    async def drain(self, db: AsyncSession, limit: int = 50) -> int:
        """Retry up to `limit` pending effects, oldest first."""
        return await self._run(db, limit, None)

    async def _run(self, db: AsyncSession, limit: int, effect_ids: list[str] | None) -> int:
        done = 0
        try:
            effects = await self._outbox.list_pending(db, limit, effect_ids)
            for effect in effects:
                if await self._run_one(db, effect):
                    done += 1
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return done

    async def _run_one(self, db: AsyncSession, effect: SideEffect) -> bool:
        try:
            async with db.begin_nested():
                await self._handle(db, effect)
                await self._outbox.mark_done(db, effect.id)
            return True
        except Exception as e:
            give_up = effect.attempts + 1 >= MAX_ATTEMPTS
            logger.exception(
                "Side effect failed id=%s order=%s type=%s attempt=%d%s",
                effect.id, effect.order_id, effect.effect_type, effect.attempts + 1,
                " (giving up)" if give_up else "",
            )
            await self._outbox.mark_failed(db, effect.id, f"{type(e).__name__}: {e}", give_up)
            return False

    async def _handle(self, db: AsyncSession, effect: SideEffect) -> None:
        p = effect.payload
        if effect.effect_type == SideEffectType.NOTIFY.value:
            await self._notifier.notify(
                db, p["user_id"], p["type"], p["title"], p["message"], p.get("data")
            )
        elif effect.effect_type == SideEffectType.CREDIT_EARNINGS.value:
            credited = await self._ledger.credit_earnings(
                db, p["seller_id"], effect.order_id, p["gross_amount"], p["platform_fee_bps"]
            )
            # Only a credit that actually landed is announced, in the same savepoint.
            if credited:
                _, net = split_earnings(p["gross_amount"], p["platform_fee_bps"])
                notice = earnings_credited_notice(
                    effect.order_id, p.get("order_number", ""), net
                )
                await self._notifier.notify(db, p["seller_id"], **notice)
        elif effect.effect_type == SideEffectType.UPDATE_MERCHANT_METRICS.value:
            await self._users.increment_shop_metrics(db, p["seller_id"], p["revenue"], p["sales"])
        else:
            raise ValueError(f"Unknown side effect type {effect.effect_type}")
