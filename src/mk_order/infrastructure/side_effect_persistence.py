"""Outbox persistence for order side effects (order_side_effects table).

Rows are written in the same transaction as the order change that owes them.
list_pending() locks with SKIP LOCKED so concurrent drains never pick the
same row.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_order.domain.models import SideEffect

_INSERT_EFFECT_SQL = text("""
    INSERT INTO order_side_effects (id, order_id, effect_type, payload, status, attempts)
    VALUES (:id, :order_id, :effect_type, :payload, 'pending', 0)
""")

_SELECT_COLUMNS = """
    id, order_id, effect_type, payload, status, attempts, last_error,
    created_at, processed_at
"""

_LIST_PENDING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM order_side_effects
    WHERE status = 'pending'
    ORDER BY id
    LIMIT :limit
    FOR UPDATE SKIP LOCKED
""")

_LIST_PENDING_BY_IDS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM order_side_effects
    WHERE status = 'pending' AND id = ANY(:ids)
    ORDER BY id
    LIMIT :limit
    FOR UPDATE SKIP LOCKED
""")

_MARK_DONE_SQL = text("""
    UPDATE order_side_effects
    SET status = 'done', attempts = attempts + 1, last_error = NULL, processed_at = NOW()
    WHERE id = :id
""")

_MARK_FAILED_SQL = text("""
    UPDATE order_side_effects
    SET status = :status, attempts = attempts + 1, last_error = :error
    WHERE id = :id
""")


def _row_to_effect(row: Any) -> SideEffect:
    payload = row.payload
    if isinstance(payload, str):
        payload = json.loads(payload)
    return SideEffect(
        id=str(row.id),
        order_id=str(row.order_id),
        effect_type=row.effect_type,
        payload=payload or {},
        status=row.status,
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=row.created_at,
        processed_at=row.processed_at,
    )


class SideEffectRepository:
    async def enqueue(self, db: AsyncSession, effects: list[SideEffect]) -> None:
        for effect in effects:
            await db.execute(
                _INSERT_EFFECT_SQL,
                {
                    "id": effect.id,
                    "order_id": effect.order_id,
                    "effect_type": effect.effect_type,
                    "payload": json.dumps(effect.payload),
                },
            )

    async def list_pending(
        self, db: AsyncSession, limit: int, effect_ids: list[str] | None = None
    ) -> list[SideEffect]:
        if effect_ids is not None:
            if not effect_ids:
                return []
            result = await db.execute(
                _LIST_PENDING_BY_IDS_SQL, {"ids": effect_ids, "limit": limit}
            )
        else:
            result = await db.execute(_LIST_PENDING_SQL, {"limit": limit})
        return [_row_to_effect(r) for r in result.fetchall()]

    async def mark_done(self, db: AsyncSession, effect_id: str) -> None:
        await db.execute(_MARK_DONE_SQL, {"id": effect_id})

    async def mark_failed(
        self, db: AsyncSession, effect_id: str, error: str, give_up: bool
    ) -> None:
        await db.execute(
            _MARK_FAILED_SQL,
            {"id": effect_id, "status": "failed" if give_up else "pending", "error": error[:500]},
        )
