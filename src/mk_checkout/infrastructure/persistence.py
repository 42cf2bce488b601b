"""CheckoutSessionRepository — raw SQL over checkout_sessions.

Each row is a document: items, seller_groups, pricing, delivery_address,
stock_reservations and created_orders are JSONB.

Concurrency:
  - save() is an optimistic compare-and-set on `version`.
  - uq_checkout_sessions_active (partial unique index on user_id for
    non-terminal statuses) makes a second live session impossible; insert()
    turns the violation into ActiveSessionConflictError.
  - A session whose confirm died mid-way stays in processing; list_stuck_processing
    finds it so the manager can settle it against the orders actually written.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_catalog.domain.models import ItemSnapshot, StockReservation
from src.mk_checkout.domain.models import CheckoutSession, PricingSummary, SellerGroup
from src.mk_common.enums import CANCELLABLE_SESSION_STATUSES, NON_TERMINAL_SESSION_STATUSES
from src.mk_common.errors import ActiveSessionConflictError

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, user_id, session_type, items, seller_groups, pricing,
    delivery_method, delivery_address, payment_method, payment_intent_id,
    status, stock_reservations, created_orders, version,
    expires_at, created_at, updated_at
"""

_INSERT_SESSION_SQL = text("""
    INSERT INTO checkout_sessions
        (id, user_id, session_type, items, seller_groups, pricing,
         delivery_method, delivery_address, payment_method, payment_intent_id,
         status, stock_reservations, created_orders, version, expires_at)
    VALUES
        (:id, :user_id, :session_type, :items, :seller_groups, :pricing,
         :delivery_method, :delivery_address, :payment_method, :payment_intent_id,
         :status, :stock_reservations, :created_orders, 0, :expires_at)
    RETURNING created_at, updated_at
""")

_SAVE_SESSION_SQL = text("""
    UPDATE checkout_sessions
    SET seller_groups = :seller_groups,
        pricing = :pricing,
        delivery_method = :delivery_method,
        delivery_address = :delivery_address,
        payment_method = :payment_method,
        payment_intent_id = :payment_intent_id,
        status = :status,
        stock_reservations = :stock_reservations,
        created_orders = :created_orders,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :version
    RETURNING version, updated_at
""")

_GET_SESSION_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM checkout_sessions WHERE id = :id
""")

_GET_ACTIVE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM checkout_sessions
    WHERE user_id = :user_id AND status = ANY(:statuses)
    ORDER BY created_at DESC
    LIMIT 1
""")

_CANCEL_ACTIVE_SQL = text(f"""
    UPDATE checkout_sessions
    SET status = 'cancelled', version = version + 1, updated_at = NOW()
    WHERE user_id = :user_id AND status = ANY(:statuses)
    RETURNING {_SELECT_COLUMNS}
""")

_LIST_EXPIRED_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM checkout_sessions
    WHERE status = ANY(:statuses) AND expires_at <= NOW()
    ORDER BY expires_at
    LIMIT :limit
""")

_LIST_STUCK_PROCESSING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM checkout_sessions
    WHERE status = 'processing' AND updated_at <= :updated_before
    ORDER BY updated_at
    LIMIT :limit
""")

_LIST_SESSION_ORDERS_SQL = text("""
    SELECT id, seller_id
    FROM orders
    WHERE checkout_session_id = :session_id
    ORDER BY id
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _load(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_session(row: Any) -> CheckoutSession:
    return CheckoutSession(
        id=str(row.id),
        user_id=str(row.user_id),
        session_type=row.session_type,
        items=[ItemSnapshot.from_dict(i) for i in _load(row.items, [])],
        seller_groups=[SellerGroup.from_dict(g) for g in _load(row.seller_groups, [])],
        pricing=PricingSummary.from_dict(_load(row.pricing, {})),
        delivery_method=row.delivery_method,
        delivery_address=_load(row.delivery_address, None),
        payment_method=row.payment_method,
        payment_intent_id=row.payment_intent_id,
        status=row.status,
        stock_reservations=[
            StockReservation.from_dict(r) for r in _load(row.stock_reservations, [])
        ],
        created_orders=list(_load(row.created_orders, [])),
        version=row.version,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _document_params(session: CheckoutSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "seller_groups": json.dumps([g.to_dict() for g in session.seller_groups]),
        "pricing": json.dumps(session.pricing.to_dict()),
        "delivery_method": session.delivery_method,
        "delivery_address": (
            json.dumps(session.delivery_address) if session.delivery_address is not None else None
        ),
        "payment_method": session.payment_method,
        "payment_intent_id": session.payment_intent_id,
        "status": session.status,
        "stock_reservations": json.dumps([r.to_dict() for r in session.stock_reservations]),
        "created_orders": json.dumps(session.created_orders),
    }


class CheckoutSessionRepository:
    async def insert(self, db: AsyncSession, session: CheckoutSession) -> None:
        params = _document_params(session)
        params.update(
            user_id=session.user_id,
            session_type=session.session_type,
            items=json.dumps([i.to_dict() for i in session.items]),
            expires_at=session.expires_at,
        )
        try:
            async with db.begin_nested():
                result = await db.execute(_INSERT_SESSION_SQL, params)
                row = result.fetchone()
        except IntegrityError as e:
            raise ActiveSessionConflictError(session.user_id) from e
        session.version = 0
        session.created_at = row.created_at
        session.updated_at = row.updated_at

    async def get_by_id(self, db: AsyncSession, session_id: str) -> CheckoutSession | None:
        result = await db.execute(_GET_SESSION_SQL, {"id": session_id})
        row = result.fetchone()
        return _row_to_session(row) if row else None

    async def get_active_for_user(
        self, db: AsyncSession, user_id: str
    ) -> CheckoutSession | None:
        result = await db.execute(
            _GET_ACTIVE_SQL,
            {"user_id": user_id, "statuses": list(NON_TERMINAL_SESSION_STATUSES)},
        )
        row = result.fetchone()
        return _row_to_session(row) if row else None

    async def save(self, db: AsyncSession, session: CheckoutSession) -> bool:
        params = _document_params(session)
        params["version"] = session.version
        result = await db.execute(_SAVE_SESSION_SQL, params)
        row = result.fetchone()
        if row is None:
            return False
        session.version = row.version
        session.updated_at = row.updated_at
        return True

    async def cancel_active_for_user(
        self, db: AsyncSession, user_id: str
    ) -> list[CheckoutSession]:
        result = await db.execute(
            _CANCEL_ACTIVE_SQL,
            {"user_id": user_id, "statuses": list(CANCELLABLE_SESSION_STATUSES)},
        )
        return [_row_to_session(r) for r in result.fetchall()]

    async def list_expired(self, db: AsyncSession, limit: int) -> list[CheckoutSession]:
        result = await db.execute(
            _LIST_EXPIRED_SQL,
            {"statuses": list(CANCELLABLE_SESSION_STATUSES), "limit": limit},
        )
        return [_row_to_session(r) for r in result.fetchall()]

    async def list_stuck_processing(
        self, db: AsyncSession, updated_before: datetime, limit: int
    ) -> list[CheckoutSession]:
        result = await db.execute(
            _LIST_STUCK_PROCESSING_SQL, {"updated_before": updated_before, "limit": limit}
        )
        return [_row_to_session(r) for r in result.fetchall()]

    async def list_orders_for_session(
        self, db: AsyncSession, session_id: str
    ) -> list[tuple[str, str]]:
        result = await db.execute(_LIST_SESSION_ORDERS_SQL, {"session_id": session_id})
        return [(str(r.id), str(r.seller_id)) for r in result.fetchall()]
