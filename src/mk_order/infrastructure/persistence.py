"""OrderRepository — raw SQL persistence for orders.

Status writes are guarded by the status they were validated against
(WHERE status = :expected_status); 0 rows means a concurrent transition won.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_catalog.domain.models import ItemSnapshot
from src.mk_order.domain.models import Order, StatusChange

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, order_number, buyer_id, seller_id, buyer, seller, items,
        items_total, shipping_fee, total_amount, payment_method, payment_status,
        payment_details, delivery_method, delivery_address, status, status_history,
        checkout_session_id)
    VALUES (:id, :order_number, :buyer_id, :seller_id, :buyer, :seller, :items,
        :items_total, :shipping_fee, :total_amount, :payment_method, :payment_status,
        :payment_details, :delivery_method, :delivery_address, :status, :status_history,
        :checkout_session_id)
    RETURNING created_at, updated_at
""")

_SELECT_COLUMNS = """
    id, order_number, buyer_id, seller_id, buyer, seller, items,
    items_total, shipping_fee, total_amount, payment_method, payment_status,
    payment_details, delivery_method, delivery_address, status, status_history,
    checkout_session_id, confirmed_at, shipped_at, delivered_at, completed_at,
    cancelled_at, created_at, updated_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_LIST_AS_BUYER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE buyer_id = :user_id
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_AS_SELLER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE seller_id = :user_id
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

# One statement per timestamp column keeps the column name out of bind params.
_UPDATE_STATUS_TEMPLATE = """
    UPDATE orders
    SET status = :status,
        status_history = :status_history,
        payment_status = :payment_status,
        payment_details = :payment_details,
        {timestamp_set}
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING updated_at
"""

_TIMESTAMP_COLUMNS = ("confirmed_at", "shipped_at", "delivered_at", "completed_at", "cancelled_at")

_UPDATE_STATUS_SQL = {
    column: text(_UPDATE_STATUS_TEMPLATE.format(timestamp_set=f"{column} = NOW(),"))
    for column in _TIMESTAMP_COLUMNS
}
_UPDATE_STATUS_SQL[None] = text(_UPDATE_STATUS_TEMPLATE.format(timestamp_set=""))


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _load(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=str(row.id),
        order_number=row.order_number,
        buyer_id=str(row.buyer_id),
        seller_id=str(row.seller_id),
        buyer=_load(row.buyer, {}),
        seller=_load(row.seller, {}),
        items=[ItemSnapshot.from_dict(i) for i in _load(row.items, [])],
        items_total=row.items_total,
        shipping_fee=row.shipping_fee,
        total_amount=row.total_amount,
        payment_method=row.payment_method,
        payment_status=row.payment_status,
        payment_details=_load(row.payment_details, {}),
        delivery_method=row.delivery_method,
        delivery_address=_load(row.delivery_address, {}),
        status=row.status,
        status_history=[StatusChange.from_dict(h) for h in _load(row.status_history, [])],
        checkout_session_id=row.checkout_session_id,
        confirmed_at=row.confirmed_at,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class OrderRepository:
    async def insert(self, db: AsyncSession, order: Order) -> None:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "order_number": order.order_number,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "buyer": json.dumps(order.buyer),
                "seller": json.dumps(order.seller),
                "items": json.dumps([i.to_dict() for i in order.items]),
                "items_total": order.items_total,
                "shipping_fee": order.shipping_fee,
                "total_amount": order.total_amount,
                "payment_method": order.payment_method,
                "payment_status": order.payment_status,
                "payment_details": json.dumps(order.payment_details),
                "delivery_method": order.delivery_method,
                "delivery_address": json.dumps(order.delivery_address),
                "status": order.status,
                "status_history": json.dumps([h.to_dict() for h in order.status_history]),
                "checkout_session_id": order.checkout_session_id,
            },
        )
        row = result.fetchone()
        order.created_at = row.created_at
        order.updated_at = row.updated_at

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        sql = _LIST_AS_SELLER_SQL if role == "seller" else _LIST_AS_BUYER_SQL
        result = await db.execute(
            sql,
            {"user_id": user_id, "status": status, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_order(r) for r in result.fetchall()]

    async def update_status(
        self, db: AsyncSession, order: Order, expected_status: str, timestamp_field: str | None
    ) -> bool:
        result = await db.execute(
            _UPDATE_STATUS_SQL[timestamp_field],
            {
                "id": order.id,
                "status": order.status,
                "status_history": json.dumps([h.to_dict() for h in order.status_history]),
                "payment_status": order.payment_status,
                "payment_details": json.dumps(order.payment_details),
                "expected_status": expected_status,
            },
        )
        row = result.fetchone()
        if row is None:
            return False
        order.updated_at = row.updated_at
        return True
