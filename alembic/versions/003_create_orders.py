"""003: create orders and order_side_effects tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  TEXT            PRIMARY KEY,
            order_number        VARCHAR(32)     NOT NULL,
            buyer_id            TEXT            NOT NULL REFERENCES users (id),
            seller_id           TEXT            NOT NULL REFERENCES users (id),
            buyer               JSONB           NOT NULL,
            seller              JSONB           NOT NULL,
            items               JSONB           NOT NULL,
            items_total         BIGINT          NOT NULL,
            shipping_fee        BIGINT          NOT NULL DEFAULT 0,
            total_amount        BIGINT          NOT NULL,
            payment_method      VARCHAR(20)     NOT NULL,
            payment_status      VARCHAR(10)     NOT NULL DEFAULT 'pending',
            payment_details     JSONB           NOT NULL DEFAULT '{}',
            delivery_method     VARCHAR(20)     NOT NULL,
            delivery_address    JSONB,
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            status_history      JSONB           NOT NULL DEFAULT '[]',
            checkout_session_id TEXT            REFERENCES checkout_sessions (id),
            confirmed_at        TIMESTAMPTZ,
            shipped_at          TIMESTAMPTZ,
            delivered_at        TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            cancelled_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_number   UNIQUE (order_number),
            CONSTRAINT ck_orders_amounts        CHECK (
                items_total >= 0 AND shipping_fee >= 0
                AND total_amount = items_total + shipping_fee
            ),
            CONSTRAINT ck_orders_status         CHECK (
                status IN ('pending', 'confirmed', 'shipped', 'delivered',
                           'completed', 'cancelled')
            ),
            CONSTRAINT ck_orders_payment_status CHECK (payment_status IN ('pending', 'paid'))
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_session ON orders (checkout_session_id);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE order_side_effects (
            id              TEXT            PRIMARY KEY,
            order_id        TEXT            NOT NULL REFERENCES orders (id),
            effect_type     VARCHAR(40)     NOT NULL,
            payload         JSONB           NOT NULL DEFAULT '{}',
            status          VARCHAR(10)     NOT NULL DEFAULT 'pending',
            attempts        INT             NOT NULL DEFAULT 0,
            last_error      VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            processed_at    TIMESTAMPTZ,
            CONSTRAINT ck_side_effects_type     CHECK (
                effect_type IN ('NOTIFY', 'CREDIT_EARNINGS', 'UPDATE_MERCHANT_METRICS')
            ),
            CONSTRAINT ck_side_effects_status   CHECK (status IN ('pending', 'done', 'failed'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_side_effects_pending
            ON order_side_effects (created_at)
            WHERE status = 'pending';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_side_effects CASCADE;")
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
