"""002: create checkout_sessions table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE checkout_sessions (
            id                  TEXT            PRIMARY KEY,
            user_id             TEXT            NOT NULL REFERENCES users (id),
            session_type        VARCHAR(10)     NOT NULL,
            items               JSONB           NOT NULL DEFAULT '[]',
            seller_groups       JSONB           NOT NULL DEFAULT '[]',
            pricing             JSONB           NOT NULL DEFAULT '{}',
            delivery_method     VARCHAR(20),
            delivery_address    JSONB,
            payment_method      VARCHAR(20),
            payment_intent_id   VARCHAR(255),
            status              VARCHAR(30)     NOT NULL DEFAULT 'pending',
            stock_reservations  JSONB           NOT NULL DEFAULT '[]',
            created_orders      JSONB           NOT NULL DEFAULT '[]',
            version             INT             NOT NULL DEFAULT 0,
            expires_at          TIMESTAMPTZ     NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_sessions_type     CHECK (session_type IN ('cart', 'direct')),
            CONSTRAINT ck_sessions_status   CHECK (
                status IN ('pending', 'payment_intent_created', 'processing',
                           'completed', 'cancelled', 'expired')
            ),
            CONSTRAINT ck_sessions_delivery_method CHECK (
                delivery_method IS NULL OR delivery_method IN
                ('delivery', 'campus_delivery', 'room_delivery', 'self_pickup', 'meetup')
            ),
            CONSTRAINT ck_sessions_payment_method CHECK (
                payment_method IS NULL OR payment_method IN
                ('cod', 'credit_card', 'online_banking')
            ),
            CONSTRAINT ck_sessions_version_gte_0 CHECK (version >= 0)
        );
    """)
    # At most one non-terminal session per buyer
    op.execute("""
        CREATE UNIQUE INDEX uq_checkout_sessions_active
            ON checkout_sessions (user_id)
            WHERE status IN ('pending', 'payment_intent_created', 'processing');
    """)
    op.execute("""
        CREATE INDEX idx_checkout_sessions_expiry
            ON checkout_sessions (expires_at)
            WHERE status IN ('pending', 'payment_intent_created');
    """)
    op.execute("""
        CREATE INDEX idx_checkout_sessions_processing
            ON checkout_sessions (updated_at)
            WHERE status = 'processing';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS checkout_sessions CASCADE;")
