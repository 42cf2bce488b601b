"""004: create seller_balances, balance_transactions, notifications

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE seller_balances (
            seller_id           TEXT            PRIMARY KEY REFERENCES users (id),
            available_balance   BIGINT          NOT NULL DEFAULT 0,
            total_earned        BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_seller_balances_available_gte_0 CHECK (available_balance >= 0),
            CONSTRAINT ck_seller_balances_earned_gte_0    CHECK (total_earned >= 0)
        );
    """)

    # One earning row per order makes crediting idempotent
    op.execute("""
        CREATE TABLE balance_transactions (
            id              TEXT            PRIMARY KEY,
            seller_id       TEXT            NOT NULL REFERENCES users (id),
            order_id        TEXT            NOT NULL REFERENCES orders (id),
            type            VARCHAR(20)     NOT NULL,
            gross_amount    BIGINT          NOT NULL,
            platform_fee    BIGINT          NOT NULL,
            net_amount      BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_balance_transactions_order UNIQUE (order_id),
            CONSTRAINT ck_balance_transactions_type  CHECK (type IN ('earning')),
            CONSTRAINT ck_balance_transactions_split CHECK (
                platform_fee >= 0 AND net_amount >= 0
                AND gross_amount = platform_fee + net_amount
            )
        );
    """)
    op.execute("CREATE INDEX idx_balance_transactions_seller ON balance_transactions (seller_id);")

    op.execute("""
        CREATE TABLE notifications (
            id              TEXT            PRIMARY KEY,
            user_id         TEXT            NOT NULL REFERENCES users (id),
            type            VARCHAR(40)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            message         TEXT            NOT NULL,
            data            JSONB           NOT NULL DEFAULT '{}',
            is_read         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute(
        "CREATE INDEX idx_notifications_user ON notifications (user_id, created_at DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
    op.execute("DROP TABLE IF EXISTS balance_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS seller_balances CASCADE;")
