"""001: create users, listings, listing_variants, cart_items

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TABLE users (
            id                      TEXT            PRIMARY KEY,
            username                VARCHAR(64),
            email                   VARCHAR(255)    NOT NULL,
            phone                   VARCHAR(32),
            roles                   TEXT[]          NOT NULL DEFAULT ARRAY['consumer'],
            shop_name               VARCHAR(150),
            delivery_fees           JSONB,
            deliverable_campuses    TEXT[]          NOT NULL DEFAULT '{}',
            shop_total_revenue      BIGINT          NOT NULL DEFAULT 0,
            shop_total_sales        INT             NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_email               UNIQUE (email),
            CONSTRAINT ck_users_revenue_gte_0       CHECK (shop_total_revenue >= 0),
            CONSTRAINT ck_users_sales_gte_0         CHECK (shop_total_sales >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE listings (
            id              TEXT            PRIMARY KEY,
            seller_id       TEXT            NOT NULL REFERENCES users (id),
            seller_name     VARCHAR(150)    NOT NULL,
            name            VARCHAR(200)    NOT NULL,
            price           BIGINT          NOT NULL,
            stock           INT             NOT NULL DEFAULT 0,
            type            VARCHAR(10)     NOT NULL DEFAULT 'product',
            is_available    BOOLEAN         NOT NULL DEFAULT TRUE,
            images          JSONB           NOT NULL DEFAULT '[]',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price_gte_0  CHECK (price >= 0),
            CONSTRAINT ck_listings_stock_gte_0  CHECK (stock >= 0),
            CONSTRAINT ck_listings_type         CHECK (type IN ('product', 'service'))
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE listing_variants (
            id              TEXT            PRIMARY KEY,
            listing_id      TEXT            NOT NULL REFERENCES listings (id) ON DELETE CASCADE,
            name            VARCHAR(100)    NOT NULL,
            sku             VARCHAR(64),
            price           BIGINT          NOT NULL,
            stock           INT             NOT NULL DEFAULT 0,
            is_available    BOOLEAN         NOT NULL DEFAULT TRUE,
            attributes      JSONB           NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_variants_price_gte_0  CHECK (price >= 0),
            CONSTRAINT ck_variants_stock_gte_0  CHECK (stock >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_variants_listing ON listing_variants (listing_id);")
    op.execute("""
        CREATE TRIGGER trg_listing_variants_updated_at
            BEFORE UPDATE ON listing_variants
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE cart_items (
            id              BIGINT          GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
            buyer_id        TEXT            NOT NULL REFERENCES users (id),
            listing_id      TEXT            NOT NULL REFERENCES listings (id) ON DELETE CASCADE,
            variant_id      TEXT            REFERENCES listing_variants (id) ON DELETE CASCADE,
            quantity        INT             NOT NULL,
            added_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_cart_items_quantity   CHECK (quantity > 0)
        );
    """)
    op.execute("CREATE INDEX idx_cart_items_buyer ON cart_items (buyer_id);")
    op.execute(
        "CREATE UNIQUE INDEX uq_cart_items_line "
        "ON cart_items (buyer_id, listing_id, COALESCE(variant_id, ''));"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS cart_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS listing_variants CASCADE;")
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
