"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Requires a running PostgreSQL with migrations applied (alembic upgrade head).
Without one the whole directory is skipped.
"""

import json
import uuid
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.mk_common.database import async_session_factory, engine
from src.mk_gateway.auth.jwt_handler import create_access_token

_INSERT_USER_SQL = text("""
    INSERT INTO users (id, username, email, phone, roles, shop_name, delivery_fees)
    VALUES (:id, :username, :email, :phone, :roles, :shop_name, :delivery_fees)
""")

_INSERT_LISTING_SQL = text("""
    INSERT INTO listings (id, seller_id, seller_name, name, price, stock, type)
    VALUES (:id, :seller_id, :seller_name, :name, :price, :stock, :type)
""")

_INSERT_CART_ITEM_SQL = text("""
    INSERT INTO cart_items (buyer_id, listing_id, quantity)
    VALUES (:buyer_id, :listing_id, :quantity)
""")


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def database_available() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM checkout_sessions LIMIT 1"))
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"PostgreSQL with migrations not reachable: {e}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@dataclass
class Shop:
    buyer_id: str
    seller_id: str
    product_id: str
    service_id: str
    buyer_headers: dict[str, str]
    seller_headers: dict[str, str]


async def _seed(
    product_stock: int, cart: bool = True, buyer_phone: str | None = "0123456789"
) -> Shop:
    uid = uuid.uuid4().hex[:8]
    shop = Shop(
        buyer_id=f"b_{uid}",
        seller_id=f"s_{uid}",
        product_id=f"lp_{uid}",
        service_id=f"ls_{uid}",
        buyer_headers={},
        seller_headers={},
    )
    async with async_session_factory() as db:
        await db.execute(_INSERT_USER_SQL, {
            "id": shop.buyer_id, "username": f"buyer_{uid}", "email": f"buyer_{uid}@uni.edu",
            "phone": buyer_phone, "roles": ["consumer"], "shop_name": None,
            "delivery_fees": None,
        })
        await db.execute(_INSERT_USER_SQL, {
            "id": shop.seller_id, "username": f"seller_{uid}", "email": f"seller_{uid}@uni.edu",
            "phone": "0198765432", "roles": ["consumer", "merchant"],
            "shop_name": f"Shop {uid}",
            "delivery_fees": json.dumps({"personal": {"enabled": True, "fee_cents": 400}}),
        })
        await db.execute(_INSERT_LISTING_SQL, {
            "id": shop.product_id, "seller_id": shop.seller_id, "seller_name": f"Shop {uid}",
            "name": "Calculus Textbook", "price": 3500, "stock": product_stock, "type": "product",
        })
        await db.execute(_INSERT_LISTING_SQL, {
            "id": shop.service_id, "seller_id": shop.seller_id, "seller_name": f"Shop {uid}",
            "name": "Tutoring Hour", "price": 2000, "stock": 0, "type": "service",
        })
        if cart:
            for listing_id in (shop.product_id, shop.service_id):
                await db.execute(_INSERT_CART_ITEM_SQL, {
                    "buyer_id": shop.buyer_id, "listing_id": listing_id, "quantity": 1,
                })
        await db.commit()

    shop.buyer_headers = {"Authorization": f"Bearer {create_access_token(shop.buyer_id)}"}
    shop.seller_headers = {
        "Authorization": f"Bearer {create_access_token(shop.seller_id, ['consumer', 'merchant'])}"
    }
    return shop


@pytest.fixture
def seed():
    """Factory: seed a fresh buyer, seller and two listings per call."""
    return _seed
