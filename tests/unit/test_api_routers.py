"""HTTP-level tests: envelope, status codes and error mapping.

Services are the real ones wired to in-memory repositories; auth and the DB
session are replaced through FastAPI dependency overrides.
"""

import pytest
from httpx import AsyncClient

from src.main import app
from src.mk_checkout.api import router as checkout_api
from src.mk_common.database import get_db_session
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_gateway.middleware import rate_limit
from src.mk_order.api import router as order_api
from tests.unit.world import BUYER, PERSONAL_ADDRESS, World

BUYER_USER = CurrentUser(id=BUYER, roles=["consumer"])
SELLER_USER = CurrentUser(id="s1", roles=["consumer", "merchant"])


class _Redis:
    async def incr(self, key: str) -> int:
        return 1

    async def expire(self, key: str, seconds: int) -> None:
        return None


class Caller:
    user = BUYER_USER


@pytest.fixture
def caller(world: World, monkeypatch: pytest.MonkeyPatch):
    async def _db():
        yield world.db

    async def _redis() -> _Redis:
        return _Redis()

    current = Caller()
    monkeypatch.setattr(checkout_api, "_manager", world.manager)
    monkeypatch.setattr(checkout_api, "_payments", world.payments)
    monkeypatch.setattr(checkout_api, "_engine", world.engine)
    monkeypatch.setattr(order_api, "_service", world.status)
    monkeypatch.setattr(rate_limit, "get_redis", _redis)
    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_current_user] = lambda: current.user
    yield current
    app.dependency_overrides.clear()


async def _checkout(client: AsyncClient) -> dict:
    created = await client.post("/api/v1/checkout/sessions/cart")
    session_id = created.json()["data"]["id"]
    await client.patch(
        f"/api/v1/checkout/sessions/{session_id}",
        json={
            "delivery_method": "delivery",
            "delivery_address": PERSONAL_ADDRESS,
            "payment_method": "cod",
        },
    )
    resp = await client.post(f"/api/v1/checkout/sessions/{session_id}/confirm")
    assert resp.status_code == 201
    return resp.json()


class TestCheckoutEndpoints:
    async def test_create_from_cart(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post(
            "/api/v1/checkout/sessions/cart", headers={"X-Request-ID": "req_test123"}
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Checkout session created"
        assert body["request_id"] == "req_test123"
        assert resp.headers["X-Request-ID"] == "req_test123"
        data = body["data"]
        assert data["status"] == "pending"
        assert data["pricing"]["total_amount"] == 6500
        assert data["pricing"]["seller_count"] == 2

    async def test_empty_cart_is_validation_error(
        self, client: AsyncClient, caller: Caller, world: World
    ) -> None:
        world.carts.data["carts"].clear()
        world.reset_db()

        resp = await client.post("/api/v1/checkout/sessions/cart")

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "CART_EMPTY"
        assert body["error"]["kind"] == "VALIDATION"

    async def test_no_active_session(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.get("/api/v1/checkout/sessions/active")
        assert resp.status_code == 200
        assert resp.json()["data"] is None
        assert resp.json()["message"] == "No active checkout session"

    async def test_direct_session_validates_body(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post("/api/v1/checkout/sessions/direct", json={"quantity": 0})
        assert resp.status_code == 422

    async def test_session_of_another_user_is_not_found(
        self, client: AsyncClient, caller: Caller
    ) -> None:
        session_id = (await client.post("/api/v1/checkout/sessions/cart")).json()["data"]["id"]
        caller.user = SELLER_USER

        resp = await client.post(f"/api/v1/checkout/sessions/{session_id}/cancel")

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "SESSION_NOT_FOUND"

    async def test_confirm_creates_orders(self, client: AsyncClient, caller: Caller) -> None:
        body = await _checkout(client)

        assert body["message"] == "2 order(s) created"
        data = body["data"]
        assert data["partial"] is False
        assert {o["total_display"] for o in data["orders"]} == {"RM 45.00", "RM 20.00"}

    async def test_confirm_without_details(self, client: AsyncClient, caller: Caller) -> None:
        session_id = (await client.post("/api/v1/checkout/sessions/cart")).json()["data"]["id"]
        resp = await client.post(f"/api/v1/checkout/sessions/{session_id}/confirm")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "DELIVERY_DETAILS_REQUIRED"

    async def test_payment_intent_for_cod_rejected(
        self, client: AsyncClient, caller: Caller
    ) -> None:
        session_id = (await client.post("/api/v1/checkout/sessions/cart")).json()["data"]["id"]
        await client.patch(
            f"/api/v1/checkout/sessions/{session_id}", json={"payment_method": "cod"}
        )
        resp = await client.post(f"/api/v1/checkout/sessions/{session_id}/payment-intent")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_PAYMENT_METHOD"


class TestOrderEndpoints:
    async def test_list_and_paginate(self, client: AsyncClient, caller: Caller) -> None:
        await _checkout(client)

        first = (await client.get("/api/v1/orders", params={"limit": 1})).json()["data"]
        assert len(first["items"]) == 1
        assert first["has_more"] is True

        second = (
            await client.get("/api/v1/orders", params={"limit": 1, "cursor": first["next_cursor"]})
        ).json()["data"]
        assert len(second["items"]) == 1
        assert second["has_more"] is False
        assert second["next_cursor"] is None
        assert second["items"][0]["id"] != first["items"][0]["id"]

    async def test_seller_confirms_then_buyer_cannot_cancel(
        self, client: AsyncClient, caller: Caller
    ) -> None:
        orders = (await _checkout(client))["data"]["orders"]
        order_id = next(o["id"] for o in orders if o["seller"]["id"] == "s1")

        caller.user = SELLER_USER
        resp = await client.patch(
            f"/api/v1/orders/{order_id}/status", json={"status": "confirmed"}
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Order status updated to confirmed"
        assert resp.json()["data"]["confirmed_at"] is not None

        caller.user = BUYER_USER
        resp = await client.post(
            f"/api/v1/orders/{order_id}/cancel", json={"reason": "Changed my mind"}
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CANCEL_NOT_ALLOWED"
        assert resp.json()["error"]["kind"] == "FORBIDDEN"

    async def test_buyer_cancels_pending(self, client: AsyncClient, caller: Caller) -> None:
        order_id = (await _checkout(client))["data"]["orders"][0]["id"]
        resp = await client.post(
            f"/api/v1/orders/{order_id}/cancel", json={"reason": "Changed my mind"}
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Order cancelled"
        assert resp.json()["data"]["status"] == "cancelled"

    async def test_unknown_order(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.get("/api/v1/orders/123")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ORDER_NOT_FOUND"

    async def test_bad_status_value(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.patch("/api/v1/orders/123/status", json={"status": "teleported"})
        assert resp.status_code == 422


async def test_requires_token(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/orders")
    assert resp.status_code == 401


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok", "version": "0.1.0"}
