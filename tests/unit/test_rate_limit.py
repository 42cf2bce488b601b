"""Tests for RateLimitMiddleware with an in-memory Redis stand-in."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.mk_gateway.auth.jwt_handler import create_access_token
from src.mk_gateway.middleware import rate_limit
from src.mk_gateway.middleware.rate_limit import RateLimitMiddleware


class FakeRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.ttls[key] = seconds


def _app(limit: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limit=limit)

    @app.get("/api/v1/checkout/ping")
    async def checkout_ping() -> dict[str, str]:
        return {"ok": "checkout"}

    @app.get("/api/v1/orders")
    async def orders() -> dict[str, str]:
        return {"ok": "orders"}

    return app


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    redis = FakeRedis()

    async def _get_redis() -> FakeRedis:
        return redis

    monkeypatch.setattr(rate_limit, "get_redis", _get_redis)
    return redis


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_limit_per_caller(fake_redis: FakeRedis) -> None:
    async with _client(_app(limit=2)) as c:
        assert (await c.get("/api/v1/checkout/ping")).status_code == 200
        assert (await c.get("/api/v1/checkout/ping")).status_code == 200
        resp = await c.get("/api/v1/checkout/ping")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "RATE_LIMITED"
    assert fake_redis.ttls == {"ratelimit:ip:127.0.0.1:checkout": 60}


async def test_other_paths_not_limited(fake_redis: FakeRedis) -> None:
    async with _client(_app(limit=1)) as c:
        for _ in range(3):
            assert (await c.get("/api/v1/orders")).status_code == 200
    assert fake_redis.counts == {}


async def test_token_subject_is_the_key(fake_redis: FakeRedis) -> None:
    headers = {"Authorization": f"Bearer {create_access_token('buyer-7')}"}
    async with _client(_app(limit=5)) as c:
        await c.get("/api/v1/checkout/ping", headers=headers)
        await c.get("/api/v1/checkout/ping", headers={"X-Forwarded-For": "10.0.0.9, 10.0.0.1"})
        await c.get("/api/v1/checkout/ping", headers={"Authorization": "Bearer junk"})

    assert fake_redis.counts == {
        "ratelimit:user:buyer-7:checkout": 1,
        "ratelimit:ip:10.0.0.9:checkout": 1,
        "ratelimit:ip:127.0.0.1:checkout": 1,
    }


async def test_fails_open_without_redis(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken() -> None:
        raise ConnectionError("redis down")

    monkeypatch.setattr(rate_limit, "get_redis", _broken)
    async with _client(_app(limit=1)) as c:
        for _ in range(3):
            assert (await c.get("/api/v1/checkout/ping")).status_code == 200


async def test_zero_limit_disables(fake_redis: FakeRedis) -> None:
    async with _client(_app(limit=0)) as c:
        assert (await c.get("/api/v1/checkout/ping")).status_code == 200
    assert fake_redis.counts == {}
