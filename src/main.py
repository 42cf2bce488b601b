"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.mk_checkout.api.router import router as checkout_router
from src.mk_common.database import engine
from src.mk_common.errors import AppError, ErrorKind
from src.mk_common.redis_client import close_redis, get_redis
from src.mk_common.response import error_response
from src.mk_gateway.middleware.rate_limit import RateLimitMiddleware
from src.mk_gateway.middleware.request_log import RequestLogMiddleware
from src.mk_order.api.router import router as order_router
from src.mk_order.application.maintenance import MaintenanceRunner

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start maintenance. Shutdown: stop and dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    maintenance = asyncio.create_task(
        MaintenanceRunner().run_forever(settings.MAINTENANCE_INTERVAL_SECONDS)
    )
    yield
    maintenance.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await maintenance
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Starlette runs the last-added middleware first: request ids exist before rate limiting.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(
        exc.code,
        exc.kind.value,
        exc.message,
        exc.details,
        getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    resp = error_response(
        "SERVICE_ERROR",
        ErrorKind.SERVICE_ERROR.value,
        "Internal server error",
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=500, content=resp.model_dump())


app.include_router(checkout_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
