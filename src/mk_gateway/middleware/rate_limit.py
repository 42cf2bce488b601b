"""Fixed-window rate limiting for checkout endpoints (Redis INCR + EXPIRE).

Key pattern: "ratelimit:{user_id_or_ip}:checkout", one 60 s window.
The caller is identified by the token subject when a valid bearer token is
present, otherwise by client IP (X-Forwarded-For aware). If Redis is
unreachable the request is let through and a warning is logged.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.mk_common.errors import AppError, RateLimitError
from src.mk_common.redis_client import get_redis
from src.mk_common.response import error_response
from src.mk_gateway.auth.jwt_handler import decode_access_token

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_LIMITED_PREFIX = "/api/v1/checkout"


def _client_key(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            return f"user:{decode_access_token(auth[7:])['sub']}"
        except AppError:
            pass  # fall back to IP; the route itself rejects the token
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int | None = None) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self._limit = settings.RATE_LIMIT_CHECKOUT_PER_MINUTE if limit is None else limit

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._limit <= 0 or not request.url.path.startswith(_LIMITED_PREFIX):
            return await call_next(request)

        key = f"ratelimit:{_client_key(request)}:checkout"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except Exception:
            logger.warning("Rate limiter unavailable, allowing request key=%s", key, exc_info=True)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            resp = error_response(
                err.code,
                err.kind.value,
                err.message,
                request_id=getattr(request.state, "request_id", None),
            )
            return JSONResponse(
                status_code=err.http_status,
                content=resp.model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)
