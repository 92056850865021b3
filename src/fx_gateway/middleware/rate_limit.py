"""Rate limiting middleware — Redis fixed-window counters per client IP.

Rules (window = RATE_LIMIT_WINDOW_SECONDS, 30s by default):
  - POST /exchange:         RATE_LIMIT_EXCHANGE requests per window
  - other writes (PUT/POST): RATE_LIMIT_WRITE requests per window
  - reads (GET):            RATE_LIMIT_READ requests per window

Key pattern: "ratelimit:{client_ip}:{group}". Each request runs
SET key 0 EX window NX + INCR in one MULTI, so the counter never exists without
its TTL; when the key expires the window restarts.

X-Forwarded-For is only honoured with RATE_LIMIT_TRUST_FORWARDED=true (behind a
proxy that overwrites it); otherwise a client could pick its own bucket.

If Redis is unreachable the request is let through and a warning is logged:
losing the limiter must not take the exchange down with it.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.fx_common.errors import RateLimitError
from src.fx_common.redis_client import get_redis
from src.fx_common.response import error_response

logger = logging.getLogger(__name__)

_UNLIMITED_PATHS = frozenset({"/health", "/docs", "/openapi.json"})
_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """First hop of X-Forwarded-For when the proxy is trusted, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def endpoint_group(request: Request) -> str | None:
    path = request.url.path
    if path in _UNLIMITED_PATHS:
        return None
    if request.method == "POST" and path.rstrip("/").endswith("/exchange"):
        return "exchange"
    if request.method in _WRITE_METHODS:
        return "write"
    return "read"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        redis_getter: Callable[[], Awaitable[Any]] = get_redis,
        enabled: bool = settings.RATE_LIMIT_ENABLED,
        window_seconds: int = settings.RATE_LIMIT_WINDOW_SECONDS,
        limits: dict[str, int] | None = None,
        trust_forwarded: bool = settings.RATE_LIMIT_TRUST_FORWARDED,
    ) -> None:
        super().__init__(app)
        self._redis_getter = redis_getter
        self._enabled = enabled
        self._window_seconds = window_seconds
        self._trust_forwarded = trust_forwarded
        self._limits = limits or {
            "exchange": settings.RATE_LIMIT_EXCHANGE,
            "write": settings.RATE_LIMIT_WRITE,
            "read": settings.RATE_LIMIT_READ,
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = endpoint_group(request)
        if not self._enabled or group is None:
            return await call_next(request)

        key = f"ratelimit:{client_ip(request, self._trust_forwarded)}:{group}"
        try:
            redis = await self._redis_getter()
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=self._window_seconds, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)

        if count > self._limits[group]:
            logger.info("Rate limit exceeded: key=%s count=%d", key, count)
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message, request=request).model_dump(),
                headers={"Retry-After": str(self._window_seconds)},
            )
        return await call_next(request)
