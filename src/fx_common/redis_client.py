"""Redis client factory — backs the cache-aside layer and rate limiting.

One pool per process. The pool is bounded so a burst of exchanges cannot open
an unbounded number of sockets, and idle connections are health-checked
before reuse so a restarted Redis surfaces as one retry, not a failed read.
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)

_redis_pool: aioredis.Redis | None = None


def create_redis(url: str = settings.REDIS_URL) -> aioredis.Redis:
    return aioredis.from_url(
        url,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        health_check_interval=settings.REDIS_HEALTH_CHECK_SECONDS,
    )


async def get_redis() -> aioredis.Redis:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = create_redis()
        logger.info("Redis pool created (max_connections=%d)", settings.REDIS_MAX_CONNECTIONS)
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
