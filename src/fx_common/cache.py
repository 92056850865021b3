"""Generic cache-aside layer over Redis.

Policy:
  - Read: check cache → on miss call the loader (durable store) → populate cache with TTL
  - Write: the caller commits to the durable store first, then invalidates the keys.
    A failed invalidation after the commit is logged; the TTL bounds the staleness
  - A loader miss (None or a not-found AppError) is never cached; the next read re-checks the store
  - TTL is the only eviction mechanism; there is no capacity bound

Values cross the Redis boundary as JSON produced by a pydantic TypeAdapter, so
Decimal amounts survive the round trip as exact strings.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from pydantic import TypeAdapter
from redis.exceptions import RedisError

from src.fx_common.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheBackend(Protocol):
    """Subset of the redis.asyncio.Redis API used by CacheAside."""

    async def get(self, name: str) -> Any: ...

    async def set(self, name: str, value: Any, ex: int | None = None) -> Any: ...

    async def delete(self, *names: str) -> Any: ...


class CacheAside:
    def __init__(self, backend: CacheBackend, namespace: str) -> None:
        self._backend = backend
        self._namespace = namespace

    def key(self, *parts: object) -> str:
        return ":".join([self._namespace, *(str(p) for p in parts)])

    async def read(
        self,
        key: str,
        loader: Callable[[], Awaitable[T | None]],
        adapter: TypeAdapter[T],
        ttl: int,
    ) -> T | None:
        """Return the cached value for key, or load it from the store and cache it."""
        try:
            raw = await self._backend.get(key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc

        if raw is not None:
            return adapter.validate_json(raw)

        logger.debug("Cache miss: %s", key)
        value = await loader()
        if value is None:
            return None

        try:
            await self._backend.set(key, adapter.dump_json(value), ex=ttl)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc
        return value

    async def invalidate(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._backend.delete(*keys)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(str(exc)) from exc
        logger.debug("Cache invalidated: %s", ", ".join(keys))

    async def invalidate_committed(self, *keys: str, ttl: int) -> None:
        """Invalidate after a durable write has already committed.

        The write cannot be undone at this point, so a Redis failure is logged
        instead of raised; the stale entries expire within ttl seconds.
        """
        try:
            await self.invalidate(*keys)
        except CacheUnavailableError as exc:
            logger.warning(
                "Invalidation after commit failed, %s may serve stale data for up to %ds: %s",
                ", ".join(keys), ttl, exc.message,
            )
