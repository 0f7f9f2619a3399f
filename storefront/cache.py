"""Read-through response cache.

Decorate a read-only endpoint with ``@cached("product:{product_id}", ttl=300)``.
On a hit the stored JSON is returned and the endpoint does not run at all,
so cached endpoints must not have side effects. Entries are never checked
for staleness beyond their TTL: write paths delete the affected keys with
``invalidate``.

Cache failures are a miss on read and a logged warning on write; the
endpoint result is still served.
"""

import asyncio
import functools
import json
import logging
from typing import Any, Awaitable, Callable

from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

from .db.kv import KeyValueStore
from .services import get_services

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300

CACHE_ERRORS = (asyncio.TimeoutError, RedisError, OSError)


class ResponseCache:
    """JSON cache over the key-value store."""

    def __init__(self, store: KeyValueStore, timeout: float = 2.0) -> None:
        self.store = store
        self.timeout = timeout

    async def get(self, key: str) -> Any | None:
        try:
            raw = await asyncio.wait_for(self.store.get(key), self.timeout)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache get error for key {key}: {e!r}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        payload = json.dumps(jsonable_encoder(value))
        try:
            await asyncio.wait_for(self.store.set(key, payload, ttl), self.timeout)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache set error for key {key}: {e!r}")

    async def delete(self, *keys: str) -> None:
        try:
            await asyncio.wait_for(self.store.delete(*keys), self.timeout)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache delete error for keys {keys}: {e!r}")

    async def get_or_set(
        self, key: str, factory: Callable[[], Awaitable[Any]], ttl: int = DEFAULT_TTL
    ) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        cached_value = await self.get(key)
        if cached_value is not None:
            logger.debug(f"Cache hit: {key}")
            return cached_value
        value = await factory()
        await self.set(key, value, ttl)
        return value


def get_cache() -> ResponseCache:
    services = get_services()
    return ResponseCache(services.store, timeout=services.settings.store_timeout_seconds)


def cached(key: str, ttl: int = DEFAULT_TTL):
    """Cache an async endpoint's result under ``key``.

    Args:
        key: Static key or ``str.format`` template over the endpoint's
            keyword arguments, e.g. ``"product:{product_id}"``
        ttl: Seconds to keep the entry
    """

    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                cache_key = key.format(**kwargs)
            except KeyError as e:
                raise RuntimeError(f"Cache key {key!r} references unknown parameter {e}") from e

            return await get_cache().get_or_set(cache_key, lambda: func(*args, **kwargs), ttl)

        return wrapper

    return decorator


async def invalidate(*keys: str) -> None:
    """Drop cache entries after a successful write."""
    if keys:
        await get_cache().delete(*keys)
