"""Key-value store used for rate counters, response caching and events.

``RedisStore`` is the production backend (``redis.asyncio``).
``InMemoryStore`` keeps everything in-process with lazy TTL expiry and an
injectable clock; it backs local development and the test suite.
"""

import logging
import time
from typing import Any, Callable, Protocol

from redis.asyncio import Redis

from ..config import Settings

logger = logging.getLogger(__name__)

# INCR, then attach a TTL if the key has none. Also repairs counters left
# without an expiry.
INCR_WITH_TTL_SCRIPT = """
local count = redis.call("INCR", KEYS[1])
if redis.call("TTL", KEYS[1]) < 0 then
    redis.call("EXPIRE", KEYS[1], ARGV[1])
end
return count
"""


class KeyValueStore(Protocol):
    """Operations the gates and cache rely on."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def incr(self, key: str, by: int = 1) -> int: ...

    async def incr_with_ttl(self, key: str, seconds: int) -> int: ...

    async def expire(self, key: str, seconds: int) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def publish(self, channel: str, message: str) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisStore:
    """Redis-backed store."""

    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisStore":
        client = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            decode_responses=True,
            socket_timeout=settings.store_timeout_seconds,
            socket_connect_timeout=settings.store_timeout_seconds,
        )
        logger.info(f"Redis store configured for {settings.redis_host}:{settings.redis_port}")
        return cls(client)

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self.client.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def incr(self, key: str, by: int = 1) -> int:
        return await self.client.incrby(key, by)

    async def incr_with_ttl(self, key: str, seconds: int) -> int:
        """Increment ``key`` and make sure it expires, in one server-side step."""
        return int(await self.client.eval(INCR_WITH_TTL_SCRIPT, 1, key, seconds))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self.client.expire(key, seconds))

    async def exists(self, key: str) -> bool:
        return await self.client.exists(key) == 1

    async def publish(self, channel: str, message: str) -> int:
        return await self.client.publish(channel, message)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryStore:
    """In-process store with lazy expiry.

    Not shared between processes; each worker gets its own counters.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._data: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self.published: list[tuple[str, str]] = []

    def _purge(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and self.clock() >= deadline:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    async def get(self, key: str) -> str | None:
        self._purge(key)
        value = self._data.get(key)
        return None if value is None else str(value)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._data[key] = value
        if ttl:
            self._expires[key] = self.clock() + ttl
        else:
            self._expires.pop(key, None)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            self._purge(key)
            if self._data.pop(key, None) is not None:
                removed += 1
            self._expires.pop(key, None)
        return removed

    async def incr(self, key: str, by: int = 1) -> int:
        # No await between read and write, so atomic on one event loop
        self._purge(key)
        value = int(self._data.get(key, 0)) + by
        self._data[key] = value
        return value

    async def incr_with_ttl(self, key: str, seconds: int) -> int:
        value = await self.incr(key)
        if key not in self._expires:
            self._expires[key] = self.clock() + seconds
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._data:
            return False
        self._expires[key] = self.clock() + seconds
        return True

    async def exists(self, key: str) -> bool:
        self._purge(key)
        return key in self._data

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 0

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()
        self._expires.clear()


def create_store(settings: Settings) -> KeyValueStore:
    """Build the store selected by ``KV_BACKEND``."""
    if settings.kv_backend == "memory":
        logger.info("Using in-memory key-value store")
        return InMemoryStore()
    return RedisStore.from_settings(settings)
