"""Per-client rate limiting on the shared key-value store.

Fixed window counter: the first request in a window creates
``rate_limit:<client>`` with a TTL of one window. Increment and expiry are a
single store operation, so a counter never outlives its window. Requests
beyond the ceiling are rejected until the key expires.
"""

import asyncio
import logging
from dataclasses import dataclass

from fastapi import Request
from redis.exceptions import RedisError

from ..config import Settings
from ..core.errors import ServiceUnavailable, TooManyRequests
from ..db.kv import KeyValueStore
from ..services import get_services

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit:"
DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60

STORE_ERRORS = (asyncio.TimeoutError, RedisError, OSError)


@dataclass(frozen=True)
class RateLimit:
    """Per-route limit. ``None`` fields fall back to the configured defaults."""

    max_requests: int | None = None
    window_seconds: int | None = None


class RateGate:
    """Counts requests per client and rejects once over the ceiling."""

    def __init__(
        self,
        store: KeyValueStore,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        timeout: float = 2.0,
        fail_open: bool = False,
    ) -> None:
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.timeout = timeout
        self.fail_open = fail_open

    @classmethod
    def for_route(cls, store: KeyValueStore, settings: Settings, limit: RateLimit) -> "RateGate":
        return cls(
            store,
            max_requests=limit.max_requests or settings.rate_limit_max,
            window_seconds=limit.window_seconds or settings.rate_limit_window,
            timeout=settings.store_timeout_seconds,
            fail_open=settings.rate_limit_fail_open,
        )

    @staticmethod
    def key(client: str) -> str:
        return f"{KEY_PREFIX}{client}"

    async def hit(self, client: str) -> int:
        """Record one request from ``client``.

        Returns:
            The request count in the current window (0 if the store failed
            and the gate is configured to fail open)

        Raises:
            TooManyRequests: If the count exceeds the ceiling
            ServiceUnavailable: If the store is unreachable and the gate
                fails closed
        """
        key = self.key(client)
        try:
            count = await asyncio.wait_for(
                self.store.incr_with_ttl(key, self.window_seconds), self.timeout
            )
        except STORE_ERRORS as e:
            if self.fail_open:
                logger.warning(f"Rate limit store error, allowing request: {e!r}")
                return 0
            logger.error(f"Rate limit store error, rejecting request: {e!r}")
            raise ServiceUnavailable("Rate limiting unavailable, please retry shortly")

        if count > self.max_requests:
            logger.warning(f"Rate limit exceeded for {client} ({count}/{self.max_requests})")
            raise TooManyRequests(retry_after=self.window_seconds)
        return count

    async def status(self, client: str) -> dict:
        """Current usage for ``client`` without counting a request."""
        try:
            raw = await asyncio.wait_for(self.store.get(self.key(client)), self.timeout)
        except STORE_ERRORS as e:
            logger.warning(f"Rate limit status unavailable: {e!r}")
            raise ServiceUnavailable("Rate limiting unavailable, please retry shortly")

        used = int(raw) if raw else 0
        return {
            "limit": self.max_requests,
            "window_seconds": self.window_seconds,
            "used": used,
            "remaining": max(0, self.max_requests - used),
        }


def client_address(request: Request, trust_proxy_headers: bool = False) -> str:
    """Address used to key the rate counter."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def require_rate_limit(limit: RateLimit = RateLimit()):
    """Build a dependency enforcing ``limit`` for one route."""

    async def enforce_rate_limit(request: Request) -> None:
        services = get_services()
        gate = RateGate.for_route(services.store, services.settings, limit)
        await gate.hit(client_address(request, services.settings.trust_proxy_headers))

    return enforce_rate_limit
