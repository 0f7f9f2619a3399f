"""
Tests for the read-through response cache.
"""

import inspect
from datetime import datetime, timezone

import pytest

from storefront.cache import ResponseCache, cached, invalidate
from storefront.db.kv import InMemoryStore
from storefront.services import build_services, set_services


class FlakyStore(InMemoryStore):
    """Store whose reads and writes all fail."""

    async def get(self, key):
        raise ConnectionError("connection reset")

    async def set(self, key, value, ttl=None):
        raise ConnectionError("connection reset")

    async def delete(self, *keys):
        raise ConnectionError("connection reset")


@pytest.fixture
def services(settings, repo, store):
    services = build_services(settings, repo, store)
    set_services(services)
    yield services
    set_services(None)


def counting_handler(calls: list):
    @cached("item:{item_id}", ttl=30)
    async def get_item(item_id: int) -> dict:
        """Return an item."""
        calls.append(item_id)
        return {"id": item_id, "version": len(calls), "seen_at": datetime(2024, 1, 1, tzinfo=timezone.utc)}

    return get_item


async def test_hit_skips_handler(services):
    calls = []
    get_item = counting_handler(calls)

    first = await get_item(item_id=1)
    second = await get_item(item_id=1)

    assert calls == [1]
    assert second == {"id": 1, "version": 1, "seen_at": "2024-01-01T00:00:00+00:00"}
    assert first["version"] == second["version"]


async def test_keys_are_per_parameter(services):
    calls = []
    get_item = counting_handler(calls)

    await get_item(item_id=1)
    await get_item(item_id=2)

    assert calls == [1, 2]
    assert await services.store.exists("item:1")
    assert await services.store.exists("item:2")


async def test_invalidate_forces_recompute(services):
    calls = []
    get_item = counting_handler(calls)
    await get_item(item_id=1)

    await invalidate("item:1")
    result = await get_item(item_id=1)

    assert calls == [1, 1]
    assert result["version"] == 2


async def test_entries_expire(services, clock):
    calls = []
    get_item = counting_handler(calls)
    await get_item(item_id=1)

    clock.advance(30)
    await get_item(item_id=1)

    assert calls == [1, 1]


async def test_store_failure_serves_fresh_result(settings, repo, clock):
    set_services(build_services(settings, repo, FlakyStore(clock=clock)))
    try:
        calls = []
        get_item = counting_handler(calls)

        assert (await get_item(item_id=1))["version"] == 1
        assert (await get_item(item_id=1))["version"] == 2
        await invalidate("item:1")
    finally:
        set_services(None)


async def test_unknown_template_parameter(services):
    @cached("item:{missing}")
    async def handler(item_id: int) -> dict:
        return {}

    with pytest.raises(RuntimeError, match="missing"):
        await handler(item_id=1)


def test_decorator_preserves_signature():
    """FastAPI reads the wrapped endpoint's parameters."""
    get_item = counting_handler([])

    assert list(inspect.signature(get_item).parameters) == ["item_id"]
    assert get_item.__doc__ == "Return an item."


async def test_get_or_set(store):
    cache = ResponseCache(store)

    async def factory():
        return {"answer": 42}

    assert await cache.get_or_set("answer", factory, ttl=10) == {"answer": 42}
    assert await cache.get("answer") == {"answer": 42}


async def test_undecodable_entry_is_a_miss(store):
    await store.set("broken", "{not json")
    assert await ResponseCache(store).get("broken") is None
