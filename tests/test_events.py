"""
Tests for best-effort event publishing.
"""

import json
from unittest.mock import AsyncMock

from storefront.events import ORDER_CREATED, EventPublisher


async def test_notify_publishes_json(store):
    publisher = EventPublisher(store, channel_prefix="shop")

    assert await publisher.notify(ORDER_CREATED, {"id": 1, "total": 9.5}) is True

    channel, message = store.published[0]
    assert channel == "shop.order.created"
    payload = json.loads(message)
    assert payload["pattern"] == "order.created"
    assert payload["data"] == {"id": 1, "total": 9.5}
    assert "emitted_at" in payload


async def test_disabled_publisher_is_silent(store):
    publisher = EventPublisher(store, enabled=False)

    assert await publisher.notify(ORDER_CREATED, {"id": 1}) is False
    assert store.published == []


async def test_publish_failure_is_swallowed():
    store = AsyncMock()
    store.publish.side_effect = ConnectionError("broker down")
    publisher = EventPublisher(store)

    assert await publisher.notify(ORDER_CREATED, {"id": 1}) is False
