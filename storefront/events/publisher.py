"""Best-effort event publishing for the admin dashboard.

Events are JSON messages published to ``<prefix>.<pattern>`` channels on the
key-value store's pub/sub. Nothing in this service consumes them; a failed
publish is logged and never fails the request that triggered it.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..db.kv import KeyValueStore

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status_changed"
PRODUCT_UPDATED = "product.updated"


class EventPublisher:
    """Fire-and-forget publisher."""

    def __init__(
        self,
        store: KeyValueStore,
        channel_prefix: str = "storefront",
        enabled: bool = True,
        timeout: float = 2.0,
    ) -> None:
        self.store = store
        self.channel_prefix = channel_prefix
        self.enabled = enabled
        self.timeout = timeout

        if self.enabled:
            logger.info(f"Event publishing enabled (channel prefix: {channel_prefix})")
        else:
            logger.info("Event publishing disabled (EVENTS_ENABLED=false)")

    def channel(self, pattern: str) -> str:
        return f"{self.channel_prefix}.{pattern}"

    async def notify(self, pattern: str, data: dict[str, Any]) -> bool:
        """Publish an event.

        Args:
            pattern: Event name, e.g. ``order.created``
            data: JSON-serializable payload

        Returns:
            True if the store accepted the message, False otherwise
        """
        if not self.enabled:
            return False

        message = json.dumps(
            {
                "pattern": pattern,
                "data": data,
                "emitted_at": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )

        try:
            await asyncio.wait_for(self.store.publish(self.channel(pattern), message), self.timeout)
            logger.debug(f"Published {pattern}")
            return True
        except Exception as e:
            logger.warning(f"Event publish failed for {pattern}: {e}")
            return False
