"""Process-wide service container.

Built once by the application lifespan and read by the gates and routes.
"""

import logging
from dataclasses import dataclass

from .auth.passwords import PasswordHasher
from .auth.sessions import SessionIssuer
from .auth.tokens import TokenCodec, get_token_codec
from .config import Settings
from .db.kv import KeyValueStore
from .db.repository import Repository
from .events.publisher import EventPublisher

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    repository: Repository
    store: KeyValueStore
    codec: TokenCodec
    hasher: PasswordHasher
    sessions: SessionIssuer
    events: EventPublisher


def build_services(
    settings: Settings,
    repository: Repository,
    store: KeyValueStore,
    codec: TokenCodec | None = None,
) -> Services:
    """Wire the services for one process."""
    codec = codec or get_token_codec(settings)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    return Services(
        settings=settings,
        repository=repository,
        store=store,
        codec=codec,
        hasher=hasher,
        sessions=SessionIssuer(repository, codec, hasher),
        events=EventPublisher(
            store,
            channel_prefix=settings.events_channel_prefix,
            enabled=settings.events_enabled,
            timeout=settings.store_timeout_seconds,
        ),
    )


_services: Services | None = None


def get_services() -> Services:
    if _services is None:
        raise RuntimeError("Services not initialized. Is the application running?")
    return _services


def set_services(services: Services | None) -> None:
    global _services
    _services = services
