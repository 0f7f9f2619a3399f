"""Password hashing with bcrypt.

The blocking bcrypt calls are exposed as coroutines that run in a worker
thread so hashing never stalls the event loop.
"""

import asyncio
import logging

import bcrypt

from ..core.models import MAX_PASSWORD_BYTES, check_password_bytes

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password using bcrypt with a fresh salt.

    Raises:
        ValueError: If the password is longer than bcrypt accepts
    """
    check_password_bytes(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Returns False on mismatch, on a malformed stored hash and on passwords
    longer than bcrypt accepts (no stored hash can match those).
    """
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class PasswordHasher:
    """Async facade over bcrypt with a configured cost factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Compared against when the email is unknown, so both login failure
        # paths cost one bcrypt verification.
        self._dummy_hash = hash_password("not-a-real-password", rounds)

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.rounds)

    async def check(self, password: str, password_hash: str | None) -> bool:
        if password_hash is None:
            await asyncio.to_thread(verify_password, password, self._dummy_hash)
            return False
        return await asyncio.to_thread(verify_password, password, password_hash)
