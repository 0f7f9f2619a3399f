"""Identity token codecs.

Two interchangeable strategies share one expiry contract:

- ``JWTTokenCodec``: HS256-signed JWTs (production)
- ``DemoTokenCodec``: unsigned base64 JSON (demo mode only)

Pick one with ``get_token_codec`` based on ``AUTH_MODE``.
"""

import base64
import binascii
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable

import jwt
from pydantic import ValidationError

from ..config import Settings
from ..core.errors import InvalidToken
from ..core.models import TokenClaims, User

logger = logging.getLogger(__name__)

DEFAULT_LIFETIME_SECONDS = 7 * 24 * 60 * 60


class TokenCodec(ABC):
    """Issues and verifies identity tokens."""

    def __init__(
        self,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.lifetime_seconds = lifetime_seconds
        self.clock = clock

    def build_claims(self, user: User) -> TokenClaims:
        iat = int(self.clock())
        return TokenClaims(
            id=user.id,
            email=user.email,
            role=user.role,
            iat=iat,
            exp=iat + self.lifetime_seconds,
            jti=uuid.uuid4().hex,
        )

    def issue(self, user: User) -> str:
        """Issue a token for ``user``."""
        return self.encode(self.build_claims(user).model_dump(mode="json"))

    def verify(self, token: str) -> TokenClaims:
        """Decode a token and check its expiry.

        Raises:
            InvalidToken: If the token is malformed, tampered with or expired
        """
        payload = self.decode(token)
        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError as e:
            raise InvalidToken("Token payload is malformed") from e

        if claims.exp <= self.clock():
            raise InvalidToken("Token has expired")
        return claims

    @abstractmethod
    def encode(self, payload: dict[str, Any]) -> str: ...

    @abstractmethod
    def decode(self, token: str) -> dict[str, Any]:
        """Return the raw payload, raising ``InvalidToken`` if unreadable."""


class JWTTokenCodec(TokenCodec):
    """HS256 JWTs signed with the server secret."""

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(lifetime_seconds, clock)
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret

    def encode(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        # Expiry is checked by TokenCodec.verify against self.clock
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["exp", "iat"],
                },
            )
        except jwt.InvalidSignatureError:
            raise InvalidToken("Token signature mismatch")
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Invalid token: {e}")


class DemoTokenCodec(TokenCodec):
    """Unsigned base64-encoded JSON tokens.

    Anyone can mint these; only use with ``AUTH_MODE=demo``.
    """

    def encode(self, payload: dict[str, Any]) -> str:
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    def decode(self, token: str) -> dict[str, Any]:
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
            payload = json.loads(raw)
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidToken("Token is not valid base64 JSON") from e
        if not isinstance(payload, dict):
            raise InvalidToken("Token payload is not an object")
        return payload


def get_token_codec(settings: Settings) -> TokenCodec:
    """Build the codec selected by ``AUTH_MODE``."""
    if settings.auth_mode == "demo":
        logger.warning("AUTH_MODE=demo: issuing unsigned tokens")
        return DemoTokenCodec(lifetime_seconds=settings.token_lifetime_seconds)
    return JWTTokenCodec(settings.jwt_secret, lifetime_seconds=settings.token_lifetime_seconds)
