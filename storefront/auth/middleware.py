"""FastAPI authentication and role dependencies.

``get_current_user`` is the auth gate: it reads the bearer token (or the
``token`` cookie), verifies it with the configured codec, loads the user
and attaches it to ``request.state.user``. ``require_role`` and
``require_admin`` run after it.
"""

import asyncio
import logging
from typing import Annotated

import aiosqlite
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.errors import Forbidden, InvalidToken, ServiceUnavailable, Unauthenticated
from ..core.models import Role, User
from ..services import get_services

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for identity tokens
bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "token"


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Bearer header first, then the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE) or None


async def _load_user(user_id: int) -> User | None:
    services = get_services()
    try:
        return await asyncio.wait_for(
            services.repository.get_user(user_id), services.settings.store_timeout_seconds
        )
    except (asyncio.TimeoutError, aiosqlite.Error) as e:
        logger.error(f"Identity store error while authenticating: {e!r}")
        raise ServiceUnavailable("Authentication temporarily unavailable")


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User:
    """Dependency to get the current authenticated user.

    Raises:
        Unauthenticated: If no token is provided, the token is invalid or
            expired, or the user no longer exists
        ServiceUnavailable: If the identity store cannot be reached
    """
    token = extract_token(request, credentials)
    if not token:
        raise Unauthenticated("Authentication required")

    try:
        claims = get_services().codec.verify(token)
    except InvalidToken as e:
        # Reason stays in the server log; clients get one message
        logger.warning(f"Token rejected: {e.message}")
        raise Unauthenticated("Invalid or expired token")

    user = await _load_user(claims.id)
    if not user:
        logger.warning(f"Token subject {claims.id} no longer exists")
        raise Unauthenticated("Invalid or expired token")

    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User | None:
    """Dependency to get current user if authenticated, None otherwise.

    Useful for endpoints that work both authenticated and unauthenticated.
    """
    try:
        return await get_current_user(request, credentials)
    except Unauthenticated:
        return None


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(role: Role):
    """Build a dependency that rejects users whose role is not ``role``."""

    async def check_role(user: CurrentUser) -> User:
        if user.role != role:
            raise Forbidden(f"{role.value.capitalize()} access required")
        return user

    return check_role


_require_admin_role = require_role(Role.ADMIN)


async def require_admin(
    user: Annotated[User, Depends(_require_admin_role)]
) -> User:
    """Dependency that requires an approved admin.

    Use this for admin-only endpoints.
    """
    if not user.approved:
        raise Forbidden("Admin account pending approval")
    return user


AdminUser = Annotated[User, Depends(require_admin)]
