"""Authentication API routes."""

from fastapi import APIRouter, Response

from ..auth.middleware import TOKEN_COOKIE, CurrentUser
from ..auth.policy import PROTECTED, PUBLIC, gates
from ..core.models import AuthResponse, LoginInput, MessageResponse, PublicUser, RegisterInput, Role
from ..services import get_services

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Credential endpoints get a tighter limit than the global default
CREDENTIALS = PUBLIC.limited(max_requests=20, window_seconds=60)


@router.post("/register", response_model=AuthResponse, status_code=201, dependencies=gates(CREDENTIALS))
async def register(input_data: RegisterInput) -> AuthResponse:
    """Register a customer account and return a session."""
    return await get_services().sessions.register(
        email=input_data.email,
        password=input_data.password,
        name=input_data.name or input_data.username,
    )


@router.post(
    "/register-admin", response_model=AuthResponse, status_code=201, dependencies=gates(CREDENTIALS)
)
async def register_admin(input_data: RegisterInput) -> AuthResponse:
    """Register an admin account.

    The account cannot use admin routes until an approved admin accepts it
    via ``/api/admin/pending-approvals``.
    """
    return await get_services().sessions.register(
        email=input_data.email,
        password=input_data.password,
        name=input_data.name or input_data.username,
        role=Role.ADMIN,
    )


@router.post("/login", response_model=AuthResponse, dependencies=gates(CREDENTIALS))
async def login(input_data: LoginInput) -> AuthResponse:
    return await get_services().sessions.login(input_data.email, input_data.password)


@router.post("/login-admin", response_model=AuthResponse, dependencies=gates(CREDENTIALS))
async def login_admin(input_data: LoginInput) -> AuthResponse:
    """Login restricted to approved admin accounts."""
    return await get_services().sessions.login_admin(input_data.email, input_data.password)


@router.get("/me", response_model=PublicUser, dependencies=gates(PROTECTED))
async def me(user: CurrentUser) -> PublicUser:
    return user.public()


@router.post("/logout", response_model=MessageResponse, dependencies=gates(PUBLIC))
async def logout(response: Response) -> MessageResponse:
    """Clear the session cookie.

    Tokens are not revoked server-side; a discarded token stays valid
    until it expires.
    """
    response.delete_cookie(TOKEN_COOKIE)
    return MessageResponse(message="Logged out")
