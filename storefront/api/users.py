"""User API endpoints.

Handles the current user's profile and password, plus the admin user list.
"""

from fastapi import APIRouter

from ..auth.middleware import CurrentUser
from ..auth.policy import ADMIN, PROTECTED, gates
from ..core.errors import NotFound
from ..core.models import MessageResponse, PasswordChangeInput, ProfileUpdateInput, PublicUser
from ..db.repository import repository
from ..services import get_services

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=PublicUser, dependencies=gates(PROTECTED))
async def get_current_user_profile(user: CurrentUser) -> PublicUser:
    """Get current user's profile."""
    return user.public()


@router.put("/me", response_model=PublicUser, dependencies=gates(PROTECTED))
async def update_profile(user: CurrentUser, input_data: ProfileUpdateInput) -> PublicUser:
    """Update profile fields. Role and approval cannot be changed here."""
    updated_user = await repository.update_user_profile(
        user.id, input_data.model_dump(exclude_unset=True)
    )
    if not updated_user:
        raise NotFound("User not found")
    return updated_user.public()


@router.put("/me/password", response_model=MessageResponse, dependencies=gates(PROTECTED))
async def change_password(user: CurrentUser, input_data: PasswordChangeInput) -> MessageResponse:
    await get_services().sessions.change_password(
        user, input_data.current_password, input_data.new_password
    )
    return MessageResponse(message="Password updated")


@router.get("", response_model=list[PublicUser], dependencies=gates(ADMIN))
async def list_users(limit: int = 100, offset: int = 0) -> list[PublicUser]:
    """List all users (admin only)."""
    users = await repository.list_users(limit=limit, offset=offset)
    return [user.public() for user in users]
