"""Admin approval queue.

Admin registrations land here with ``approved=false``; an approved admin
accepts or rejects them.
"""

import logging

from fastapi import APIRouter

from ..auth.middleware import AdminUser
from ..auth.policy import ADMIN, gates
from ..core.errors import NotFound, ValidationFailed
from ..core.models import MessageResponse, PublicUser
from ..db.repository import repository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/pending-approvals", response_model=list[PublicUser], dependencies=gates(ADMIN))
async def list_pending_approvals() -> list[PublicUser]:
    users = await repository.list_pending_users()
    return [user.public() for user in users]


@router.post(
    "/pending-approvals/{user_id}/approve", response_model=PublicUser, dependencies=gates(ADMIN)
)
async def approve_user(user_id: int, admin: AdminUser) -> PublicUser:
    user = await repository.get_user(user_id)
    if not user:
        raise NotFound("User not found")
    if user.approved:
        raise ValidationFailed("User already approved")

    approved = await repository.set_user_approved(user_id, True)
    if not approved:
        raise NotFound("User not found")
    logger.info(f"Admin {admin.id} approved user {user_id}")
    return approved.public()


@router.delete(
    "/pending-approvals/{user_id}", response_model=MessageResponse, dependencies=gates(ADMIN)
)
async def reject_user(user_id: int, admin: AdminUser) -> MessageResponse:
    """Reject a pending account and delete it."""
    user = await repository.get_user(user_id)
    if not user:
        raise NotFound("User not found")
    if user.approved:
        raise ValidationFailed("Only pending accounts can be rejected")

    await repository.delete_user(user_id)
    logger.info(f"Admin {admin.id} rejected user {user_id}")
    return MessageResponse(message="User rejected and deleted")
