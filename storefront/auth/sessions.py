"""Registration and login.

Issues identity tokens for verified credentials and returns the user with
the password hash stripped.
"""

import logging

from ..core.errors import DuplicateIdentity, Forbidden, Unauthenticated
from ..core.models import AuthResponse, Role, User
from ..db.repository import Repository
from .passwords import PasswordHasher
from .tokens import TokenCodec

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class SessionIssuer:
    """Turns credentials into sessions."""

    def __init__(self, repository: Repository, codec: TokenCodec, hasher: PasswordHasher) -> None:
        self.repository = repository
        self.codec = codec
        self.hasher = hasher

    def _session(self, user: User) -> AuthResponse:
        return AuthResponse(user=user.public(), token=self.codec.issue(user))

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        role: Role = Role.USER,
    ) -> AuthResponse:
        """Create an account and issue a session.

        Admin accounts are stored unapproved until an existing admin
        approves them.

        Raises:
            DuplicateIdentity: If the email is already registered
        """
        if await self.repository.get_user_by_email(email):
            raise DuplicateIdentity("User already exists")

        password_hash = await self.hasher.hash(password)
        user = await self.repository.create_user(
            email=email,
            password_hash=password_hash,
            name=name or email.split("@")[0],
            role=role,
            approved=role != Role.ADMIN,
        )
        logger.info(f"Registered user {user.id} with role {user.role.value}")
        return self._session(user)

    async def login(self, email: str, password: str, role: Role | None = None) -> AuthResponse:
        """Verify credentials and issue a session.

        Unknown email, wrong password and role mismatch all fail with the
        same message.

        Raises:
            Unauthenticated: If the credentials do not check out
        """
        user = await self.repository.get_user_by_email(email)
        valid = await self.hasher.check(password, user.password_hash if user else None)
        if not user or not valid:
            raise Unauthenticated(INVALID_CREDENTIALS)

        if role is not None and user.role != role:
            raise Unauthenticated(INVALID_CREDENTIALS)

        return self._session(user)

    async def login_admin(self, email: str, password: str) -> AuthResponse:
        """Admin-only login. Unapproved admins are refused after the credential check.

        Raises:
            Unauthenticated: If the credentials do not check out
            Forbidden: If the admin account is still pending approval
        """
        session = await self.login(email, password, role=Role.ADMIN)
        if not session.user.approved:
            raise Forbidden("Admin account pending approval")
        return session

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """Replace a user's password after checking the current one.

        Raises:
            Unauthenticated: If ``current_password`` is wrong
        """
        if not await self.hasher.check(current_password, user.password_hash):
            raise Unauthenticated("Current password is incorrect")
        await self.repository.update_password_hash(user.id, await self.hasher.hash(new_password))
        logger.info(f"Password changed for user {user.id}")
