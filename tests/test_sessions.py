"""
Tests for registration, login and password changes.
"""

import pytest

from storefront.auth.sessions import INVALID_CREDENTIALS
from storefront.core.errors import DuplicateIdentity, Forbidden, Unauthenticated
from storefront.core.models import Role


async def test_register_issues_session(sessions, codec):
    session = await sessions.register("ada@shop.com", "secret123", "Ada")

    assert session.user.email == "ada@shop.com"
    assert session.user.role == Role.USER
    assert session.user.approved is True
    assert "password_hash" not in session.user.model_dump()
    assert codec.verify(session.token).id == session.user.id


async def test_register_defaults_name_to_email_local_part(sessions):
    session = await sessions.register("grace@shop.com", "secret123")
    assert session.user.name == "grace"


async def test_register_duplicate_email(sessions):
    await sessions.register("ada@shop.com", "secret123")

    with pytest.raises(DuplicateIdentity):
        await sessions.register("ada@shop.com", "other-secret")

    with pytest.raises(DuplicateIdentity):
        await sessions.register("ADA@shop.com", "other-secret")


async def test_admin_registration_is_pending(sessions):
    session = await sessions.register("boss@shop.com", "secret123", role=Role.ADMIN)

    assert session.user.role == Role.ADMIN
    assert session.user.approved is False


async def test_login_returns_new_token_for_same_subject(sessions, codec):
    registered = await sessions.register("ada@shop.com", "secret123")
    session = await sessions.login("ada@shop.com", "secret123")

    assert session.token != registered.token
    assert codec.verify(session.token).id == registered.user.id


async def test_login_failures_are_indistinguishable(sessions):
    await sessions.register("ada@shop.com", "secret123")

    with pytest.raises(Unauthenticated) as unknown_email:
        await sessions.login("nobody@shop.com", "secret123")
    with pytest.raises(Unauthenticated) as wrong_password:
        await sessions.login("ada@shop.com", "secret999")

    assert unknown_email.value.message == wrong_password.value.message == INVALID_CREDENTIALS
    assert unknown_email.value.status_code == wrong_password.value.status_code == 401


async def test_role_filter_uses_same_message(sessions):
    await sessions.register("ada@shop.com", "secret123")

    with pytest.raises(Unauthenticated) as exc_info:
        await sessions.login("ada@shop.com", "secret123", role=Role.ADMIN)
    assert exc_info.value.message == INVALID_CREDENTIALS


async def test_login_admin_requires_approval(sessions, repo):
    registered = await sessions.register("boss@shop.com", "secret123", role=Role.ADMIN)

    with pytest.raises(Forbidden, match="pending approval"):
        await sessions.login_admin("boss@shop.com", "secret123")

    await repo.set_user_approved(registered.user.id, True)
    session = await sessions.login_admin("boss@shop.com", "secret123")
    assert session.user.approved is True


async def test_login_admin_checks_credentials_first(sessions):
    """A wrong password on a pending admin does not reveal the account state."""
    await sessions.register("boss@shop.com", "secret123", role=Role.ADMIN)

    with pytest.raises(Unauthenticated):
        await sessions.login_admin("boss@shop.com", "wrong-secret")


async def test_change_password(sessions, repo):
    await sessions.register("ada@shop.com", "secret123")
    user = await repo.get_user_by_email("ada@shop.com")

    with pytest.raises(Unauthenticated):
        await sessions.change_password(user, "not-my-password", "newsecret1")

    await sessions.change_password(user, "secret123", "newsecret1")

    assert (await sessions.login("ada@shop.com", "newsecret1")).user.id == user.id
    with pytest.raises(Unauthenticated):
        await sessions.login("ada@shop.com", "secret123")
