"""
Tests for bcrypt password hashing.
"""

import pytest

from storefront.auth.passwords import PasswordHasher, hash_password, verify_password


def test_hash_is_salted():
    first = hash_password("secret123", rounds=4)
    second = hash_password("secret123", rounds=4)

    assert first != second
    assert "secret123" not in first


def test_verify_password():
    password_hash = hash_password("secret123", rounds=4)

    assert verify_password("secret123", password_hash) is True
    assert verify_password("secret124", password_hash) is False
    assert verify_password("", password_hash) is False


def test_malformed_hash_returns_false():
    assert verify_password("secret123", "not-a-bcrypt-hash") is False


def test_rounds_are_encoded_in_hash():
    assert hash_password("secret123", rounds=5).startswith("$2b$05$")


async def test_hasher_round_trip():
    hasher = PasswordHasher(rounds=4)
    password_hash = await hasher.hash("secret123")

    assert await hasher.check("secret123", password_hash) is True
    assert await hasher.check("wrong", password_hash) is False


async def test_hasher_without_stored_hash():
    """Unknown accounts still fail cleanly."""
    hasher = PasswordHasher(rounds=4)
    assert await hasher.check("secret123", None) is False


def test_overlong_password_never_matches():
    password_hash = hash_password("secret123", rounds=4)
    assert verify_password("é" * 40, password_hash) is False


def test_overlong_password_cannot_be_hashed():
    with pytest.raises(ValueError, match="72 bytes"):
        hash_password("é" * 40, rounds=4)


def test_multibyte_password_within_limit():
    password = "é" * 36
    assert verify_password(password, hash_password(password, rounds=4)) is True
