"""Password hashing, JWT tokens and admin bootstrap."""

from datetime import timedelta

import pytest

from auth import (
    authenticate_user, create_access_token, get_password_hash, seed_admin,
    token_for, verify_password, verify_token,
)
from conftest import PASSWORD, make_user
from errors import AuthenticationError
from models import UserRole


def test_password_hash_roundtrip():
    hashed = get_password_hash("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)


def test_token_carries_identity(citizen):
    data = verify_token(token_for(citizen))
    assert data.uid == citizen.id
    assert data.username == "citizen"
    assert data.role == "citizen"


def test_expired_token_rejected():
    token = create_access_token({"sub": "x", "uid": "1"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(AuthenticationError):
        verify_token(token)


def test_token_without_uid_rejected():
    with pytest.raises(AuthenticationError):
        verify_token(create_access_token({"sub": "x"}))


def test_authenticate_user(storage, citizen):
    assert authenticate_user(storage, "citizen", PASSWORD).id == citizen.id
    assert authenticate_user(storage, "citizen", "wrong") is None
    assert authenticate_user(storage, "nobody", PASSWORD) is None


def test_seed_admin_creates_once(storage):
    admin = seed_admin(storage, "root", "root@city.gov", "changeme")
    assert admin.role is UserRole.ADMIN
    assert verify_password("changeme", admin.password)

    again = seed_admin(storage, "root", "root@city.gov", "changeme")
    assert again.id == admin.id
    assert storage.get_user_by_username("root").id == admin.id


def test_seed_admin_skipped_without_credentials(storage):
    assert seed_admin(storage, "", "", "") is None
    assert seed_admin(storage, "root", "root@city.gov", "") is None
    assert storage.get_user_by_username("root") is None


def test_seed_admin_does_not_promote_existing_user(storage):
    make_user(storage, "root")
    existing = seed_admin(storage, "root", "root@city.gov", "changeme")
    assert existing.role is UserRole.CITIZEN
