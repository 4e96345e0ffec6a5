"""
Shared pytest fixtures for the CivicReport test suite.

Provides:
    - storage: fresh in-memory persistence per test
    - dispatcher: email dispatcher in disabled (log-only) mode
    - media_store: upload area under tmp_path
    - workflow: ReportWorkflow wired to the above
    - client: FastAPI TestClient over create_app(...)
    - citizen / other_citizen / admin: stored users
"""

import pytest
from fastapi.testclient import TestClient

from app import create_app
from auth import get_password_hash, token_for
from database import MemoryStorage
from email_service import EmailDispatcher
from models import User, UserRole, Category, Department
from services import ReportWorkflow
from storage import MediaStore

# Hashing is slow with bcrypt; every fixture user shares one password.
PASSWORD = "secret123"
_PASSWORD_HASH = get_password_hash(PASSWORD)


def make_user(storage, username, role=UserRole.CITIZEN, email=None):
    return storage.create_user(User(
        username=username,
        email=email if email is not None else f"{username}@example.com",
        password=_PASSWORD_HASH,
        role=role,
    ))


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


# ── Collaborators ─────────────────────────────────────────────────────────


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def dispatcher():
    return EmailDispatcher(api_key=None)


@pytest.fixture()
def media_store(tmp_path):
    return MediaStore(str(tmp_path / "uploads"), max_files=5, max_bytes=1024)


@pytest.fixture()
def workflow(storage, dispatcher):
    return ReportWorkflow(storage, dispatcher)


@pytest.fixture()
def client(storage, dispatcher, media_store):
    return TestClient(create_app(storage=storage, dispatcher=dispatcher, media_store=media_store))


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def citizen(storage):
    return make_user(storage, "citizen")


@pytest.fixture()
def other_citizen(storage):
    return make_user(storage, "neighbour")


@pytest.fixture()
def staff(storage):
    return make_user(storage, "crew", role=UserRole.STAFF)


@pytest.fixture()
def admin(storage):
    return make_user(storage, "admin", role=UserRole.ADMIN)


@pytest.fixture()
def public_works(storage):
    return storage.create_department(Department(id="public-works", name="Public Works"))


@pytest.fixture()
def roads(storage, public_works):
    return storage.create_category(Category(name="Roads", department_id=public_works.id))
