from __future__ import annotations

import itertools
import os
import tempfile
from pathlib import Path

_TEST_DIR = Path(tempfile.mkdtemp(prefix="harmony-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR / 'harmony_test.db'}"
os.environ["DATA_DIR"] = str(_TEST_DIR)
os.environ["APP_ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
for _name in ("BOOTSTRAP_ADMIN_USERNAME", "BOOTSTRAP_ADMIN_EMAIL", "BOOTSTRAP_ADMIN_PASSWORD"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from harmony.api.app import create_app  # noqa: E402
from harmony.db import models  # noqa: E402,F401
from harmony.db.base import Base  # noqa: E402
from harmony.db.repositories import Repository  # noqa: E402
from harmony.db.session import SessionLocal, engine  # noqa: E402
from harmony.types import Actor  # noqa: E402
from harmony.validation import validate_insert  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture
def repo(db) -> Repository:
    return Repository(db)


@pytest.fixture
def make_user(repo):
    counter = itertools.count(1)

    def _make(username: str | None = None, *, is_recruiter: bool = False, password: str = "secret123", **extra):
        username = username or f"user{next(counter)}"
        payload = {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "name": username.title(),
            "isRecruiter": is_recruiter,
            **extra,
        }
        return repo.create_user(validate_insert("user", payload))

    return _make


def actor_of(user, *, admin: bool = False) -> Actor:
    return Actor(user_id=user.id, is_recruiter=user.is_recruiter, is_admin=admin)


@pytest.fixture
def as_actor():
    return actor_of


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def new_client(app):
    """Each call returns a client with its own cookie jar, i.e. its own session."""

    def _new() -> TestClient:
        return TestClient(app)

    return _new


@pytest.fixture
def signup(new_client):
    def _signup(username: str, *, is_recruiter: bool = False, password: str = "secret123") -> tuple[TestClient, dict]:
        client = new_client()
        response = client.post(
            "/api/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": password,
                "name": username.title(),
                "isRecruiter": is_recruiter,
            },
        )
        assert response.status_code == 201, response.text
        return client, response.json()

    return _signup
