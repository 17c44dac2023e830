from __future__ import annotations

import os
from datetime import date
from typing import Callable, Generator

# Configure before any quill module reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("VAULT_LOCATION", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from quill import models  # noqa: E402
from quill.auth import issue_identity_assertion  # noqa: E402
from quill.db import Base, SessionLocal, engine  # noqa: E402
from quill.deps import get_db  # noqa: E402
from quill.main import app  # noqa: E402
from quill.services.identity import hash_password  # noqa: E402

TEST_PASSWORD = "correct-horse"
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing; every table is emptied afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """API client sharing the test's database session."""

    def override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def password() -> str:
    """Plain-text password of every user made by ``make_user``."""
    return TEST_PASSWORD


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Factory for users whose password is ``TEST_PASSWORD``."""
    counter = {"n": 0}

    def _make_user(
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        email: str | None = None,
        picture: str = "",
    ) -> models.User:
        counter["n"] += 1
        user = models.User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=_TEST_PASSWORD_HASH,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date(1990, 1, 1),
            picture=picture,
            about="",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def auth_headers() -> Callable[[models.User], dict[str, str]]:
    def _auth_headers(user: models.User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_identity_assertion(user)}"}

    return _auth_headers
