from __future__ import annotations

import os

# Engine and auth settings are read at import time
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ["OPPORTUNISTIC_REAPER"] = "false"

from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from contentgraph import models  # noqa: E402
from contentgraph.auth import create_access_token  # noqa: E402
from contentgraph.db import Base, SessionLocal, engine, transaction  # noqa: E402
from contentgraph.main import app  # noqa: E402
from contentgraph.orchestrator import MutationOrchestrator  # noqa: E402
from contentgraph.services import users  # noqa: E402


@pytest.fixture(autouse=True)
def schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def orchestrator() -> MutationOrchestrator:
    return MutationOrchestrator()


@pytest.fixture()
def make_user() -> Callable[..., models.User]:
    """Create and commit a user; the returned instance stays usable after commit."""

    def _make(handle: str, admin: bool = False) -> models.User:
        with transaction() as session:
            user = users.create_user(session, handle=handle, email=f"{handle}@example.com")
            if admin:
                users.assign_role(session, user.id, "admin")
            return user

    return _make


@pytest.fixture()
def alice(make_user) -> models.User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user) -> models.User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user) -> models.User:
    return make_user("carol")


@pytest.fixture()
def auth_headers() -> Callable[[models.User], dict[str, str]]:
    def _headers(user: models.User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.public_sqid)}"}

    return _headers


@pytest.fixture()
def snapshot() -> Callable[[], dict]:
    """Capture every counter and row count in a fresh session."""

    def _snapshot() -> dict:
        with SessionLocal() as session:
            state: dict = {}
            for model in (
                models.User,
                models.Post,
                models.Comment,
                models.Like,
                models.Follow,
                models.Mention,
                models.Notification,
            ):
                state[model.__tablename__] = session.scalar(select(func.count()).select_from(model))
            state["user_counters"] = sorted(
                session.execute(
                    select(
                        models.User.id,
                        models.User.posts_count,
                        models.User.followers_count,
                        models.User.following_count,
                    )
                ).all()
            )
            state["post_counters"] = sorted(
                session.execute(
                    select(models.Post.id, models.Post.like_count, models.Post.comment_count)
                ).all()
            )
            state["comment_counters"] = sorted(
                session.execute(select(models.Comment.id, models.Comment.like_count)).all()
            )
            return state

    return _snapshot
