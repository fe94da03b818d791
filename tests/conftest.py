"""Shared test fixtures for the dataroom test suite.

Tests run against a SQLite file database (override with TEST_DATABASE_URL).
Tables are dropped and recreated before each test for isolation. The TTL
key-value store is the in-process implementation driven by a fake clock, so
expiry can be tested without sleeping.
"""

import os
import tempfile

# Configure the app before any of its modules are imported.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "dataroom_test.db"),
)
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["REDIS_URL"] = ""
os.environ["ENVIRONMENT"] = "development"

import uuid

import pytest
from fastapi.testclient import TestClient

from dataroom.database import Base, get_db, engine, SessionLocal
from dataroom.main import app
from dataroom.core.config import settings
from dataroom.core.kv_store import InMemoryKeyValueStore, get_kv_store
from dataroom.core.token_factory import create_token
from dataroom.middleware.request_context import _rate_buckets
from dataroom.models import (
    Dataroom,
    Link,
    PermissionGroup,
    Team,
    TeamMember,
    User,
    Viewer,
    ViewerGroup,
    ViewerGroupMembership,
)

TEAM_ID = "team-1"
DATAROOM_ID = "dr-1"
BASE_URL = f"/api/teams/{TEAM_ID}/datarooms/{DATAROOM_ID}"


class FakeClock:
    """Callable clock returning seconds; advance() moves time forward."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_schema():
    """Recreate every table before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv(clock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture()
def client(db, kv):
    """TestClient with the DB session and key-value store overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv
    _rate_buckets.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def dataroom(db) -> Dataroom:
    """Team ``team-1`` owning dataroom ``dr-1``."""
    db.add(Team(id=TEAM_ID, name="Acme"))
    db.flush()
    room = Dataroom(id=DATAROOM_ID, team_id=TEAM_ID, name="Series A")
    db.add(room)
    db.commit()
    return room


@pytest.fixture()
def auth_enabled(monkeypatch):
    monkeypatch.setattr(settings, "auth_enabled", True)


def make_user(db, user_id: str, team_ids=(), role: str = "member") -> User:
    user = User(user_id=user_id, display_name=user_id, email=f"{user_id}@example.com", role=role)
    db.add(user)
    for team_id in team_ids:
        db.add(TeamMember(team_id=team_id, user_id=user_id))
    db.commit()
    return user


def bearer(user_id: str, role: str = "member") -> dict:
    token = create_token(subject=user_id, role=role, secret=settings.jwt_secret_key)
    return {"Authorization": f"Bearer {token}"}


def make_viewer_group(db, name: str = "Investors", dataroom_id: str = DATAROOM_ID, **fields) -> ViewerGroup:
    group = ViewerGroup(id=uuid.uuid4().hex, dataroom_id=dataroom_id, team_id=TEAM_ID,
                        name=name, **fields)
    db.add(group)
    db.commit()
    return group


def make_permission_group(db, name: str = "Link permissions", dataroom_id: str = DATAROOM_ID) -> PermissionGroup:
    group = PermissionGroup(id=uuid.uuid4().hex, dataroom_id=dataroom_id, team_id=TEAM_ID, name=name)
    db.add(group)
    db.commit()
    return group


def make_link(db, dataroom_id: str = DATAROOM_ID, **fields) -> Link:
    link = Link(id=uuid.uuid4().hex, dataroom_id=dataroom_id, **fields)
    db.add(link)
    db.commit()
    return link


def add_member(db, group: ViewerGroup, email: str) -> Viewer:
    viewer = Viewer(id=uuid.uuid4().hex, team_id=TEAM_ID, email=email)
    db.add(viewer)
    db.add(ViewerGroupMembership(id=uuid.uuid4().hex, group_id=group.id, viewer_id=viewer.id))
    db.commit()
    return viewer
