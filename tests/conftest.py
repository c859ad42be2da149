"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_EMAILS", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from fishfarm.core.auth import OPERADOR, SUPERADMIN, create_access_token
from fishfarm.core.config import Settings
from fishfarm.core.credentials import hash_password
from fishfarm.core.database import Base, build_engine, build_session_factory
from fishfarm.main import create_app
from fishfarm.models.user import User

PASSWORD = "trucha-2024"
PASSWORD_HASH = hash_password(PASSWORD)

START = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock tests move by hand."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, event, recipients, data):
        self.sent.append((event, list(recipients), dict(data)))
        return True

    def last(self, event):
        for sent_event, recipients, data in reversed(self.sent):
            if sent_event == event:
                return recipients, data
        return None


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def send(self, event, recipients, data):
        self.calls += 1
        raise RuntimeError("smtp down")


@pytest.fixture
def settings() -> Settings:
    return Settings(DATABASE_URL="sqlite://", JWT_SECRET="test-secret", ADMIN_EMAILS="", SMTP_HOST=None)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def users(db):
    """admin (SUPERADMIN), ana and beto (operators)."""
    rows = {
        "admin": User(name="Admin", email="admin@granja.test", role=SUPERADMIN, password_hash=PASSWORD_HASH, active=True),
        "ana": User(name="Ana", email="ana@granja.test", role=OPERADOR, password_hash=PASSWORD_HASH, active=True),
        "beto": User(name="Beto", email="beto@granja.test", role=OPERADOR, password_hash=PASSWORD_HASH, active=True),
    }
    db.add_all(rows.values())
    db.commit()
    return rows


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.email, user.role, user.name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(settings, session_factory, clock, notifier):
    app = create_app(settings=settings, session_factory=session_factory, clock=clock, notifier=notifier)
    with TestClient(app) as c:
        yield c
