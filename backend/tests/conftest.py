"""Shared fixtures for the session authentication tests.

Settings are read from the environment at import time, so the secret key and
an in-memory database URL must be in place before any sessionguard import.
"""
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sessionguard.config import Settings
from sessionguard.database import Base
from sessionguard.services.session_auth import build_session_auth
from sessionguard.services.session_store import MemorySessionStore, StoreError

TEST_SECRET = os.environ["SECRET_KEY"]


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingStore(MemorySessionStore):
    """In-memory store that records calls and can be told to fail."""

    def __init__(self, kind: str, clock):
        super().__init__(kind, clock)
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()

    def _record(self, op: str, arg: str) -> None:
        self.calls.append((op, arg))
        if op in self.failing:
            raise StoreError(f"{op} unavailable")

    def create(self, owner_id, ttl):
        self._record("create", owner_id)
        return super().create(owner_id, ttl)

    def find(self, session_id):
        self._record("find", session_id)
        return super().find(session_id)

    def delete(self, session_id):
        self._record("delete", session_id)
        return super().delete(session_id)

    def ops(self, op: str) -> list[str]:
        return [arg for name, arg in self.calls if name == op]


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET,
        "login_session_ttl_seconds": 300,
        "csrf_session_ttl_seconds": 300,
        "cookie_max_age_seconds": 3 * 60 * 60,
        "deletion_grace_seconds": 15,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def login_store(clock):
    return RecordingStore("login_sessions", clock)


@pytest.fixture
def csrf_store(clock):
    return RecordingStore("csrf_sessions", clock)


@pytest.fixture
def session_auth(settings, login_store, csrf_store, clock):
    return build_session_auth(settings, login_store, csrf_store, clock=clock)


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory database shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def set_cookie_values(response) -> dict[str, str]:
    """Cookie name -> value for every Set-Cookie header, last one wins."""
    headers = response.headers
    # httpx responses expose get_list, Starlette responses getlist.
    raw = headers.get_list("set-cookie") if hasattr(headers, "get_list") else headers.getlist("set-cookie")
    values = {}
    for header in raw:
        name, value = header.split(";", 1)[0].split("=", 1)
        values[name] = value.strip('"')
    return values


def auth_headers(token=None, csrf_cookie=None, csrf_header=None) -> dict[str, str]:
    """Request headers carrying whichever credential parts are given."""
    headers = {}
    cookies = []
    if token:
        cookies.append(f"auth_jwt={token}")
    if csrf_cookie:
        cookies.append(f"auth_csrf={csrf_cookie}")
    if cookies:
        headers["Cookie"] = "; ".join(cookies)
    if csrf_header:
        headers["auth_csrf"] = csrf_header
    return headers
