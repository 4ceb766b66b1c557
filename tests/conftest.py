"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of tomorrow_people.api.deps which
# validates the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402

from tomorrow_people.database.engine import init_db  # noqa: E402
from tomorrow_people.services import profile_service  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)

ALICE = "00000000-0000-0000-0000-00000000a11c"
BOB = "00000000-0000-0000-0000-000000000b0b"
CAROL = "00000000-0000-0000-0000-0000000ca201"
DAVE = "00000000-0000-0000-0000-000000000da5"


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with every table and the seed data.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by ``run_db`` and uploads).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def people(db_engine: Engine) -> dict[str, str]:
    """Four members with profiles: alice, bob, carol and dave."""
    profile_service.ensure_profile(db_engine, ALICE, "alice@example.com", "Alice Archer")
    profile_service.ensure_profile(db_engine, BOB, "bob@example.com", "Bob Baker")
    profile_service.ensure_profile(db_engine, CAROL, "carol@example.com", "Carol Chen")
    profile_service.ensure_profile(db_engine, DAVE, "dave@example.com", "Dave Diaz")
    return {"alice": ALICE, "bob": BOB, "carol": CAROL, "dave": DAVE}


def future(days: int = 7, hours: int = 0) -> datetime:
    return NOW + timedelta(days=days, hours=hours)


def past(days: int = 7, hours: int = 0) -> datetime:
    return NOW - timedelta(days=days, hours=hours)


def make_token(sub: str = ALICE, email: str | None = "alice@example.com",
               full_name: str | None = "Alice Archer") -> str:
    """Create an identity-provider style access token for *sub*."""
    import jwt

    from tomorrow_people.api import deps

    payload: dict = {"sub": sub, "aud": "authenticated", "role": "authenticated"}
    if email:
        payload["email"] = email
    if full_name:
        payload["user_metadata"] = {"full_name": full_name}
    return jwt.encode(payload, deps.JWT_SECRET, algorithm=deps.JWT_ALGORITHM)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient backed by the in-memory engine.

    Overrides are keyed on the functions the route modules imported, which
    stay valid even after a test reloads ``tomorrow_people.api.deps``.
    """
    from fastapi.testclient import TestClient

    from tomorrow_people.api.main import app
    from tomorrow_people.api.routes import channels as channel_routes
    from tomorrow_people.config import TomorrowConfig

    config = TomorrowConfig(
        community_name="Tomorrow People",
        community_tagline="Build what comes next",
        api_port=8000,
    )
    app.dependency_overrides[channel_routes.get_engine] = lambda: db_engine
    app.dependency_overrides[channel_routes.get_config] = lambda: config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
