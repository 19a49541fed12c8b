"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of yeet.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from yeet.database.models import Base, CircleTier, User  # noqa: E402
from yeet.engine.definitions import default_catalog  # noqa: E402

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


def _enable_sqlite_savepoints(engine: Engine, begin: str = "BEGIN") -> None:
    """pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves."""

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql(begin)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Yeet tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by the routes and the rate
    limiter).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine for tests that run real parallel transactions.

    Each pooled connection is its own transaction.  Transactions open with
    ``BEGIN IMMEDIATE``, so concurrent writers queue on the database lock
    the way PostgreSQL queues them on row locks.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'yeet.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _enable_sqlite_savepoints(engine, begin="BEGIN IMMEDIATE")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def catalog():
    """The built-in Unlockable catalogue."""
    return default_catalog()


def make_user(
    engine: Engine,
    user_id: int = 1000,
    username: str = "sa_student",
    points: int = 0,
    tier: str = CircleTier.BEGINNER.value,
) -> int:
    """Insert a user row directly and return its id."""
    with Session(engine) as session:
        session.add(User(
            id=user_id,
            username=username,
            points=points,
            circle_tier=tier,
            tier_floor=CircleTier.BEGINNER.value,
        ))
        session.commit()
    return user_id


@pytest.fixture
def user_id(db_engine: Engine) -> int:
    """A fresh beginner-circle user with zero points."""
    return make_user(db_engine)


def make_token(sub: str = "1000", username: str = "sa_student") -> str:
    """Create a user JWT.  Usable as both a fixture helper and a factory function."""
    import jwt

    from yeet.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, "username": username}, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def client(db_engine: Engine, catalog):
    """FastAPI TestClient wired to the in-memory engine and built-in catalogue."""
    from fastapi.testclient import TestClient

    from yeet.api import deps
    from yeet.api.main import app
    from yeet.api.rate_limit import configure_rate_limiter
    from yeet.config import YeetConfig
    from yeet.engine.cache import ProgressCache

    cfg = YeetConfig(
        community_name="Test Circles",
        community_motto="testing",
        api_port=8000,
        progress_cache_ttl_seconds=0,
    )
    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_catalog] = lambda: catalog
    app.dependency_overrides[deps.get_config] = lambda: cfg
    app.dependency_overrides[deps.get_progress_cache] = lambda: ProgressCache(ttl_seconds=0)
    configure_rate_limiter(engine=db_engine)
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
