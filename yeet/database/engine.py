"""
yeet.database.engine — Database connection, unit of work & async helper
=========================================================================

SQLAlchemy + psycopg2 is synchronous; the FastAPI routes are ``async``.
Routes therefore hand synchronous service functions to :func:`run_db`,
which ships them to the default thread pool via ``asyncio.to_thread()``.

Every mutating engine operation (points award, unlock, puzzle verify)
runs inside exactly one :func:`unit_of_work`: commit on success, rollback
on any exception, and storage outages re-raised as
:class:`~yeet.errors.TransientStorageError` so callers know the whole
operation is safe to retry.

Usage::

    from yeet.database.engine import create_db_engine, init_db, unit_of_work

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with unit_of_work(engine) as session:
        award(session, user_id, 25, "puzzle solved")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Concatenate, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from yeet.database.models import Base
from yeet.errors import TransientStorageError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    Pool sizing for PostgreSQL:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False)
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`yeet.database.models`.

    Safe on every startup (``CREATE TABLE IF NOT EXISTS`` under the hood).
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(User(id=123, username="sa"))
            # commit happens automatically on block exit
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(engine: Engine) -> Iterator[Session]:
    """:func:`get_session` plus storage-error translation.

    ``OperationalError`` (connection loss, lock timeout, serialization
    failure) and disconnect-flagged ``DBAPIError`` become
    :class:`TransientStorageError`.  Nothing is committed in either case.
    """
    try:
        with get_session(engine) as session:
            yield session
    except OperationalError as exc:
        logger.warning("Transient storage failure: %s", exc.orig)
        raise TransientStorageError(str(exc.orig)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning("Database connection lost: %s", exc.orig)
            raise TransientStorageError(str(exc.orig)) from exc
        raise


def run_in_transaction(
    engine: Engine,
    work: Callable[Concatenate[Session, P], T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Call ``work(session, *args, **kwargs)`` inside one :func:`unit_of_work`."""
    with unit_of_work(engine) as session:
        return work(session, *args, **kwargs)


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Every DB call from an ``async`` route goes through this wrapper::

        outcome = await run_db(attempt_unlock, engine, catalog, user_id, key_id)

    Under the hood it calls :func:`asyncio.to_thread`, so the event loop
    is never blocked.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
