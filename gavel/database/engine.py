"""
gavel.database.engine — Database Connection, Transactions & Async Helper
=========================================================================

SQLAlchemy + psycopg2 is **synchronous**.  The API runs sync routes on
Starlette's thread pool and the worker ships DB calls to a thread via
:func:`run_db`, so the event loop is never blocked.

Every read-modify-write of a User or Case goes through
:func:`run_transaction`: the callable runs inside one ``Session.begin()``
block and is re-executed from scratch when the commit loses a race (a
``version_id_col`` mismatch, an explicit :class:`WriteConflict`, or a
serialization failure reported by the database).  Past the attempt bound
the caller gets :class:`gavel.errors.Internal`.

Usage::

    from gavel.database.engine import create_db_engine, init_db, run_transaction

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    points = run_transaction(engine, lambda s: s.get(User, uid).points)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from gavel.constants import DEFAULT_TRANSACTION_ATTEMPTS
from gavel.database.models import Base
from gavel.errors import GavelError, Internal

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class WriteConflict(Exception):
    """A compare-and-swap UPDATE matched no row; the transaction must rerun."""


# Failures that mean "somebody else committed first": rerun the whole unit.
RETRYABLE_ERRORS = (StaleDataError, WriteConflict, OperationalError)


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Pool sizing:
    * ``pool_size=5``: five persistent connections.
    * ``max_overflow=10``: up to 10 extra connections under load.
    * ``pool_timeout=10``: fail after 10 s if no connection is available.
    * ``pool_recycle=3600``: recycle connections after 1 hour.

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

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`gavel.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.  For read paths and best-effort writes that need no retry.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Optimistic transaction unit
# ---------------------------------------------------------------------------
def run_transaction(
    engine: Engine,
    fn: Callable[[Session], T],
    *,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
    wait: wait_base | None = None,
) -> T:
    """Run ``fn(session)`` atomically, rerunning it on write conflicts.

    *fn* must do all of its reads inside the session it is given; it is
    called again with a fresh session on every attempt.  Domain errors
    (:class:`GavelError`) abort immediately without a retry.

    Raises
    ------
    GavelError
        Whatever *fn* raised.
    Internal
        Conflicts persisted for *max_attempts* attempts, or the database
        failed in a way no retry can fix.
    """

    def _attempt() -> T:
        with Session(engine, expire_on_commit=False) as session:
            with session.begin():
                return fn(session)

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        wait=wait if wait is not None else wait_random_exponential(multiplier=0.01, max=0.2),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
    )
    try:
        return retrying(_attempt)
    except GavelError:
        raise
    except RetryError as exc:
        logger.warning(
            "Transaction gave up after %d attempts: %r",
            max_attempts,
            exc.last_attempt.exception(),
        )
        raise Internal("Too much contention, please try again.") from exc
    except SQLAlchemyError as exc:
        logger.exception("Transaction failed")
        raise Internal() from exc


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    The worker's periodic loops go through this wrapper::

        summary = await run_db(close_expired_cases, engine, push)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
