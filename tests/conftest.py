"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of gavel.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, date, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gavel.config import GavelConfig  # noqa: E402
from gavel.database.models import Base, Case, CaseStatus, Comment, User, Vote  # noqa: E402
from gavel.engine.change_feed import ChangeFeed, attach_feed, detach_feed  # noqa: E402
from gavel.services.hot_score_service import install_hot_score_handler  # noqa: E402

# 12:00 in Seoul on 2026-03-10
NOW = datetime(2026, 3, 10, 3, 0, tzinfo=UTC)
TODAY = date(2026, 3, 10)
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Gavel tables.

    Uses StaticPool so every session (and thread) shares the same
    in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    detach_feed(engine)


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine: separate connections, real write conflicts."""
    engine = create_engine(f"sqlite:///{tmp_path / 'gavel.db'}", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    detach_feed(engine)
    engine.dispose()


@pytest.fixture
def feed(db_engine) -> ChangeFeed:
    """A queue-only change feed wired to the hot score recompute.

    Call ``feed.drain()`` to deliver what the committed writes published.
    """
    change_feed = ChangeFeed()
    install_hot_score_handler(change_feed, db_engine)
    return attach_feed(db_engine, change_feed)


@pytest.fixture
def test_config() -> GavelConfig:
    return GavelConfig(
        service_name="Gavel Test",
        public_base_url="https://gavel.test",
    )


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_user(engine: Engine, user_id: str = "u1", **fields) -> str:
    """Insert a User row; extra keyword arguments set columns directly."""
    fields.setdefault("nickname", f"Juror-{user_id}")
    with Session(engine) as session:
        session.add(User(id=user_id, **fields))
        session.commit()
    return user_id


def make_case(engine: Engine, author_id: str | None = "u1", **fields) -> str:
    """Insert a Case row, OPEN with a 48h window from NOW unless overridden."""
    fields.setdefault("title", "Refund refused for a broken kettle")
    fields.setdefault("content", "The seller says it was fine when shipped.")
    fields.setdefault("status", CaseStatus.OPEN.value)
    fields.setdefault("vote_end_at", NOW + timedelta(hours=48))
    fields.setdefault("created_at", NOW)
    with Session(engine) as session:
        case = Case(author_id=author_id, **fields)
        session.add(case)
        session.commit()
        return case.id


def make_votes(engine: Engine, case_id: str, user_ids: list[str], vote: str = "guilty") -> None:
    """Insert raw vote rows without touching counters."""
    with Session(engine) as session:
        for uid in user_ids:
            session.add(Vote(case_id=case_id, user_id=uid, vote=vote))
        session.commit()


def make_comment(engine: Engine, case_id: str, author_id: str = "u1", **fields) -> str:
    fields.setdefault("content", "Sounds like the seller's fault.")
    fields.setdefault("created_at", NOW)
    with Session(engine) as session:
        comment = Comment(case_id=case_id, author_id=author_id, **fields)
        session.add(comment)
        session.commit()
        return comment.id


def load(engine: Engine, model, key):
    """Fresh read of one row, detached."""
    with Session(engine, expire_on_commit=False) as session:
        return session.get(model, key)


@pytest.fixture
def user_token():
    return make_user_token()


def make_user_token(sub: str = "u1", is_admin: bool = False) -> str:
    """Create a user JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from gavel.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
