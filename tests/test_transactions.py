"""
tests/test_transactions.py — Optimistic Transaction Unit
=========================================================
run_transaction(): conflict retries, the attempt bound, and which errors
pass through untouched.
"""

from __future__ import annotations

import asyncio
from datetime import tzinfo
from typing import get_type_hints

import pytest
from conftest import load, make_user
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import wait_none
from tenacity.wait import wait_base

from gavel.database.engine import WriteConflict, get_session, run_db, run_transaction
from gavel.database.models import User
from gavel.errors import FailedPrecondition, Internal
from gavel.services.case_service import create_case, delete_case
from gavel.services.comment_service import add_comment, add_reply, delete_comment, delete_reply
from gavel.services.mission_service import claim_reward, get_mission_board
from gavel.services.user_service import get_profile
from gavel.services.vote_service import add_vote


class Flaky:
    """Callable that raises *exc* for the first *failures* calls."""

    def __init__(self, exc: Exception, failures: int, result="done"):
        self.exc = exc
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self, session):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.result


class TestRetry:
    @pytest.mark.parametrize("exc", [
        StaleDataError("UPDATE statement on table 'users' expected to update 1 row(s)"),
        WriteConflict("case flipped"),
        OperationalError("UPDATE", {}, Exception("could not serialize access")),
    ])
    def test_conflicts_are_retried(self, db_engine, exc):
        fn = Flaky(exc, failures=2)
        assert run_transaction(db_engine, fn, max_attempts=3, wait=wait_none()) == "done"
        assert fn.calls == 3

    def test_gives_up_with_internal(self, db_engine):
        fn = Flaky(StaleDataError("conflict"), failures=10)
        with pytest.raises(Internal):
            run_transaction(db_engine, fn, max_attempts=4, wait=wait_none())
        assert fn.calls == 4

    def test_domain_errors_are_not_retried(self, db_engine):
        fn = Flaky(FailedPrecondition("nope"), failures=10)
        with pytest.raises(FailedPrecondition):
            run_transaction(db_engine, fn, max_attempts=5, wait=wait_none())
        assert fn.calls == 1

    def test_other_store_errors_become_internal(self, db_engine):
        fn = Flaky(IntegrityError("INSERT", {}, Exception("NOT NULL")), failures=10)
        with pytest.raises(Internal):
            run_transaction(db_engine, fn, max_attempts=5, wait=wait_none())
        assert fn.calls == 1

    def test_failed_attempt_rolls_back(self, db_engine):
        make_user(db_engine, points=10)

        def _tx(session):
            session.get(User, "u1").points += 5
            session.flush()
            raise FailedPrecondition("abort after writing")

        with pytest.raises(FailedPrecondition):
            run_transaction(db_engine, _tx)
        assert load(db_engine, User, "u1").points == 10


class TestVersionConflict:
    def test_lost_update_is_rerun(self, file_engine):
        """A rival commit bumps users.version mid-transaction; we rerun on top of it."""
        make_user(file_engine, points=0)
        attempts = {"n": 0}

        def _tx(session):
            attempts["n"] += 1
            user = session.get(User, "u1")
            if attempts["n"] == 1:
                with Session(file_engine) as rival:
                    rival.get(User, "u1").points += 100
                    rival.commit()
            user.points += 1
            session.flush()
            return user.points

        assert run_transaction(file_engine, _tx, wait=wait_none()) == 101
        assert attempts["n"] == 2
        assert load(file_engine, User, "u1").points == 101

    def test_version_bumps_on_every_write(self, db_engine):
        make_user(db_engine)
        before = load(db_engine, User, "u1").version
        run_transaction(db_engine, lambda s: setattr(s.get(User, "u1"), "points", 7))
        assert load(db_engine, User, "u1").version == before + 1


class TestSessionHelpers:
    def test_get_session_commits(self, db_engine):
        make_user(db_engine)
        with get_session(db_engine) as session:
            session.get(User, "u1").points = 3
        assert load(db_engine, User, "u1").points == 3

    def test_get_session_rolls_back(self, db_engine):
        make_user(db_engine)
        with pytest.raises(RuntimeError):
            with get_session(db_engine) as session:
                session.get(User, "u1").points = 3
                raise RuntimeError("boom")
        assert load(db_engine, User, "u1").points == 0

    def test_run_db_runs_in_a_thread(self, db_engine):
        make_user(db_engine, points=4)

        def _points(engine, user_id):
            with get_session(engine) as session:
                return session.get(User, user_id).points

        assert asyncio.run(run_db(_points, db_engine, "u1")) == 4


class TestSignatures:
    def test_wait_accepts_a_tenacity_strategy(self):
        assert get_type_hints(run_transaction)["wait"] == wait_base | None

    @pytest.mark.parametrize("func", [
        add_vote, add_comment, add_reply, delete_comment, delete_reply,
        claim_reward, get_mission_board, create_case, delete_case, get_profile,
    ])
    def test_service_timezone_is_a_tzinfo(self, func):
        assert get_type_hints(func)["tz"] is tzinfo
