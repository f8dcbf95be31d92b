"""
tests/test_vote_service.py — Vote Counter Tests
================================================
Covers vote_service.add_vote(): one vote per (case, user), counter
increments, daily stats, and rollback on every error path.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import NOW, TODAY, YESTERDAY, load, make_case, make_user
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gavel.database.models import Case, CaseStatus, User, Vote
from gavel.errors import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound
from gavel.services.vote_service import add_vote, get_user_vote


def _vote_rows(engine, case_id) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(Vote).where(Vote.case_id == case_id)
        )


class TestAddVote:
    def test_guilty_vote_counts(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine)

        add_vote(db_engine, case_id, "u1", "guilty", now=NOW)

        case = load(db_engine, Case, case_id)
        assert (case.guilty_count, case.innocent_count) == (1, 0)
        assert get_user_vote(db_engine, case_id, "u1") == "guilty"

        user = load(db_engine, User, "u1")
        assert user.daily_vote_count == 1
        assert user.total_vote_count == 1
        assert user.last_active_date == TODAY

    def test_innocent_vote_counts(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine)
        add_vote(db_engine, case_id, "u1", "INNOCENT", now=NOW)
        case = load(db_engine, Case, case_id)
        assert (case.guilty_count, case.innocent_count) == (0, 1)

    def test_second_vote_is_rejected(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine)
        add_vote(db_engine, case_id, "u1", "guilty", now=NOW)

        with pytest.raises(AlreadyExists):
            add_vote(db_engine, case_id, "u1", "innocent", now=NOW)

        case = load(db_engine, Case, case_id)
        assert (case.guilty_count, case.innocent_count) == (1, 0)
        assert get_user_vote(db_engine, case_id, "u1") == "guilty"
        assert load(db_engine, User, "u1").daily_vote_count == 1

    def test_missing_case(self, db_engine):
        make_user(db_engine)
        with pytest.raises(NotFound):
            add_vote(db_engine, "nope", "u1", "guilty", now=NOW)
        assert load(db_engine, User, "u1").daily_vote_count == 0

    def test_missing_user_rolls_back(self, db_engine):
        make_user(db_engine, "author")
        case_id = make_case(db_engine, "author")
        with pytest.raises(NotFound):
            add_vote(db_engine, case_id, "ghost", "guilty", now=NOW)
        assert _vote_rows(db_engine, case_id) == 0
        assert load(db_engine, Case, case_id).guilty_count == 0

    def test_closed_case(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine, status=CaseStatus.CLOSED.value)
        with pytest.raises(FailedPrecondition):
            add_vote(db_engine, case_id, "u1", "guilty", now=NOW)

    def test_bad_vote_type(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine)
        with pytest.raises(InvalidArgument):
            add_vote(db_engine, case_id, "u1", "maybe", now=NOW)

    def test_vote_rolls_over_stale_stats(self, db_engine):
        make_user(
            db_engine,
            last_active_date=YESTERDAY,
            daily_vote_count=9,
            is_level1_claimed=True,
        )
        case_id = make_case(db_engine)
        add_vote(db_engine, case_id, "u1", "guilty", now=NOW)

        user = load(db_engine, User, "u1")
        assert user.daily_vote_count == 1
        assert user.is_level1_claimed is False

    def test_no_vote_returns_none(self, db_engine):
        make_user(db_engine)
        case_id = make_case(db_engine)
        assert get_user_vote(db_engine, case_id, "u1") is None


class TestConcurrentVotes:
    def test_no_lost_updates(self, file_engine):
        """N distinct voters in parallel: guilty + innocent == N."""
        voters = [f"voter-{i}" for i in range(8)]
        make_user(file_engine, "author")
        for uid in voters:
            make_user(file_engine, uid)
        case_id = make_case(file_engine, "author")

        def _cast(i_uid):
            i, uid = i_uid
            add_vote(
                file_engine, case_id, uid, "guilty" if i % 2 else "innocent",
                now=NOW, max_attempts=20,
            )

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(_cast, enumerate(voters)))

        case = load(file_engine, Case, case_id)
        assert case.guilty_count + case.innocent_count == len(voters)
        assert (case.guilty_count, case.innocent_count) == (4, 4)
        assert _vote_rows(file_engine, case_id) == len(voters)
