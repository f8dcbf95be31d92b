"""
tests/test_hot_score.py — Change Feed & Hot Score Recompute
============================================================
The feed publishes only after commit, dedupes per commit, and the
recompute is a full recount, so duplicates and reordering converge.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import NOW, load, make_case, make_comment, make_user, make_votes
from sqlalchemy.orm import Session

from gavel.constants import hot_score
from gavel.database.models import Case
from gavel.engine.change_feed import CaseChange, ChangeFeed, attach_feed, feed_for
from gavel.errors import AlreadyExists
from gavel.services.comment_service import add_comment, add_reply, delete_comment
from gavel.services.hot_score_service import recompute_hot_score
from gavel.services.vote_service import add_vote


@pytest.fixture
def case_id(db_engine):
    for uid in ("u1", "u2", "u3"):
        make_user(db_engine, uid)
    return make_case(db_engine, "u1")


class TestFormula:
    def test_votes_plus_twice_comments(self):
        assert hot_score(0, 0) == 0
        assert hot_score(3, 2) == 7


# ===========================================================================
# Feed mechanics
# ===========================================================================
class TestChangeFeed:
    def test_commit_publishes(self, db_engine, feed, case_id):
        add_vote(db_engine, case_id, "u2", "guilty", now=NOW)
        assert feed.pending == 1
        assert load(db_engine, Case, case_id).hot_score == 0

        assert feed.drain() == 1
        assert load(db_engine, Case, case_id).hot_score == 1

    def test_rollback_publishes_nothing(self, db_engine, feed, case_id):
        add_vote(db_engine, case_id, "u2", "guilty", now=NOW)
        feed.drain()

        with pytest.raises(AlreadyExists):
            add_vote(db_engine, case_id, "u2", "innocent", now=NOW)
        assert feed.pending == 0

    def test_one_change_per_case_per_commit(self, db_engine, feed, case_id):
        make_votes(db_engine, case_id, ["u1", "u2", "u3"])
        assert feed.pending == 1
        feed.drain()
        assert load(db_engine, Case, case_id).hot_score == 3

    def test_handler_failure_is_contained(self, db_engine, case_id):
        seen: list[str] = []
        change_feed = ChangeFeed()
        change_feed.subscribe(lambda change: 1 / 0)
        change_feed.subscribe(lambda change: seen.append(change.case_id))
        attach_feed(db_engine, change_feed)

        make_votes(db_engine, case_id, ["u2"])
        change_feed.drain()
        assert seen == [case_id]

    def test_executor_delivery(self, db_engine, case_id):
        with ThreadPoolExecutor(max_workers=1) as pool:
            change_feed = ChangeFeed(executor=pool)
            seen: list[CaseChange] = []
            change_feed.subscribe(seen.append)
            attach_feed(db_engine, change_feed)
            make_votes(db_engine, case_id, ["u2"])
        assert [(c.case_id, c.source, c.action) for c in seen] == [(case_id, "votes", "created")]
        assert change_feed.pending == 0

    def test_close_finishes_and_stops_the_executor(self, db_engine, case_id):
        pool = ThreadPoolExecutor(max_workers=1)
        change_feed = ChangeFeed(executor=pool)
        seen: list[CaseChange] = []
        change_feed.subscribe(seen.append)
        attach_feed(db_engine, change_feed)

        make_votes(db_engine, case_id, ["u2"])
        change_feed.close()
        assert len(seen) == 1
        with pytest.raises(RuntimeError):
            pool.submit(print)

        # After close, changes queue instead
        make_votes(db_engine, case_id, ["u3"])
        assert change_feed.pending == 1
        change_feed.close()

    def test_no_feed_attached(self, db_engine, case_id):
        assert feed_for(db_engine) is None
        # Writes still succeed; nothing is recomputed
        add_vote(db_engine, case_id, "u2", "guilty", now=NOW)
        assert load(db_engine, Case, case_id).hot_score == 0


# ===========================================================================
# Recompute convergence
# ===========================================================================
class TestRecompute:
    def test_votes_comments_and_replies(self, db_engine, feed, case_id):
        add_vote(db_engine, case_id, "u2", "guilty", now=NOW)
        add_vote(db_engine, case_id, "u3", "innocent", now=NOW)
        comment_id = add_comment(db_engine, case_id, "u2", "Hmm.", now=NOW)
        add_reply(db_engine, case_id, comment_id, "u3", "Hmm indeed.", now=NOW)
        feed.drain()

        # 2 votes + 2 * (1 comment + 1 reply)
        assert load(db_engine, Case, case_id).hot_score == 6

    def test_duplicate_delivery_is_harmless(self, db_engine, feed, case_id):
        make_votes(db_engine, case_id, ["u2", "u3"])
        feed.drain()
        for _ in range(3):
            recompute_hot_score(db_engine, case_id)
        assert load(db_engine, Case, case_id).hot_score == 2

    def test_drift_is_overwritten(self, db_engine, case_id):
        make_votes(db_engine, case_id, ["u2"])
        make_comment(db_engine, case_id, "u2")
        with Session(db_engine) as session:
            session.get(Case, case_id).hot_score = 99
            session.commit()

        assert recompute_hot_score(db_engine, case_id) == 3
        assert load(db_engine, Case, case_id).hot_score == 3

    def test_delete_lowers_the_score(self, db_engine, feed, case_id):
        comment_id = add_comment(db_engine, case_id, "u2", "Soon gone.", now=NOW)
        add_reply(db_engine, case_id, comment_id, "u3", "Me too.", now=NOW)
        feed.drain()
        assert load(db_engine, Case, case_id).hot_score == 4

        delete_comment(db_engine, case_id, comment_id, "u2", now=NOW)
        feed.drain()
        assert load(db_engine, Case, case_id).hot_score == 0

    def test_missing_case_is_a_noop(self, db_engine):
        assert recompute_hot_score(db_engine, "gone") is None

