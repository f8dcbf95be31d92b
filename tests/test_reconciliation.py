"""
tests/test_reconciliation.py — Case Counter Reconciliation
===========================================================
"""

from __future__ import annotations

from conftest import load, make_case, make_comment, make_user, make_votes
from sqlalchemy.orm import Session

from gavel.database.models import Case, Reply
from gavel.services.reconciliation_service import reconcile_case_counters


def _seed(engine) -> str:
    for uid in ("u1", "u2", "u3"):
        make_user(engine, uid)
    case_id = make_case(engine, "u1")
    make_votes(engine, case_id, ["u1", "u2"], vote="guilty")
    make_votes(engine, case_id, ["u3"], vote="innocent")
    comment_id = make_comment(engine, case_id, "u2")
    with Session(engine) as session:
        session.add(Reply(case_id=case_id, comment_id=comment_id, author_id="u3", content="+1"))
        session.commit()
    return case_id


class TestReconcile:
    def test_repairs_every_counter(self, db_engine):
        case_id = _seed(db_engine)

        summary = reconcile_case_counters(db_engine)

        assert summary["checked"] == 1
        assert summary["corrected"] == 1
        (correction,) = summary["corrections"]
        assert correction["case_id"] == case_id
        assert correction["actual"] == {
            "guilty_count": 2,
            "innocent_count": 1,
            "comment_count": 2,
            "hot_score": 7,
        }
        case = load(db_engine, Case, case_id)
        assert (case.guilty_count, case.innocent_count, case.comment_count, case.hot_score) == (
            2, 1, 2, 7,
        )

    def test_clean_run_changes_nothing(self, db_engine):
        _seed(db_engine)
        reconcile_case_counters(db_engine)

        summary = reconcile_case_counters(db_engine)
        assert summary["corrected"] == 0
        assert summary["corrections"] == []
        assert "timestamp" in summary

    def test_only_drifted_fields_are_reported(self, db_engine):
        make_user(db_engine, "u1")
        case_id = make_case(db_engine, "u1", comment_count=4, hot_score=0)

        (correction,) = reconcile_case_counters(db_engine)["corrections"]
        assert correction["stored"] == {"comment_count": 4}
        assert correction["actual"] == {"comment_count": 0}
        assert load(db_engine, Case, case_id).comment_count == 0

    def test_empty_database(self, db_engine):
        summary = reconcile_case_counters(db_engine)
        assert (summary["checked"], summary["corrected"]) == (0, 0)
