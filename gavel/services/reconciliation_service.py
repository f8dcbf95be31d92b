"""
gavel.services.reconciliation_service — Case Counter Reconciliation
====================================================================

Weekly job that validates the denormalized counters on ``cases`` against
the raw ``votes`` / ``comments`` / ``replies`` rows and corrects drift.

How it works:
    1. Count votes per (case, verdict) and comments + replies per case.
    2. Compare against ``guilty_count``, ``innocent_count``,
       ``comment_count`` and ``hot_score`` on every case.
    3. Overwrite any mismatch with the true value.
    4. Log all corrections for audit.

``comment_count`` is a best-effort write, so this is where a failed bump
gets repaired.  ``hot_score`` is recomputed with the same formula as the
change-feed handler.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select, update

from gavel.constants import hot_score
from gavel.database.engine import get_session
from gavel.database.models import Case, Comment, Reply, Vote, VoteType

logger = logging.getLogger(__name__)

_FIELDS = ("guilty_count", "innocent_count", "comment_count", "hot_score")


def reconcile_case_counters(engine: Engine) -> dict:
    """Validate case counters against raw rows and fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        votes: dict[tuple[str, str], int] = {
            (row.case_id, row.vote): row.n
            for row in session.execute(
                select(Vote.case_id, Vote.vote, func.count().label("n"))
                .group_by(Vote.case_id, Vote.vote)
            ).all()
        }
        comments: dict[str, int] = {
            row.case_id: row.n
            for row in session.execute(
                select(Comment.case_id, func.count().label("n")).group_by(Comment.case_id)
            ).all()
        }
        for row in session.execute(
            select(Reply.case_id, func.count().label("n")).group_by(Reply.case_id)
        ).all():
            comments[row.case_id] = comments.get(row.case_id, 0) + row.n

        cases = session.execute(
            select(
                Case.id,
                Case.guilty_count,
                Case.innocent_count,
                Case.comment_count,
                Case.hot_score,
            )
        ).all()

        for case in cases:
            guilty = votes.get((case.id, VoteType.GUILTY.value), 0)
            innocent = votes.get((case.id, VoteType.INNOCENT.value), 0)
            comment_total = comments.get(case.id, 0)
            actual = {
                "guilty_count": guilty,
                "innocent_count": innocent,
                "comment_count": comment_total,
                "hot_score": hot_score(guilty + innocent, comment_total),
            }
            stored = {name: getattr(case, name) for name in _FIELDS}
            diff = {name: value for name, value in actual.items() if stored[name] != value}
            if not diff:
                continue

            corrections.append({
                "case_id": case.id,
                "stored": {name: stored[name] for name in diff},
                "actual": diff,
            })
            session.execute(
                update(Case).where(Case.id == case.id).values(**diff),
                execution_options={"synchronize_session": False},
            )

        checked = len(cases)

    if corrections:
        logger.warning(
            "Case counter reconciliation: corrected %d/%d cases: %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Case counter reconciliation: all %d cases match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
