"""
gavel.services.hot_score_service — Full Hot Score Recompute
============================================================

Subscribed to the change feed.  Every delivery re-counts the case's vote
rows and comment + reply rows and overwrites ``hot_score``; it never
applies a delta.  Duplicate or reordered deliveries therefore converge on
``votes + 2 * comments`` once the last one runs.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select, update

from gavel.constants import hot_score
from gavel.database.engine import get_session
from gavel.database.models import Case, Comment, Reply, Vote
from gavel.engine.change_feed import CaseChange, ChangeFeed

logger = logging.getLogger(__name__)


def count_case_activity(session, case_id: str) -> tuple[int, int]:
    """``(vote rows, comment rows + reply rows)`` for *case_id*."""
    votes = session.scalar(
        select(func.count()).select_from(Vote).where(Vote.case_id == case_id)
    ) or 0
    comments = session.scalar(
        select(func.count()).select_from(Comment).where(Comment.case_id == case_id)
    ) or 0
    replies = session.scalar(
        select(func.count()).select_from(Reply).where(Reply.case_id == case_id)
    ) or 0
    return votes, comments + replies


def recompute_hot_score(engine: Engine, case_id: str) -> int | None:
    """Recount and store the hot score.  Returns it, or None if the case is gone."""
    with get_session(engine) as session:
        votes, comments = count_case_activity(session, case_id)
        score = hot_score(votes, comments)
        result = session.execute(
            update(Case).where(Case.id == case_id).values(hot_score=score),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount == 0:
            logger.info("Hot score recompute skipped: case %s no longer exists", case_id)
            return None
    logger.debug("Case %s hot score → %d (votes=%d comments=%d)", case_id, score, votes, comments)
    return score


def install_hot_score_handler(feed: ChangeFeed, engine: Engine) -> None:
    """Recompute the hot score of every case the feed reports."""

    def _on_change(change: CaseChange) -> None:
        recompute_hot_score(engine, change.case_id)

    feed.subscribe(_on_change)
