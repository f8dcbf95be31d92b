"""
gavel.services.case_service — Case Authoring & Listings
========================================================

A new case opens a vote window of ``vote_window_hours`` (48 by default)
and counts as the author's daily post in the same transaction.
Deleting a case takes its votes, comments and replies with it and
retracts the author's post.  Edits and deletes are author-only.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, tzinfo

from sqlalchemy import Engine, delete, select

from gavel.constants import (
    DEFAULT_TRANSACTION_ATTEMPTS,
    DEFAULT_TZ,
    DEFAULT_VOTE_WINDOW_HOURS,
    as_utc,
    service_today,
)
from gavel.database.engine import get_session, run_transaction
from gavel.database.models import Case, CaseStatus, Vote
from gavel.engine.daily_stats import ActivityKind
from gavel.errors import InvalidArgument, NotFound, PermissionDenied
from gavel.services.stats_service import record_activity, retract_activity
from gavel.services.user_service import get_user_or_404, require_user_id

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
LIST_ORDERS = ("recent", "hot")


def case_to_dict(case: Case) -> dict:
    return {
        "id": case.id,
        "author_id": case.author_id,
        "title": case.title,
        "content": case.content,
        "status": case.status,
        "guilty_count": case.guilty_count,
        "innocent_count": case.innocent_count,
        "comment_count": case.comment_count,
        "hot_score": case.hot_score,
        "is_hot_listed": case.is_hot_listed,
        "vote_end_at": as_utc(case.vote_end_at).isoformat(),
        "created_at": as_utc(case.created_at).isoformat() if case.created_at else None,
    }


def create_case(
    engine: Engine,
    author_id: str,
    title: str,
    content: str = "",
    *,
    now: datetime | None = None,
    vote_window_hours: int = DEFAULT_VOTE_WINDOW_HOURS,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> dict:
    """Open a new case and count it as the author's post for today."""
    author_id = require_user_id(author_id)
    title = (title or "").strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise InvalidArgument(f"Title must be 1-{MAX_TITLE_LENGTH} characters.")
    now = as_utc(now or datetime.now(UTC))
    today = service_today(now, tz)

    def _tx(session) -> dict:
        author = get_user_or_404(session, author_id)
        case = Case(
            author_id=author_id,
            title=title,
            content=content or "",
            status=CaseStatus.OPEN.value,
            vote_end_at=now + timedelta(hours=vote_window_hours),
            created_at=now,
        )
        session.add(case)
        record_activity(author, ActivityKind.POST, today)
        session.flush()
        return case_to_dict(case)

    result = run_transaction(engine, _tx, max_attempts=max_attempts)
    logger.info("Case %s opened by %s", result["id"], author_id)
    return result


def get_case(engine: Engine, case_id: str) -> dict:
    with get_session(engine) as session:
        case = session.get(Case, case_id)
        if case is None:
            raise NotFound("Case not found.")
        return case_to_dict(case)


def list_cases(
    engine: Engine,
    *,
    status: str | None = None,
    order: str = "recent",
    author_id: str | None = None,
    limit: int = 20,
) -> list[dict]:
    """List cases, newest first or by hot score (trending)."""
    if order not in LIST_ORDERS:
        raise InvalidArgument(f"order must be one of {', '.join(LIST_ORDERS)}.")
    if status is not None:
        try:
            status = CaseStatus(status.upper()).value
        except ValueError as exc:
            raise InvalidArgument("status must be OPEN or CLOSED.") from exc
    limit = max(1, min(limit, 100))

    stmt = select(Case)
    if status is not None:
        stmt = stmt.where(Case.status == status)
    if author_id is not None:
        stmt = stmt.where(Case.author_id == author_id)
    if order == "hot":
        stmt = stmt.order_by(Case.hot_score.desc(), Case.created_at.desc())
    else:
        stmt = stmt.order_by(Case.created_at.desc(), Case.id)

    with get_session(engine) as session:
        return [case_to_dict(c) for c in session.scalars(stmt.limit(limit)).all()]


# ---------------------------------------------------------------------------
# Edit / delete (author only)
# ---------------------------------------------------------------------------
def _require_own_case(session, case_id: str, user_id: str) -> Case:
    case = session.get(Case, case_id)
    if case is None:
        raise NotFound("Case not found.")
    if case.author_id != user_id:
        raise PermissionDenied("Only the author can do that.")
    return case


def edit_case(
    engine: Engine,
    case_id: str,
    user_id: str,
    *,
    title: str | None = None,
    content: str | None = None,
) -> dict:
    """Change the title and/or content of the caller's own case."""
    user_id = require_user_id(user_id)
    if title is not None:
        title = title.strip()
        if not title or len(title) > MAX_TITLE_LENGTH:
            raise InvalidArgument(f"Title must be 1-{MAX_TITLE_LENGTH} characters.")
    with get_session(engine) as session:
        case = _require_own_case(session, case_id, user_id)
        if title is not None:
            case.title = title
        if content is not None:
            case.content = content
        session.flush()
        return case_to_dict(case)


def delete_case(
    engine: Engine,
    case_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> None:
    """Delete the caller's own case with its votes, comments and replies.

    The author's post is retracted: the lifetime total always, the daily
    counter only when the case was posted today.  Voters and commenters
    keep their counts.
    """
    user_id = require_user_id(user_id)
    today = service_today(now, tz)

    def _tx(session) -> None:
        case = _require_own_case(session, case_id, user_id)
        author = get_user_or_404(session, user_id)
        retract_activity(
            author,
            ActivityKind.POST,
            today,
            counted_on=service_today(case.created_at, tz),
        )
        session.execute(
            delete(Vote).where(Vote.case_id == case_id),
            execution_options={"synchronize_session": False},
        )
        session.delete(case)

    run_transaction(engine, _tx, max_attempts=max_attempts)
    logger.info("Case %s deleted by %s", case_id, user_id)
