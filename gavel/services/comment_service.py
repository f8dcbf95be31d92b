"""
gavel.services.comment_service — Comments, Replies & Likes
===========================================================

Creating a comment or reply and counting it in the author's daily stats
is one transaction.  The parent case's ``comment_count`` is a denormalized
counter bumped **afterwards** in its own best-effort write: if that write
fails the comment still stands, the drift is logged, and the weekly
reconciliation job repairs it.  Replies count as comments everywhere
(daily stats, ``comment_count``, hot score).

Deletes and edits are author-only.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, tzinfo

from sqlalchemy import Engine, select, update
from sqlalchemy import case as sql_case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gavel.constants import (
    DEFAULT_TRANSACTION_ATTEMPTS,
    DEFAULT_TZ,
    as_utc,
    service_today,
)
from gavel.database.engine import get_session, run_transaction
from gavel.database.models import Case, Comment, Reply, User
from gavel.engine.daily_stats import ActivityKind
from gavel.errors import InvalidArgument, NotFound, PermissionDenied
from gavel.services.stats_service import record_activity, retract_activity
from gavel.services.user_service import get_user_or_404, require_user_id
from gavel.services.vote_service import parse_vote

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1000


def _clean_content(content: str | None) -> str:
    content = (content or "").strip()
    if not content or len(content) > MAX_CONTENT_LENGTH:
        raise InvalidArgument(f"Content must be 1-{MAX_CONTENT_LENGTH} characters.")
    return content


def _require_case(session: Session, case_id: str) -> None:
    if session.scalar(select(Case.id).where(Case.id == case_id)) is None:
        raise NotFound("Case not found.")


def _require_comment(session: Session, case_id: str, comment_id: str) -> Comment:
    comment = session.get(Comment, comment_id)
    if comment is None or comment.case_id != case_id:
        raise NotFound("Comment not found.")
    return comment


def _require_reply(session: Session, case_id: str, comment_id: str, reply_id: str) -> Reply:
    reply = session.get(Reply, reply_id)
    if reply is None or reply.comment_id != comment_id or reply.case_id != case_id:
        raise NotFound("Reply not found.")
    return reply


def _author_check(author_id: str, user_id: str) -> None:
    if author_id != user_id:
        raise PermissionDenied("Only the author can do that.")


# ---------------------------------------------------------------------------
# Denormalized comment_count: best effort
# ---------------------------------------------------------------------------
def adjust_comment_count(engine: Engine, case_id: str, delta: int) -> bool:
    """Move ``cases.comment_count`` by *delta*, floored at zero.

    Never raises: a failure is logged and left for reconciliation.
    Returns whether the write went through.
    """
    new_value = Case.comment_count + delta
    try:
        with get_session(engine) as session:
            session.execute(
                update(Case)
                .where(Case.id == case_id)
                .values(comment_count=sql_case((new_value < 0, 0), else_=new_value)),
                execution_options={"synchronize_session": False},
            )
    except SQLAlchemyError:
        logger.warning(
            "comment_count update (%+d) failed for case %s; left for reconciliation",
            delta, case_id, exc_info=True,
        )
        return False
    return True


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def add_comment(
    engine: Engine,
    case_id: str,
    author_id: str,
    content: str,
    *,
    vote: str | None = None,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> str:
    """Post a top-level comment.  Returns the new comment id."""
    author_id = require_user_id(author_id)
    content = _clean_content(content)
    vote_value = parse_vote(vote).value if vote else None
    now = as_utc(now or datetime.now(UTC))
    today = service_today(now, tz)

    def _tx(session) -> str:
        _require_case(session, case_id)
        author = get_user_or_404(session, author_id)
        comment = Comment(
            case_id=case_id,
            author_id=author_id,
            content=content,
            vote=vote_value,
            created_at=now,
        )
        session.add(comment)
        record_activity(author, ActivityKind.COMMENT, today)
        session.flush()
        return comment.id

    comment_id = run_transaction(engine, _tx, max_attempts=max_attempts)
    adjust_comment_count(engine, case_id, +1)
    return comment_id


def add_reply(
    engine: Engine,
    case_id: str,
    comment_id: str,
    author_id: str,
    content: str,
    *,
    vote: str | None = None,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> str:
    """Reply to a comment.  Returns the new reply id."""
    author_id = require_user_id(author_id)
    content = _clean_content(content)
    vote_value = parse_vote(vote).value if vote else None
    now = as_utc(now or datetime.now(UTC))
    today = service_today(now, tz)

    def _tx(session) -> str:
        _require_comment(session, case_id, comment_id)
        author = get_user_or_404(session, author_id)
        reply = Reply(
            case_id=case_id,
            comment_id=comment_id,
            author_id=author_id,
            content=content,
            vote=vote_value,
            created_at=now,
        )
        session.add(reply)
        record_activity(author, ActivityKind.COMMENT, today)
        session.flush()
        return reply.id

    reply_id = run_transaction(engine, _tx, max_attempts=max_attempts)
    adjust_comment_count(engine, case_id, +1)
    return reply_id


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------
def _entry_to_dict(entry: Comment | Reply) -> dict:
    return {
        "id": entry.id,
        "author_id": entry.author_id,
        "content": entry.content,
        "vote": entry.vote,
        "likes": entry.likes,
        "created_at": as_utc(entry.created_at).isoformat() if entry.created_at else None,
    }


def list_comments(engine: Engine, case_id: str) -> list[dict]:
    """Comments of a case, oldest first, each with its replies."""
    with get_session(engine) as session:
        _require_case(session, case_id)
        comments = session.scalars(
            select(Comment)
            .where(Comment.case_id == case_id)
            .order_by(Comment.created_at, Comment.id)
        ).all()
        out = []
        for comment in comments:
            item = _entry_to_dict(comment)
            item["replies"] = [
                _entry_to_dict(r)
                for r in sorted(comment.replies, key=lambda r: (as_utc(r.created_at), r.id))
            ]
            out.append(item)
        return out


# ---------------------------------------------------------------------------
# Edit / delete (author only)
# ---------------------------------------------------------------------------
def edit_comment(engine: Engine, case_id: str, comment_id: str, user_id: str, content: str) -> None:
    user_id = require_user_id(user_id)
    content = _clean_content(content)
    with get_session(engine) as session:
        comment = _require_comment(session, case_id, comment_id)
        _author_check(comment.author_id, user_id)
        comment.content = content


def edit_reply(
    engine: Engine, case_id: str, comment_id: str, reply_id: str, user_id: str, content: str,
) -> None:
    user_id = require_user_id(user_id)
    content = _clean_content(content)
    with get_session(engine) as session:
        reply = _require_reply(session, case_id, comment_id, reply_id)
        _author_check(reply.author_id, user_id)
        reply.content = content


def _retract_for_author(
    session: Session, author_id: str, created_at: datetime, today: date, tz: tzinfo,
) -> None:
    author = session.get(User, author_id)
    if author is None:
        return
    retract_activity(
        author,
        ActivityKind.COMMENT,
        today,
        counted_on=service_today(created_at, tz),
    )


def delete_comment(
    engine: Engine,
    case_id: str,
    comment_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> int:
    """Delete a comment and its replies.  Returns how many entries went away."""
    user_id = require_user_id(user_id)
    today = service_today(now, tz)

    def _tx(session) -> int:
        comment = _require_comment(session, case_id, comment_id)
        _author_check(comment.author_id, user_id)
        removed = 1 + len(comment.replies)
        # Replies by other users stay counted in their authors' stats
        _retract_for_author(session, comment.author_id, comment.created_at, today, tz)
        session.delete(comment)
        return removed

    removed = run_transaction(engine, _tx, max_attempts=max_attempts)
    adjust_comment_count(engine, case_id, -removed)
    return removed


def delete_reply(
    engine: Engine,
    case_id: str,
    comment_id: str,
    reply_id: str,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> None:
    user_id = require_user_id(user_id)
    today = service_today(now, tz)

    def _tx(session) -> None:
        reply = _require_reply(session, case_id, comment_id, reply_id)
        _author_check(reply.author_id, user_id)
        _retract_for_author(session, reply.author_id, reply.created_at, today, tz)
        session.delete(reply)

    run_transaction(engine, _tx, max_attempts=max_attempts)
    adjust_comment_count(engine, case_id, -1)


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------
def like_comment(engine: Engine, case_id: str, comment_id: str) -> None:
    with get_session(engine) as session:
        result = session.execute(
            update(Comment)
            .where(Comment.id == comment_id, Comment.case_id == case_id)
            .values(likes=Comment.likes + 1),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount == 0:
            raise NotFound("Comment not found.")


def like_reply(engine: Engine, case_id: str, comment_id: str, reply_id: str) -> None:
    with get_session(engine) as session:
        result = session.execute(
            update(Reply)
            .where(
                Reply.id == reply_id,
                Reply.comment_id == comment_id,
                Reply.case_id == case_id,
            )
            .values(likes=Reply.likes + 1),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount == 0:
            raise NotFound("Reply not found.")
