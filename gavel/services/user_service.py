"""
gavel.services.user_service — Member Bootstrap, Profile & Point History
========================================================================

Users are keyed by the external login's user key.  The first
authenticated request calls :func:`ensure_user`, which inserts the row
with a generated nickname when it does not exist yet.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, tzinfo

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gavel.constants import DEFAULT_NICKNAME_PREFIX, DEFAULT_TZ, as_utc, service_today
from gavel.database.engine import get_session
from gavel.database.models import PointHistory, User
from gavel.engine.daily_stats import effective_stats
from gavel.errors import AlreadyExists, InvalidArgument, NotFound, Unauthenticated

logger = logging.getLogger(__name__)

NICKNAME_ATTEMPTS = 5


def require_user_id(user_id: str | None) -> str:
    """Reject an absent caller identity."""
    if not user_id or not str(user_id).strip():
        raise Unauthenticated()
    return str(user_id)


def get_user_or_404(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _nickname_taken(session: Session, nickname: str) -> bool:
    return session.scalar(select(User.id).where(User.nickname == nickname)) is not None


def generate_nickname(session: Session, prefix: str = DEFAULT_NICKNAME_PREFIX) -> str:
    """``<prefix><5 random digits>``, falling back to a timestamp suffix."""
    for _ in range(NICKNAME_ATTEMPTS):
        candidate = f"{prefix}{random.randint(10000, 99999)}"
        if not _nickname_taken(session, candidate):
            return candidate
    return f"{prefix}{int(time.time() * 1000) % 10**8}"


def ensure_user(
    engine: Engine,
    user_id: str,
    nickname: str | None = None,
    *,
    prefix: str = DEFAULT_NICKNAME_PREFIX,
) -> User:
    """Fetch or insert the User row for *user_id*."""
    user_id = require_user_id(user_id)
    if nickname is not None:
        nickname = nickname.strip()
        if not nickname or len(nickname) > 50:
            raise InvalidArgument("Nickname must be 1-50 characters.")

    try:
        with get_session(engine) as session:
            user = session.get(User, user_id)
            if user is not None:
                return user
            user = User(
                id=user_id,
                nickname=nickname or generate_nickname(session, prefix),
            )
            session.add(user)
            session.flush()
            logger.info("Created user %s (%s)", user_id, user.nickname)
            return user
    except IntegrityError as exc:
        # Lost an insert race on the id, or the nickname belongs to someone else
        with get_session(engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise AlreadyExists("Nickname already taken.") from exc
            return user


def get_profile(
    engine: Engine,
    user_id: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
) -> dict:
    """Read-only profile view with the daily stats as they read today."""
    user_id = require_user_id(user_id)
    today = service_today(now, tz)
    with get_session(engine) as session:
        user = get_user_or_404(session, user_id)
        stats = effective_stats(user, today)
        return {
            "id": user.id,
            "nickname": user.nickname,
            "points": user.points,
            "is_level0_claimed": user.is_level0_claimed,
            "daily_stats": {
                "date": today.isoformat(),
                "vote_count": stats.vote_count,
                "comment_count": stats.comment_count,
                "post_count": stats.post_count,
                "is_level1_claimed": stats.is_level1_claimed,
                "is_level2_claimed": stats.is_level2_claimed,
            },
            "totals": {
                "vote_count": user.total_vote_count,
                "comment_count": user.total_comment_count,
                "post_count": user.total_post_count,
            },
        }


def list_point_history(engine: Engine, user_id: str, *, limit: int = 50) -> list[dict]:
    """Newest-first point ledger entries for *user_id*."""
    user_id = require_user_id(user_id)
    limit = max(1, min(limit, 200))
    with get_session(engine) as session:
        get_user_or_404(session, user_id)
        rows = session.scalars(
            select(PointHistory)
            .where(PointHistory.user_id == user_id)
            .order_by(PointHistory.created_at.desc(), PointHistory.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "id": row.id,
                "type": row.type,
                "amount": row.amount,
                "reason": row.reason,
                "created_at": as_utc(row.created_at).isoformat() if row.created_at else None,
            }
            for row in rows
        ]
