"""
gavel.services.stats_service — Daily + Lifetime Counter Updates
================================================================

Called *inside* an open transaction by every path that counts an action
(vote, comment/reply, case post).  The user's daily stats are rolled over
first, then bumped, then written back together with the lifetime total,
so the rollover and the increment commit or abort as one.
"""

from __future__ import annotations

from datetime import date

from gavel.database.models import User
from gavel.engine.daily_stats import TOTAL_COLUMN, ActivityKind, DailyStats, effective_stats


def record_activity(user: User, kind: ActivityKind, today: date) -> DailyStats:
    """Count one *kind* action for *user* on *today*.  Returns the new stats."""
    stats = effective_stats(user, today).bump(kind)
    stats.apply_to(user)
    column = TOTAL_COLUMN[kind]
    setattr(user, column, (getattr(user, column) or 0) + 1)
    return stats


def retract_activity(
    user: User,
    kind: ActivityKind,
    today: date,
    *,
    counted_on: date,
) -> DailyStats:
    """Undo one *kind* action that was counted on *counted_on*.

    The lifetime total always drops by one (never below zero).  The daily
    counter only drops when the action belongs to today's still-valid
    stats; an action from an earlier day is already outside the window.
    """
    column = TOTAL_COLUMN[kind]
    setattr(user, column, max(0, (getattr(user, column) or 0) - 1))

    stats = DailyStats.from_user(user)
    if counted_on != today or stats.is_stale(today):
        return stats.effective(today)
    stats = stats.bump(kind, -1)
    stats.apply_to(user)
    return stats
