"""
gavel.engine.daily_stats — Lazy Day Rollover of Per-User Counters
==================================================================

There is no midnight batch job.  A user's daily counters are only valid
while ``last_active_date`` equals today (service timezone); every read or
write first asks for the *effective* snapshot, which is all-zero with both
daily claim flags cleared when the stored date is stale.  The rolled-over
snapshot is written back in the same transaction as the increment or claim
that needed it.

This module is pure calculation with no database I/O.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gavel.database.models import User


class ActivityKind(enum.StrEnum):
    """Counted actions.  Each bumps one daily and one lifetime counter."""
    VOTE = "vote"
    COMMENT = "comment"
    POST = "post"


# ActivityKind → DailyStats field
_DAILY_FIELD: dict[ActivityKind, str] = {
    ActivityKind.VOTE: "vote_count",
    ActivityKind.COMMENT: "comment_count",
    ActivityKind.POST: "post_count",
}

# ActivityKind → User lifetime column
TOTAL_COLUMN: dict[ActivityKind, str] = {
    ActivityKind.VOTE: "total_vote_count",
    ActivityKind.COMMENT: "total_comment_count",
    ActivityKind.POST: "total_post_count",
}


@dataclass(frozen=True, slots=True)
class DailyStats:
    """One user's activity for a single service-local calendar day."""

    last_active_date: date | None = None
    vote_count: int = 0
    comment_count: int = 0
    post_count: int = 0
    is_level1_claimed: bool = False
    is_level2_claimed: bool = False

    @classmethod
    def fresh(cls, today: date) -> DailyStats:
        return cls(last_active_date=today)

    @classmethod
    def from_user(cls, user: User) -> DailyStats:
        return cls(
            last_active_date=user.last_active_date,
            vote_count=user.daily_vote_count or 0,
            comment_count=user.daily_comment_count or 0,
            post_count=user.daily_post_count or 0,
            is_level1_claimed=bool(user.is_level1_claimed),
            is_level2_claimed=bool(user.is_level2_claimed),
        )

    def is_stale(self, today: date) -> bool:
        return self.last_active_date != today

    def effective(self, today: date) -> DailyStats:
        """The stats as they must be read on *today*.

        A stale snapshot yields zero counters and cleared claim flags,
        regardless of what was stored for the earlier day.
        """
        if self.is_stale(today):
            return DailyStats.fresh(today)
        return self

    def count_for(self, kind: ActivityKind) -> int:
        return getattr(self, _DAILY_FIELD[kind])

    def bump(self, kind: ActivityKind, delta: int = 1) -> DailyStats:
        """Return a copy with the counter for *kind* moved by *delta* (floored at 0)."""
        name = _DAILY_FIELD[kind]
        return replace(self, **{name: max(0, getattr(self, name) + delta)})

    def apply_to(self, user: User) -> None:
        """Copy this snapshot onto the ORM row (caller commits)."""
        user.last_active_date = self.last_active_date
        user.daily_vote_count = self.vote_count
        user.daily_comment_count = self.comment_count
        user.daily_post_count = self.post_count
        user.is_level1_claimed = self.is_level1_claimed
        user.is_level2_claimed = self.is_level2_claimed


def effective_stats(user: User, today: date) -> DailyStats:
    """Shortcut for ``DailyStats.from_user(user).effective(today)``."""
    return DailyStats.from_user(user).effective(today)
