"""
gavel.constants — Shared Constants & Helpers
=============================================

Single source of truth for mission rewards, thresholds, the hot score
formula, and service defaults.  Import from here instead of duplicating
in services, routes, and tests.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo
from zoneinfo import ZoneInfo

# ---------------------------------------------------------------------------
# Service defaults (overridable in config.yaml)
# ---------------------------------------------------------------------------
DEFAULT_TIMEZONE = "Asia/Seoul"
DEFAULT_TZ = ZoneInfo(DEFAULT_TIMEZONE)
DEFAULT_VOTE_WINDOW_HOURS = 48
DEFAULT_CLOSE_INTERVAL_MINUTES = 10
DEFAULT_RECONCILE_INTERVAL_HOURS = 168  # 7 days
DEFAULT_TRANSACTION_ATTEMPTS = 5
DEFAULT_NICKNAME_PREFIX = "Juror"
DEFAULT_PUSH_API_BASE = "https://apps-in-toss-api.toss.im"
DEFAULT_PUSH_TITLE = "The jury is out: your case is closed. See the verdict."

# ---------------------------------------------------------------------------
# Mission rewards (gavel points)
# ---------------------------------------------------------------------------
LEVEL0_REWARD = 100   # first vote + comment + post of a day, once per account
LEVEL1_REWARD = 30    # 5 votes in a day
LEVEL2_REWARD = 60    # 3 comments in a day
LEVEL3_REWARD = 100   # per closed case that made the hot list

LEVEL1_VOTE_THRESHOLD = 5
LEVEL2_COMMENT_THRESHOLD = 3

MISSION_REASON_PREFIX = "MISSION_REWARD_"


# ---------------------------------------------------------------------------
# Hot score: THE single canonical implementation
# ---------------------------------------------------------------------------
HOT_SCORE_VOTE_WEIGHT = 1
HOT_SCORE_COMMENT_WEIGHT = 2


def hot_score(vote_count: int, comment_count: int) -> int:
    """Ranking signal for trending listings: ``votes + 2 * comments``."""
    return vote_count * HOT_SCORE_VOTE_WEIGHT + comment_count * HOT_SCORE_COMMENT_WEIGHT


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------
def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def service_today(now: datetime | None = None, tz: tzinfo = DEFAULT_TZ) -> date:
    """The calendar date of *now* in the service timezone."""
    if now is None:
        now = datetime.now(UTC)
    return as_utc(now).astimezone(tz).date()
