"""
gavel.engine.missions — Mission Rules
======================================

Handler-registry of mission definitions.  Each :class:`MissionType` maps to
a :class:`MissionRule` holding its reward, the threshold check against the
effective daily stats, and how its claimed flag is read and set.

LEVEL_3 is per-case rather than per-user: it has no claim flag and its
condition is "an eligible case exists", which only the database can answer,
so :attr:`MissionRule.per_case` tells the service to resolve it there.

This module is pure calculation with no database I/O.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from gavel.constants import (
    LEVEL0_REWARD,
    LEVEL1_REWARD,
    LEVEL1_VOTE_THRESHOLD,
    LEVEL2_COMMENT_THRESHOLD,
    LEVEL2_REWARD,
    LEVEL3_REWARD,
    MISSION_REASON_PREFIX,
)
from gavel.database.models import MissionType
from gavel.engine.daily_stats import DailyStats

if TYPE_CHECKING:
    from gavel.database.models import User


# ---------------------------------------------------------------------------
# Condition handlers: pure functions (stats) → bool
# ---------------------------------------------------------------------------
def _check_level0(stats: DailyStats) -> bool:
    return stats.vote_count >= 1 and stats.comment_count >= 1 and stats.post_count >= 1


def _check_level1(stats: DailyStats) -> bool:
    return stats.vote_count >= LEVEL1_VOTE_THRESHOLD


def _check_level2(stats: DailyStats) -> bool:
    return stats.comment_count >= LEVEL2_COMMENT_THRESHOLD


def _progress_level0(stats: DailyStats) -> tuple[int, int]:
    done = sum(1 for n in (stats.vote_count, stats.comment_count, stats.post_count) if n >= 1)
    return done, 3


def _progress_level1(stats: DailyStats) -> tuple[int, int]:
    return min(stats.vote_count, LEVEL1_VOTE_THRESHOLD), LEVEL1_VOTE_THRESHOLD


def _progress_level2(stats: DailyStats) -> tuple[int, int]:
    return min(stats.comment_count, LEVEL2_COMMENT_THRESHOLD), LEVEL2_COMMENT_THRESHOLD


# ---------------------------------------------------------------------------
# Rule definition
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MissionRule:
    mission: MissionType
    reward: int
    description: str
    condition: Callable[[DailyStats], bool] | None = None
    progress: Callable[[DailyStats], tuple[int, int]] | None = None
    # "user" → flag on User, "daily" → flag in DailyStats, None → per case
    flag_scope: str | None = None
    flag_name: str | None = None

    @property
    def per_case(self) -> bool:
        return self.condition is None

    @property
    def reason(self) -> str:
        return f"{MISSION_REASON_PREFIX}{self.mission.value}"

    def is_met(self, stats: DailyStats) -> bool:
        if self.condition is None:
            raise ValueError(f"{self.mission} is resolved per case, not from stats")
        return self.condition(stats)

    def is_claimed(self, user: User, stats: DailyStats) -> bool:
        if self.flag_scope == "user":
            return bool(getattr(user, self.flag_name))
        if self.flag_scope == "daily":
            return bool(getattr(stats, self.flag_name))
        return False

    def mark_claimed(self, user: User, stats: DailyStats) -> DailyStats:
        """Set the claim flag; returns the (possibly updated) daily stats."""
        if self.flag_scope == "user":
            setattr(user, self.flag_name, True)
        elif self.flag_scope == "daily":
            return replace(stats, **{self.flag_name: True})
        return stats


MISSION_RULES: dict[MissionType, MissionRule] = {
    MissionType.LEVEL_0: MissionRule(
        mission=MissionType.LEVEL_0,
        reward=LEVEL0_REWARD,
        description="Vote, comment and post a case on the same day (once per account)",
        condition=_check_level0,
        progress=_progress_level0,
        flag_scope="user",
        flag_name="is_level0_claimed",
    ),
    MissionType.LEVEL_1: MissionRule(
        mission=MissionType.LEVEL_1,
        reward=LEVEL1_REWARD,
        description=f"Cast {LEVEL1_VOTE_THRESHOLD} votes today",
        condition=_check_level1,
        progress=_progress_level1,
        flag_scope="daily",
        flag_name="is_level1_claimed",
    ),
    MissionType.LEVEL_2: MissionRule(
        mission=MissionType.LEVEL_2,
        reward=LEVEL2_REWARD,
        description=f"Write {LEVEL2_COMMENT_THRESHOLD} comments today",
        condition=_check_level2,
        progress=_progress_level2,
        flag_scope="daily",
        flag_name="is_level2_claimed",
    ),
    MissionType.LEVEL_3: MissionRule(
        mission=MissionType.LEVEL_3,
        reward=LEVEL3_REWARD,
        description="Have a closed case make the hot list",
    ),
}


def parse_mission(raw: str | None) -> MissionType:
    """Parse a client-supplied mission id; raises ValueError on unknown values."""
    if not raw:
        raise ValueError("mission type is required")
    return MissionType(raw.strip().upper())


def rule_for(mission: MissionType) -> MissionRule:
    return MISSION_RULES[mission]
