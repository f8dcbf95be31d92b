"""
gavel.services.mission_service — Exactly-Once Mission Rewards
==============================================================

``claim_reward`` runs as one optimistic transaction over the User row
(and, for LEVEL_3, one Case row):

    1. Load the user and compute the *effective* daily stats for today.
    2. LEVEL_0/1/2: condition unmet → FailedPrecondition; already
       claimed → AlreadyExists.
       LEVEL_3: pick the lowest-id eligible case (author = caller,
       CLOSED, hot_score > 0, not yet hot-listed) and flip
       ``is_hot_listed`` with a compare-and-swap UPDATE in the same
       transaction.  None left → FailedPrecondition.
    3. Add the reward, set the claim flag, write back the (possibly
       rolled-over) daily stats, append a PointHistory row.

Two concurrent claims for the same user collide on ``users.version``;
two LEVEL_3 claims for the same case collide on the CAS.  The loser is
rerun by :func:`run_transaction` and then sees the winner's state.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, tzinfo

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from gavel.constants import DEFAULT_TRANSACTION_ATTEMPTS, DEFAULT_TZ, service_today
from gavel.database.engine import WriteConflict, get_session, run_transaction
from gavel.database.models import Case, CaseStatus, PointHistory, PointHistoryType
from gavel.engine.daily_stats import effective_stats
from gavel.engine.missions import MISSION_RULES, parse_mission, rule_for
from gavel.errors import AlreadyExists, FailedPrecondition, InvalidArgument
from gavel.services.user_service import get_user_or_404, require_user_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClaimResult:
    success: bool
    message: str
    mission: str
    reward: int
    points: int
    case_id: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# LEVEL_3 helpers
# ---------------------------------------------------------------------------
def _eligible_cases(user_id: str):
    return select(Case.id).where(
        Case.author_id == user_id,
        Case.status == CaseStatus.CLOSED.value,
        Case.hot_score > 0,
        Case.is_hot_listed.is_(False),
    )


def _select_eligible_case(session: Session, user_id: str) -> str | None:
    return session.scalar(_eligible_cases(user_id).order_by(Case.id).limit(1))


def _take_eligible_case(session: Session, user_id: str) -> str:
    """Claim one eligible case for *user_id* inside the caller's transaction."""
    case_id = _select_eligible_case(session, user_id)
    if case_id is None:
        raise FailedPrecondition("No closed hot case is waiting for a reward.")
    result = session.execute(
        update(Case)
        .where(Case.id == case_id, Case.is_hot_listed.is_(False))
        .values(is_hot_listed=True),
        execution_options={"synchronize_session": False},
    )
    if result.rowcount != 1:
        raise WriteConflict(f"case {case_id} was hot-listed concurrently")
    return case_id


def count_eligible_cases(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(_eligible_cases(user_id).subquery())
    ) or 0


# ---------------------------------------------------------------------------
# ClaimReward
# ---------------------------------------------------------------------------
def claim_reward(
    engine: Engine,
    user_id: str | None,
    mission_type: str | None,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> ClaimResult:
    """Grant *mission_type*'s reward to *user_id* at most once.

    Raises
    ------
    Unauthenticated
        No caller identity.
    InvalidArgument
        Unknown mission type.
    NotFound
        The user does not exist.
    FailedPrecondition
        Condition unmet, or no eligible case for LEVEL_3.
    AlreadyExists
        Already claimed (today for LEVEL_1/2, ever for LEVEL_0).
    Internal
        Contention persisted past *max_attempts*.
    """
    user_id = require_user_id(user_id)
    try:
        mission = parse_mission(mission_type)
    except ValueError as exc:
        raise InvalidArgument(f"Unknown mission type: {mission_type!r}") from exc
    rule = rule_for(mission)
    today = service_today(now, tz)

    def _tx(session: Session) -> ClaimResult:
        user = get_user_or_404(session, user_id)
        stats = effective_stats(user, today)

        case_id = None
        if rule.per_case:
            case_id = _take_eligible_case(session, user_id)
        else:
            if not rule.is_met(stats):
                raise FailedPrecondition("Mission condition not met yet.")
            if rule.is_claimed(user, stats):
                raise AlreadyExists("Reward already claimed.")

        stats = rule.mark_claimed(user, stats)
        stats.apply_to(user)
        user.points += rule.reward
        session.add(PointHistory(
            user_id=user_id,
            type=PointHistoryType.EARN.value,
            amount=rule.reward,
            reason=rule.reason,
        ))
        session.flush()
        return ClaimResult(
            success=True,
            message=f"{rule.reward} points granted.",
            mission=mission.value,
            reward=rule.reward,
            points=user.points,
            case_id=case_id,
        )

    result = run_transaction(engine, _tx, max_attempts=max_attempts)
    logger.info(
        "Mission %s claimed by %s: +%d (balance %d)%s",
        mission.value, user_id, result.reward, result.points,
        f" case={result.case_id}" if result.case_id else "",
    )
    return result


# ---------------------------------------------------------------------------
# Mission board (read-only)
# ---------------------------------------------------------------------------
def get_mission_board(
    engine: Engine,
    user_id: str | None,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
) -> list[dict]:
    """Each mission's progress as it reads today, without writing anything."""
    user_id = require_user_id(user_id)
    today = service_today(now, tz)
    board: list[dict] = []
    with get_session(engine) as session:
        user = get_user_or_404(session, user_id)
        stats = effective_stats(user, today)
        for mission, rule in MISSION_RULES.items():
            entry = {
                "mission": mission.value,
                "description": rule.description,
                "reward": rule.reward,
            }
            if rule.per_case:
                eligible = count_eligible_cases(session, user_id)
                entry.update(progress=eligible, goal=1, met=eligible > 0,
                             claimed=False, eligible_cases=eligible)
            else:
                done, goal = rule.progress(stats)
                entry.update(progress=done, goal=goal, met=rule.is_met(stats),
                             claimed=rule.is_claimed(user, stats))
            board.append(entry)
    return board
