"""
gavel.api.routes.missions — Mission board & reward claims
===========================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from gavel.api.deps import ConfigDep, EngineDep, UserIdDep
from gavel.services.mission_service import claim_reward, get_mission_board

router = APIRouter(prefix="/missions", tags=["missions"])


@router.get("")
def mission_board(user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    """Every mission with today's progress and claim state."""
    return {"missions": get_mission_board(engine, user_id, tz=cfg.tzinfo)}


@router.post("/{mission_type}/claim")
def claim(mission_type: str, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    """Claim a mission reward.  Errors render as ``{"error": {...}}``."""
    result = claim_reward(
        engine,
        user_id,
        mission_type,
        tz=cfg.tzinfo,
        max_attempts=cfg.transaction_max_attempts,
    )
    return result.to_dict()
