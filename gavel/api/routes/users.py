"""
gavel.api.routes.users — The caller's profile and point ledger
================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from gavel.api.deps import ConfigDep, EngineDep, UserIdDep
from gavel.services.user_service import ensure_user, get_profile, list_point_history

router = APIRouter(prefix="/me", tags=["users"])


class SignupBody(BaseModel):
    nickname: str | None = None


@router.post("")
def register(body: SignupBody, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    """Create the caller's user row on first login (idempotent)."""
    ensure_user(engine, user_id, body.nickname, prefix=cfg.nickname_prefix)
    return get_profile(engine, user_id, tz=cfg.tzinfo)


@router.get("")
def me(user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    return get_profile(engine, user_id, tz=cfg.tzinfo)


@router.get("/point-history")
def point_history(
    user_id: UserIdDep,
    engine: EngineDep,
    limit: int = Query(50, ge=1, le=200),
):
    return {"entries": list_point_history(engine, user_id, limit=limit)}
