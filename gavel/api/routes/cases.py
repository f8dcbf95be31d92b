"""
gavel.api.routes.cases — Cases, votes, comments, replies
==========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, Field

from gavel.api.deps import ConfigDep, EngineDep, UserIdDep
from gavel.services import case_service, comment_service, vote_service

router = APIRouter(prefix="/cases", tags=["cases"])


class CaseCreate(BaseModel):
    title: str
    content: str = ""


class CaseUpdate(BaseModel):
    title: str | None = None
    content: str | None = None


class VoteCreate(BaseModel):
    vote: str


class CommentCreate(BaseModel):
    content: str
    vote: str | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
def create_case(body: CaseCreate, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    return case_service.create_case(
        engine,
        user_id,
        body.title,
        body.content,
        vote_window_hours=cfg.vote_window_hours,
        tz=cfg.tzinfo,
        max_attempts=cfg.transaction_max_attempts,
    )


@router.get("")
def list_cases(
    engine: EngineDep,
    status_filter: str | None = Query(None, alias="status"),
    order: str = Query("recent"),
    author_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
):
    """Case listings.  ``order=hot`` is the trending view."""
    return {
        "cases": case_service.list_cases(
            engine, status=status_filter, order=order, author_id=author_id, limit=limit,
        )
    }


@router.get("/{case_id}")
def get_case(case_id: str, engine: EngineDep):
    return case_service.get_case(engine, case_id)


@router.patch("/{case_id}")
def edit_case(case_id: str, body: CaseUpdate, user_id: UserIdDep, engine: EngineDep):
    return case_service.edit_case(
        engine, case_id, user_id, title=body.title, content=body.content,
    )


@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_case(case_id: str, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    case_service.delete_case(
        engine, case_id, user_id,
        tz=cfg.tzinfo, max_attempts=cfg.transaction_max_attempts,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Votes
# ---------------------------------------------------------------------------
@router.post("/{case_id}/votes", status_code=status.HTTP_201_CREATED)
def add_vote(case_id: str, body: VoteCreate, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep):
    vote_service.add_vote(
        engine,
        case_id,
        user_id,
        body.vote,
        tz=cfg.tzinfo,
        max_attempts=cfg.transaction_max_attempts,
    )
    return {"success": True}


@router.get("/{case_id}/votes/me")
def my_vote(case_id: str, user_id: UserIdDep, engine: EngineDep):
    return {"vote": vote_service.get_user_vote(engine, case_id, user_id)}


# ---------------------------------------------------------------------------
# Comments & replies
# ---------------------------------------------------------------------------
@router.get("/{case_id}/comments")
def list_comments(case_id: str, engine: EngineDep):
    return {"comments": comment_service.list_comments(engine, case_id)}


@router.post("/{case_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    case_id: str, body: CommentCreate, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep,
):
    comment_id = comment_service.add_comment(
        engine,
        case_id,
        user_id,
        body.content,
        vote=body.vote,
        tz=cfg.tzinfo,
        max_attempts=cfg.transaction_max_attempts,
    )
    return {"id": comment_id}


@router.patch("/{case_id}/comments/{comment_id}")
def edit_comment(
    case_id: str, comment_id: str, body: CommentUpdate, user_id: UserIdDep, engine: EngineDep,
):
    comment_service.edit_comment(engine, case_id, comment_id, user_id, body.content)
    return {"success": True}


@router.delete("/{case_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    case_id: str, comment_id: str, user_id: UserIdDep, engine: EngineDep, cfg: ConfigDep,
):
    comment_service.delete_comment(
        engine, case_id, comment_id, user_id,
        tz=cfg.tzinfo, max_attempts=cfg.transaction_max_attempts,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{case_id}/comments/{comment_id}/likes")
def like_comment(case_id: str, comment_id: str, user_id: UserIdDep, engine: EngineDep):
    comment_service.like_comment(engine, case_id, comment_id)
    return {"success": True}


@router.post("/{case_id}/comments/{comment_id}/replies", status_code=status.HTTP_201_CREATED)
def add_reply(
    case_id: str,
    comment_id: str,
    body: CommentCreate,
    user_id: UserIdDep,
    engine: EngineDep,
    cfg: ConfigDep,
):
    reply_id = comment_service.add_reply(
        engine,
        case_id,
        comment_id,
        user_id,
        body.content,
        vote=body.vote,
        tz=cfg.tzinfo,
        max_attempts=cfg.transaction_max_attempts,
    )
    return {"id": reply_id}


@router.patch("/{case_id}/comments/{comment_id}/replies/{reply_id}")
def edit_reply(
    case_id: str,
    comment_id: str,
    reply_id: str,
    body: CommentUpdate,
    user_id: UserIdDep,
    engine: EngineDep,
):
    comment_service.edit_reply(engine, case_id, comment_id, reply_id, user_id, body.content)
    return {"success": True}


@router.delete(
    "/{case_id}/comments/{comment_id}/replies/{reply_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_reply(
    case_id: str,
    comment_id: str,
    reply_id: str,
    user_id: UserIdDep,
    engine: EngineDep,
    cfg: ConfigDep,
):
    comment_service.delete_reply(
        engine, case_id, comment_id, reply_id, user_id,
        tz=cfg.tzinfo, max_attempts=cfg.transaction_max_attempts,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{case_id}/comments/{comment_id}/replies/{reply_id}/likes")
def like_reply(
    case_id: str, comment_id: str, reply_id: str, user_id: UserIdDep, engine: EngineDep,
):
    comment_service.like_reply(engine, case_id, comment_id, reply_id)
    return {"success": True}
