"""
gavel.services.vote_service — Casting Verdicts
===============================================

One vote per (case, user), never changed or retracted.  The vote row, the
case's guilty/innocent counter, and the voter's daily stats all commit in
one transaction.  The hot score is not touched here; the change feed
recomputes it after commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError

from gavel.constants import DEFAULT_TRANSACTION_ATTEMPTS, DEFAULT_TZ, service_today
from gavel.database.engine import get_session, run_transaction
from gavel.database.models import Case, CaseStatus, Vote, VoteType
from gavel.engine.daily_stats import ActivityKind
from gavel.errors import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound
from gavel.services.stats_service import record_activity
from gavel.services.user_service import get_user_or_404, require_user_id

logger = logging.getLogger(__name__)


def parse_vote(raw: str | None) -> VoteType:
    try:
        return VoteType((raw or "").strip().lower())
    except ValueError as exc:
        raise InvalidArgument("vote must be 'guilty' or 'innocent'.") from exc


def add_vote(
    engine: Engine,
    case_id: str,
    user_id: str,
    vote: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_TZ,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> None:
    """Record *user_id*'s verdict on *case_id*.

    Raises
    ------
    AlreadyExists
        The user already voted on this case.
    NotFound
        The case or the user does not exist.
    FailedPrecondition
        The case is already closed.
    """
    user_id = require_user_id(user_id)
    vote_type = parse_vote(vote)
    today = service_today(now, tz)
    counter = Case.guilty_count if vote_type is VoteType.GUILTY else Case.innocent_count

    def _tx(session) -> None:
        if session.get(Vote, (case_id, user_id)) is not None:
            raise AlreadyExists("You already voted on this case.")
        status = session.scalar(select(Case.status).where(Case.id == case_id))
        if status is None:
            raise NotFound("Case not found.")
        if status != CaseStatus.OPEN.value:
            raise FailedPrecondition("Voting on this case has ended.")
        voter = get_user_or_404(session, user_id)

        session.add(Vote(case_id=case_id, user_id=user_id, vote=vote_type.value))
        try:
            session.flush()
        except IntegrityError as exc:
            # A concurrent vote by the same user won the insert
            raise AlreadyExists("You already voted on this case.") from exc

        session.execute(
            update(Case)
            .where(Case.id == case_id)
            .values({counter: counter + 1}),
            execution_options={"synchronize_session": False},
        )
        record_activity(voter, ActivityKind.VOTE, today)

    run_transaction(engine, _tx, max_attempts=max_attempts)
    logger.debug("Vote %s on case %s by %s", vote_type.value, case_id, user_id)


def get_user_vote(engine: Engine, case_id: str, user_id: str) -> str | None:
    """The caller's verdict on *case_id*, or None if they have not voted."""
    user_id = require_user_id(user_id)
    with get_session(engine) as session:
        return session.scalar(
            select(Vote.vote).where(Vote.case_id == case_id, Vote.user_id == user_id)
        )
