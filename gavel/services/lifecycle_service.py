"""
gavel.services.lifecycle_service — Closing Expired Cases
=========================================================

One scheduler tick:

    1. Query every case with ``status = OPEN`` and ``vote_end_at <= now``.
    2. Nothing found → no-op.
    3. Close them all in one transaction.  The UPDATE keeps the
       ``status = OPEN`` guard, so overlapping ticks never double-close and
       nothing ever moves a case back to OPEN.
    4. After the commit, send one push per closed case that has an
       author.  Each send is isolated; a failure is logged and counted.

A crash between step 3 and step 4 loses that tick's notifications: the
next tick only selects OPEN cases.  That gap is accepted.

A query failure is logged and the tick returns an all-zero summary; the
next tick retries from scratch.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import SQLAlchemyError

from gavel.constants import DEFAULT_PUSH_TITLE, DEFAULT_TRANSACTION_ATTEMPTS, as_utc
from gavel.database.engine import get_session, run_transaction
from gavel.database.models import Case, CaseStatus
from gavel.errors import GavelError
from gavel.services.push_service import PushSender

logger = logging.getLogger(__name__)


def _empty_summary() -> dict:
    return {"found": 0, "closed": 0, "notified": 0, "failed": 0}


def find_expired_cases(engine: Engine, now: datetime) -> list[tuple[str, str | None]]:
    """``(case_id, author_id)`` for every OPEN case whose vote window ended."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Case.id, Case.author_id)
            .where(Case.status == CaseStatus.OPEN.value, Case.vote_end_at <= now)
            .order_by(Case.vote_end_at, Case.id)
        ).all()
    return [(row.id, row.author_id) for row in rows]


def notify_case_closed(
    push: PushSender,
    case_id: str,
    author_id: str,
    *,
    public_base_url: str,
    title: str,
) -> bool:
    """Tell *author_id* their case closed.  Never raises."""
    context = {
        "title": title,
        "caseId": case_id,
        "url": f"{public_base_url.rstrip('/')}/cases/{case_id}",
    }
    try:
        return bool(push.send(author_id, context))
    except Exception:
        logger.exception("Push for case %s to %s raised", case_id, author_id)
        return False


def close_expired_cases(
    engine: Engine,
    push: PushSender,
    *,
    now: datetime | None = None,
    public_base_url: str = "",
    title: str = DEFAULT_PUSH_TITLE,
    max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS,
) -> dict:
    """Run one scheduler tick.

    Returns ``{"found", "closed", "notified", "failed"}``.
    """
    now = as_utc(now or datetime.now(UTC))
    summary = _empty_summary()

    try:
        expired = find_expired_cases(engine, now)
    except SQLAlchemyError:
        logger.exception("Expired-case query failed; skipping this tick")
        return summary

    if not expired:
        logger.debug("No expired cases to close.")
        return summary
    summary["found"] = len(expired)

    ids = [case_id for case_id, _ in expired]

    def _tx(session) -> set[str]:
        closed = session.scalars(
            update(Case)
            .where(Case.id.in_(ids), Case.status == CaseStatus.OPEN.value)
            .values(status=CaseStatus.CLOSED.value)
            .returning(Case.id),
            execution_options={"synchronize_session": False},
        ).all()
        return set(closed)

    try:
        closed_ids = run_transaction(engine, _tx, max_attempts=max_attempts)
    except GavelError:
        logger.exception("Closing %d expired case(s) failed; nothing closed", len(ids))
        return summary
    summary["closed"] = len(closed_ids)
    logger.info("Closed %d case(s): %s", len(closed_ids), sorted(closed_ids))

    for case_id, author_id in expired:
        if case_id not in closed_ids or not author_id:
            continue
        if notify_case_closed(
            push, case_id, author_id, public_base_url=public_base_url, title=title,
        ):
            summary["notified"] += 1
        else:
            summary["failed"] += 1

    if summary["failed"]:
        logger.warning(
            "Close notifications: %d sent, %d failed", summary["notified"], summary["failed"]
        )
    return summary
