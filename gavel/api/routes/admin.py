"""
gavel.api.routes.admin — Manual triggers for scheduled jobs
=============================================================

The worker runs these on a timer; the endpoints let an operator run a
tick on demand.  Both are safe to call while the worker is running.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from gavel.api.deps import ConfigDep, EngineDep, get_current_admin, get_push_sender
from gavel.services.lifecycle_service import close_expired_cases
from gavel.services.push_service import PushSender
from gavel.services.reconciliation_service import reconcile_case_counters

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("/jobs/close-expired")
def run_close_expired(
    engine: EngineDep,
    cfg: ConfigDep,
    push: Annotated[PushSender, Depends(get_push_sender)],
):
    return close_expired_cases(
        engine,
        push,
        public_base_url=cfg.public_base_url,
        title=cfg.push.title,
        max_attempts=cfg.transaction_max_attempts,
    )


@router.post("/jobs/reconcile")
def run_reconcile(engine: EngineDep):
    return reconcile_case_counters(engine)
