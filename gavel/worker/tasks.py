"""
gavel.worker.tasks — Periodic Background Tasks
================================================

Scheduled jobs that run as asyncio loops in the worker process:

- **Close expired cases**: every ``close_interval_minutes`` (default 10),
  closes OPEN cases whose vote window ended and pushes the authors.
- **Counter reconciliation**: every ``reconcile_interval_hours``
  (default 168 = weekly), repairs drift in case counters.

Each tick runs via ``run_db()`` so the event loop is never blocked.  A
failed tick is logged and the loop keeps going; the next tick retries.
Overlapping ticks are harmless because closing only ever matches OPEN
cases.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import Engine

from gavel.config import GavelConfig
from gavel.database.engine import run_db
from gavel.services.lifecycle_service import close_expired_cases
from gavel.services.push_service import PushSender
from gavel.services.reconciliation_service import reconcile_case_counters

logger = logging.getLogger(__name__)


class PeriodicTasks:
    """Owns the worker's background loops."""

    def __init__(self, cfg: GavelConfig, engine: Engine, push: PushSender) -> None:
        self.cfg = cfg
        self.engine = engine
        self.push = push
        self._tasks: list[asyncio.Task] = []

    # -------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------
    async def close_expired_once(self) -> dict | None:
        """Close expired cases and notify authors."""
        try:
            result = await run_db(
                close_expired_cases,
                self.engine,
                self.push,
                public_base_url=self.cfg.public_base_url,
                title=self.cfg.push.title,
                max_attempts=self.cfg.transaction_max_attempts,
            )
        except Exception:
            logger.exception("Close-expired task failed", extra={"task": "close_expired"})
            return None
        if result["closed"]:
            logger.info(
                "Close-expired task complete: closed=%d notified=%d failed=%d",
                result["closed"], result["notified"], result["failed"],
            )
        return result

    async def reconcile_once(self) -> dict | None:
        """Validate case counters against raw rows and fix drift."""
        try:
            result = await run_db(reconcile_case_counters, self.engine)
        except Exception:
            logger.exception("Reconciliation task failed", extra={"task": "reconciliation"})
            return None
        logger.info(
            "Reconciliation task complete: checked=%d corrected=%d",
            result["checked"], result["corrected"],
        )
        return result

    # -------------------------------------------------------------------
    # Loop management
    # -------------------------------------------------------------------
    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start every loop.  The first close tick fires immediately."""
        if self._tasks:
            return

        def _every(
            seconds: float, tick: Callable[[], Awaitable], *, initial_delay: float = 0,
        ) -> Callable[[], Awaitable[None]]:
            async def _loop() -> None:
                if initial_delay:
                    await asyncio.sleep(initial_delay)
                while True:
                    await tick()
                    await asyncio.sleep(seconds)
            return _loop

        close_every = self.cfg.close_interval_minutes * 60
        reconcile_every = self.cfg.reconcile_interval_hours * 3600

        self._tasks = [
            loop.create_task(
                _every(close_every, self.close_expired_once)(), name="close-expired",
            ),
            loop.create_task(
                _every(reconcile_every, self.reconcile_once, initial_delay=reconcile_every)(),
                name="reconcile-counters",
            ),
        ]
        logger.info(
            "Periodic tasks started: close every %d min, reconcile every %d h",
            self.cfg.close_interval_minutes, self.cfg.reconcile_interval_hours,
        )

    def stop(self) -> None:
        """Cancel every loop."""
        for task in self._tasks:
            task.cancel()
        self._tasks = []
