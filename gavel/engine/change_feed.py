"""
gavel.engine.change_feed — After-Commit Change Notifications for Cases
=======================================================================

Whenever a vote, comment, or reply row is created or deleted, subscribers
(the hot score recompute) must hear about the parent case.  Delivery is
**after commit** and **at-least-once-ish**: a rolled-back transaction
publishes nothing, and a handler may see the same case more than once, so
handlers must be idempotent (full recompute, never a delta).

How it works:
    1. A Session ``after_flush`` listener collects a :class:`CaseChange`
       for each Vote / Comment / Reply in ``session.new`` or
       ``session.deleted`` into ``session.info``.
    2. ``after_commit`` hands the collected changes to the
       :class:`ChangeFeed` attached to the session's engine.
    3. ``after_rollback`` discards them.
    4. The feed delivers on its executor (API / worker) or queues them
       until :meth:`ChangeFeed.drain` is called (tests, scripts).

Usage::

    feed = ChangeFeed(executor=ThreadPoolExecutor(max_workers=2))
    feed.subscribe(lambda change: recompute_hot_score(engine, change.case_id))
    attach_feed(engine, feed)
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from dataclasses import dataclass

from sqlalchemy import Engine, event
from sqlalchemy.orm import Session

from gavel.database.models import Comment, Reply, Vote

logger = logging.getLogger(__name__)

_INFO_KEY = "gavel.case_changes"

# Model → subcollection name reported to handlers
_SOURCES: dict[type, str] = {
    Vote: "votes",
    Comment: "comments",
    Reply: "replies",
}


@dataclass(frozen=True, slots=True)
class CaseChange:
    case_id: str
    source: str    # "votes" | "comments" | "replies"
    action: str    # "created" | "deleted"


Handler = Callable[[CaseChange], None]


class ChangeFeed:
    """Fan-out of committed :class:`CaseChange` events to handlers.

    With an *executor* each change is delivered on a worker thread as soon
    as it is published.  Without one, changes queue until :meth:`drain`.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._handlers: list[Handler] = []
        self._pending: deque[CaseChange] = deque()
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> None:
        with self._lock:
            self._handlers.append(handler)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def publish(self, changes: Iterable[CaseChange]) -> None:
        """Queue or dispatch one commit's changes, one per case."""
        seen: set[str] = set()
        unique: list[CaseChange] = []
        for change in changes:
            if change.case_id in seen:
                continue
            seen.add(change.case_id)
            unique.append(change)

        for change in unique:
            if self._executor is not None:
                self._executor.submit(self._deliver, change)
            else:
                self._pending.append(change)

    def drain(self) -> int:
        """Deliver every queued change inline.  Returns how many were delivered."""
        delivered = 0
        while self._pending:
            change = self._pending.popleft()
            self._deliver(change)
            delivered += 1
        return delivered

    def close(self) -> None:
        """Finish in-flight deliveries and stop the executor.

        Later publishes queue for :meth:`drain` instead.
        """
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _deliver(self, change: CaseChange) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(change)
            except Exception:
                logger.exception(
                    "Change handler failed for case %s (%s %s)",
                    change.case_id, change.source, change.action,
                )


# ---------------------------------------------------------------------------
# Engine → feed registry
# ---------------------------------------------------------------------------
_FEEDS: dict[Engine, ChangeFeed] = {}
_FEEDS_LOCK = threading.Lock()


def attach_feed(engine: Engine, feed: ChangeFeed) -> ChangeFeed:
    with _FEEDS_LOCK:
        _FEEDS[engine] = feed
    return feed


def detach_feed(engine: Engine) -> None:
    with _FEEDS_LOCK:
        _FEEDS.pop(engine, None)


def feed_for(engine: Engine | None) -> ChangeFeed | None:
    if engine is None:
        return None
    with _FEEDS_LOCK:
        return _FEEDS.get(engine)


# ---------------------------------------------------------------------------
# Session listeners
# ---------------------------------------------------------------------------
def _changes_of(objects: Iterable[object], action: str) -> list[CaseChange]:
    out: list[CaseChange] = []
    for obj in objects:
        source = _SOURCES.get(type(obj))
        if source is not None and obj.case_id:
            out.append(CaseChange(case_id=obj.case_id, source=source, action=action))
    return out


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, flush_context) -> None:
    changes = _changes_of(session.new, "created") + _changes_of(session.deleted, "deleted")
    if changes:
        session.info.setdefault(_INFO_KEY, []).extend(changes)


@event.listens_for(Session, "after_commit")
def _publish_changes(session: Session) -> None:
    changes = session.info.pop(_INFO_KEY, None)
    if not changes:
        return
    feed = feed_for(session.bind)
    if feed is None:
        logger.debug("No change feed attached; dropping %d change(s)", len(changes))
        return
    feed.publish(changes)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session: Session) -> None:
    session.info.pop(_INFO_KEY, None)
