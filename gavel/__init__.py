"""
Gavel — Engagement Ledger & Reward Engine for a Community Consumer Court
=========================================================================
Users post disputes, the community votes guilty/innocent, comments accrue,
and members earn gavel points for daily and lifetime missions.  This
package owns the transactional core behind that loop: daily engagement
counters, exactly-once mission rewards, denormalized vote/comment counters
with a derived hot score, and the scheduled case lifecycle.

Package layout::

    gavel/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Rewards, thresholds, hot score weights
    ├── errors.py          # Error taxonomy shared by services and API
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, async bridge, run_transaction
    │   └── models.py      # ORM models (users, cases, votes, comments, …)
    ├── engine/
    │   ├── daily_stats.py # Lazy day-rollover of per-user counters
    │   ├── missions.py    # Mission rules (pure)
    │   └── change_feed.py # After-commit change triggers for cases
    ├── services/
    │   ├── user_service.py       # Bootstrap, profile, point history
    │   ├── stats_service.py      # Count / retract actions in daily stats
    │   ├── case_service.py       # Create and list cases
    │   ├── mission_service.py    # ClaimReward + mission board
    │   ├── vote_service.py       # AddVote
    │   ├── comment_service.py    # AddComment / AddReply / deletes / likes
    │   ├── hot_score_service.py  # Full hot score recompute
    │   ├── lifecycle_service.py  # Close expired cases + push fan-out
    │   ├── reconciliation_service.py  # Weekly counter drift repair
    │   └── push_service.py       # Toss messenger client
    ├── worker/
    │   ├── __main__.py    # python -m gavel.worker
    │   └── tasks.py       # Periodic asyncio loops
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # missions, cases, users, admin
"""

__version__ = "0.1.0"
