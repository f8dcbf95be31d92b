"""
gavel.worker.__main__ — Entry point for ``python -m gavel.worker``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Build the push sender (real Toss client or the logging stand-in).
5. Start the periodic loops and run until Ctrl+C or SIGTERM.

Run with::

    python -m gavel.worker
"""

from __future__ import annotations

import asyncio
import logging
import signal

from dotenv import load_dotenv

from gavel.config import load_config
from gavel.database.engine import create_db_engine, init_db
from gavel.services.push_service import build_push_sender
from gavel.worker.tasks import PeriodicTasks

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("gavel")


async def _run(tasks: PeriodicTasks) -> None:
    loop = asyncio.get_running_loop()
    stopping = asyncio.Event()
    try:
        loop.add_signal_handler(signal.SIGTERM, stopping.set)
    except NotImplementedError:
        pass  # Windows: Ctrl+C only

    tasks.start(loop)
    try:
        await stopping.wait()
    finally:
        tasks.stop()
    logger.info("Received SIGTERM, stopping periodic tasks")


def main() -> None:
    """Bootstrap and run the Gavel worker."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Service: %s (%s)", cfg.service_name, cfg.timezone)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Push notifications.
    push = build_push_sender(cfg.push)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Gavel worker…")
    try:
        asyncio.run(_run(PeriodicTasks(cfg, engine, push)))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")
    finally:
        push.close()
        engine.dispose()


if __name__ == "__main__":
    main()
