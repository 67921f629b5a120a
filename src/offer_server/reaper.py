"""Idle-session reaper CLI — ``offer-reaper``.

Marks ``started`` / ``in_progress`` sessions with no activity for longer
than the idle threshold as ``abandoned``.  Intended for a cron job running
every few minutes.

Examples::

    # Use SESSION_IDLE_MINUTES (default 30)
    offer-reaper

    # Abandon sessions idle for more than 2 hours
    offer-reaper --idle-minutes 120
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from offer_funnel.constants import SESSION_IDLE_MINUTES

logger = logging.getLogger(__name__)


async def run_reaper(*, idle_minutes: int = SESSION_IDLE_MINUTES) -> int:
    """Abandon idle sessions and return the number of rows updated.

    Creates its own database session and commits.  Safe to call from a CLI
    entry point or a scheduled task.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from offer_db.engine import dispose_engine, session_scope
    from offer_db.repository import FunnelRepository

    repo = FunnelRepository()
    try:
        async with session_scope() as db:
            affected = await repo.abandon_idle_sessions(db, idle_minutes)
        logger.info(
            "Reaper complete: abandoned=%d, idle_minutes=%d", affected, idle_minutes,
        )
        return affected
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``offer-reaper``."""
    parser = argparse.ArgumentParser(
        prog="offer-reaper",
        description="Abandon offer sessions that have gone idle.",
    )
    parser.add_argument(
        "--idle-minutes",
        type=int,
        default=SESSION_IDLE_MINUTES,
        help="Idle threshold in minutes (default: $SESSION_IDLE_MINUTES, or 30)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args()

    if args.idle_minutes < 1:
        parser.error("--idle-minutes must be at least 1")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_reaper(idle_minutes=args.idle_minutes))
    print(f"Abandoned sessions: {affected}")
    sys.exit(0)
