"""Offer import CLI — ``offer-seed``.

Loads every ``*.yaml`` offer from a directory, reports authoring issues,
and replaces the offers' rows in ``offer_steps``.

Examples::

    # Import all offers from $SERVER_OFFER_DIR (or offers/ at the repo root)
    offer-seed

    # Import one offer from a custom directory
    offer-seed --offer-dir ./my-offers --offer solar-quote

    # Only report issues, do not touch the database
    offer-seed --check
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from offer_funnel.offers import OfferStore, find_offer_issues

from offer_server.config import load_settings

logger = logging.getLogger(__name__)


def check_offers(store: OfferStore, offer_ids: list[str] | None = None) -> dict[str, list[str]]:
    """Return ``{offer_id: issues}`` for the selected offers (all by default)."""
    ids = offer_ids or sorted(store.offers)
    return {offer_id: find_offer_issues(store.get_steps(offer_id)) for offer_id in ids}


async def run_seed(
    store: OfferStore,
    *,
    offer_ids: list[str] | None = None,
) -> dict[str, int]:
    """Write the selected offers' steps to the database.

    Returns ``{offer_id: step_count}``.  All offers are written in one
    transaction.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from offer_db.engine import dispose_engine, session_scope
    from offer_db.repository import FunnelRepository
    from offer_db.storage import step_to_row

    repo = FunnelRepository()
    ids = offer_ids or sorted(store.offers)
    written: dict[str, int] = {}
    try:
        async with session_scope() as db:
            for offer_id in ids:
                steps = store.get_steps(offer_id)
                await repo.replace_steps(db, offer_id, [step_to_row(s) for s in steps])
                written[offer_id] = len(steps)
                logger.info("Seeded offer %s (%d steps)", offer_id, len(steps))
        return written
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``offer-seed``."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        prog="offer-seed",
        description="Import YAML offer definitions into the database.",
    )
    parser.add_argument(
        "--offer-dir",
        default=settings.offer_dir,
        help="Directory of offer YAML files (default: $SERVER_OFFER_DIR, or offers/)",
    )
    parser.add_argument(
        "--offer",
        action="append",
        default=None,
        help="Only import this offer id (repeatable)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        default=False,
        help="Report authoring issues and exit without writing",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    store = OfferStore(args.offer_dir)
    store.load()

    unknown = [o for o in args.offer or [] if o not in store.offers]
    if unknown:
        parser.error(f"Unknown offer id(s): {', '.join(unknown)}")

    if args.check:
        report = check_offers(store, args.offer)
        for offer_id, issues in report.items():
            print(f"{offer_id}: {len(issues)} issue(s)")
            for issue in issues:
                print(f"  - {issue}")
        sys.exit(1 if any(report.values()) else 0)

    written = asyncio.run(run_seed(store, offer_ids=args.offer))
    for offer_id, count in written.items():
        print(f"{offer_id}: {count} steps")
    sys.exit(0)
