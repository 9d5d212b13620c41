"""Region quota CLI — ``survey-quotas``.

Connects to the database and initialises or inspects the per-region
counters.  ``init`` is safe to run on every deploy: it creates missing
rows at zero and refreshes limits, but never resets a live count.

Examples::

    # Upsert limits from $REGION_QUOTAS (or the built-in defaults)
    survey-quotas init

    # Override limits on the command line
    survey-quotas init --quota north=15 --quota central=6

    # Print current counters
    survey-quotas show
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from survey_server.config import parse_region_quotas

logger = logging.getLogger(__name__)


async def run_init(limits: dict[str, int]) -> dict[str, int]:
    """Upsert the given limits and commit.  Returns the limits applied."""
    # Lazy imports to avoid loading DB machinery at module import time
    from survey_db.engine import dispose_engine, get_session_factory
    from survey_engine.quota import RegionQuotaManager

    manager = RegionQuotaManager()
    factory = get_session_factory()
    try:
        async with factory() as db:
            await manager.initialize(db, limits)
            await db.commit()
        return limits
    finally:
        await dispose_engine()


async def run_show() -> list[tuple[str, int, int]]:
    """Return ``(region, current_count, max_quota)`` for every region."""
    from survey_db.engine import dispose_engine, get_session_factory
    from survey_engine.quota import RegionQuotaManager

    manager = RegionQuotaManager()
    factory = get_session_factory()
    try:
        async with factory() as db:
            statuses = await manager.list_status(db)
        return [(s.region, s.current_count, s.max_quota) for s in statuses]
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``survey-quotas``."""
    parser = argparse.ArgumentParser(
        prog="survey-quotas",
        description="Initialise or inspect per-region participant quotas.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Upsert quota limits (live counts are kept)")
    init.add_argument(
        "--quota",
        action="append",
        default=None,
        metavar="REGION=N",
        help="Limit for one region (repeatable). Default: $REGION_QUOTAS",
    )

    sub.add_parser("show", help="Print current counters")

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

    if args.command == "init":
        raw = ",".join(args.quota) if args.quota else os.getenv("REGION_QUOTAS")
        try:
            limits = parse_region_quotas(raw)
        except ValueError as exc:
            parser.error(str(exc))
        applied = asyncio.run(run_init(limits))
        for region, limit in sorted(applied.items()):
            print(f"{region}: max_quota={limit}")
    else:
        rows = asyncio.run(run_show())
        if not rows:
            print("No quota rows; run `survey-quotas init` first")
        for region, current, maximum in rows:
            print(f"{region}: {current}/{maximum}")

    sys.exit(0)
