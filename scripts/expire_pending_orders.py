#!/usr/bin/env python3
"""Expire pending orders whose payment window has elapsed.

Intended to run from cron every few minutes. Each stale ``pending`` order is
moved to ``expired`` through the same conditional write the API uses, so an
order that gets paid while the sweep runs is left untouched and counted as a
conflict.

Exit status is ``0`` when every candidate was either expired or lost a race,
``1`` when at least one failed.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from datetime import timedelta
from pathlib import Path

# Ensure the ``orderdesk`` package is importable when running as a standalone script
BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from config import get_settings  # noqa: E402
from orderdesk.app.db import dispose_engine, session_scope  # noqa: E402
from orderdesk.app.obs.logging import configure_logging  # noqa: E402
from orderdesk.app.services import ExpirySummary, expire_stale_orders  # noqa: E402


async def sweep(minutes: int, limit: int = 500) -> ExpirySummary:
    """Expire pending orders older than ``minutes``.

    Parameters
    ----------
    minutes:
        Payment window; pending orders created before ``now - minutes`` expire.
    limit:
        Maximum number of orders handled in one run.
    """

    try:
        async with session_scope() as session:
            return await expire_stale_orders(
                session, timedelta(minutes=minutes), limit=limit
            )
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Move unpaid pending orders to expired"
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=settings.order_expiry_minutes,
        help=f"Payment window in minutes (default: {settings.order_expiry_minutes})",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=500,
        help="Maximum orders to expire in one run (default: 500)",
    )
    args = parser.parse_args(argv)
    if args.minutes < 1:
        parser.error("--minutes must be positive")

    configure_logging(settings.log_level.upper())
    summary = asyncio.run(sweep(args.minutes, args.limit))
    print(json.dumps(asdict(summary)))
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
