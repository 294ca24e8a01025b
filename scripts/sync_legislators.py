#!/usr/bin/env python3
"""Upsert the legislator roster from the LY open-data feed.

Run this before the first score sync.

Usage::

    python scripts/sync_legislators.py             # every term
    python scripts/sync_legislators.py --term 11   # one term
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402

from ly_fantasy.db import init_db, make_engine, make_session_factory  # noqa: E402
from ly_fantasy.run_log import RunLogger  # noqa: E402
from ly_fantasy.store import Repository  # noqa: E402
from ly_fantasy.sync import sync_legislators  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync the legislator roster.")
    parser.add_argument("--term", default="all", help="Term number, or 'all' (default).")
    args = parser.parse_args()

    engine = make_engine()
    init_db(engine)
    session = make_session_factory(engine)()
    try:
        with RunLogger("legislators") as run:
            stats = asyncio.run(sync_legislators(Repository(session), select_term=args.term))
            run.meta["legislators"] = stats.to_dict()
    finally:
        session.close()

    console.print(
        f"[bold green]{stats.processed_count}[/] legislators synced, "
        f"[{'red' if stats.error_count else 'dim'}]{stats.error_count} errors[/]"
    )
    for message in stats.errors[:20]:
        console.print(f"  [red]{message}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
