#!/usr/bin/env python3
"""Run score syncs from the command line.

Same work as ``GET /api/refresh-data`` without the HTTP layer.  Every run is
appended to the run log.

Usage::

    python scripts/sync_scores.py                         # everything
    python scripts/sync_scores.py --type propose --limit 20
    python scripts/sync_scores.py --type propose --name 王小明
    python scripts/sync_scores.py --type rollcall --rollcall-limit 50 --rollcall-offset 100
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from ly_fantasy.db import init_db, make_engine, make_session_factory  # noqa: E402
from ly_fantasy.models import SyncStats  # noqa: E402
from ly_fantasy.run_log import RunLogger  # noqa: E402
from ly_fantasy.store import Repository  # noqa: E402
from ly_fantasy.sync import (  # noqa: E402
    SYNC_TYPES,
    sync_all,
    sync_cosign_scores,
    sync_propose_scores,
    sync_written_interpellation_scores,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()

_BY_NAME = {
    "propose": sync_propose_scores,
    "cosign": sync_cosign_scores,
    "written_interpellation": sync_written_interpellation_scores,
}


async def _run(repo: Repository, args: argparse.Namespace) -> dict[str, dict]:
    if args.name:
        if args.type not in _BY_NAME:
            raise SystemExit(f"--name only works with: {', '.join(_BY_NAME)}")
        stats: SyncStats = await _BY_NAME[args.type](repo, legislator_name=args.name)
        return {args.type: stats.to_dict()}
    return await sync_all(
        repo,
        args.type,
        limit=args.limit,
        offset=args.offset,
        rollcall_limit=args.rollcall_limit,
        rollcall_offset=args.rollcall_offset,
    )


def _print_summary(results: dict[str, dict], elapsed: float) -> None:
    table = Table(title="Sync Complete", show_lines=True, title_style="bold green")
    table.add_column("Type", style="bold")
    table.add_column("Processed", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Errors", justify="right")
    for sync_type, summary in results.items():
        errors = summary.get("error_count", 0)
        table.add_row(
            sync_type,
            str(summary.get("processed_count", 0)),
            str(summary.get("total_scores_created", 0)),
            f"[red]{errors}[/]" if errors else "0",
        )
    console.print(table)
    for sync_type, summary in results.items():
        for message in summary.get("errors", [])[:10]:
            console.print(f"  [dim]{sync_type}[/] [red]{message}[/]")
    console.print(f"[dim]Total time: {elapsed:.1f}s[/]")


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync legislator scores from LY feeds.")
    parser.add_argument("--type", default="all", choices=["all", *SYNC_TYPES])
    parser.add_argument("--name", default=None, help="Only this legislator (Chinese name).")
    parser.add_argument("--limit", type=int, default=None, help="Legislators per run.")
    parser.add_argument("--offset", type=int, default=None, help="Skip this many legislators.")
    parser.add_argument("--rollcall-limit", type=int, default=None)
    parser.add_argument("--rollcall-offset", type=int, default=None)
    args = parser.parse_args()

    engine = make_engine()
    init_db(engine)
    session = make_session_factory(engine)()
    t0 = time.perf_counter()
    try:
        with RunLogger(f"script:{args.type}") as run:
            with run.phase("sync", detail=args.type):
                results = asyncio.run(_run(Repository(session), args))
            run.meta.update(results)
    finally:
        session.close()

    _print_summary(results, time.perf_counter() - t0)
    return 1 if any(r.get("error_count") for r in results.values()) else 0


if __name__ == "__main__":
    sys.exit(main())
