#!/usr/bin/env python3
"""Score a league's matchups and recompute team records.

Usage::

    python scripts/update_standings.py LEAGUE_ID            # every finished week
    python scripts/update_standings.py LEAGUE_ID --week 4   # weeks 1-4
    python scripts/update_standings.py LEAGUE_ID --force    # rescore scored weeks too
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from ly_fantasy.db import init_db, make_engine, make_session_factory  # noqa: E402
from ly_fantasy.errors import NotFoundError  # noqa: E402
from ly_fantasy.matchups import update_league_standings  # noqa: E402
from ly_fantasy.store import Repository  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s:     %(message)s")

console = Console()


def main() -> int:
    parser = argparse.ArgumentParser(description="Update league standings.")
    parser.add_argument("league_id")
    parser.add_argument("--week", type=int, default=None, help="Score weeks 1..WEEK only.")
    parser.add_argument(
        "--force", action="store_true", help="Rescore matchups that already have a score."
    )
    args = parser.parse_args()

    engine = make_engine()
    init_db(engine)
    session = make_session_factory(engine)()
    try:
        try:
            teams = update_league_standings(
                Repository(session), args.league_id, args.week, force=args.force
            )
        except NotFoundError as e:
            console.print(f"[red]{e}[/]")
            return 1

        table = Table(title="Standings", show_lines=True, title_style="bold green")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Team", style="bold")
        table.add_column("W", justify="right")
        table.add_column("L", justify="right")
        table.add_column("T", justify="right")
        for rank, team in enumerate(teams, 1):
            table.add_row(str(rank), team.name, str(team.wins), str(team.losses), str(team.ties))
        console.print(table)
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
