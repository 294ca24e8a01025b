#!/usr/bin/env python3
"""Rebuild a league's round-robin schedule.

Deletes the league's matchups and writes a fresh schedule for its current
teams.  Scores and records are left alone; run ``update_standings.py``
afterwards.

Usage::

    python scripts/regenerate_schedule.py LEAGUE_ID
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
from ly_fantasy.errors import LYFantasyError  # noqa: E402
from ly_fantasy.matchups import generate_round_robin_schedule  # noqa: E402
from ly_fantasy.store import Repository  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s:     %(message)s")

console = Console()


def main() -> int:
    parser = argparse.ArgumentParser(description="Regenerate a league's matchup schedule.")
    parser.add_argument("league_id")
    args = parser.parse_args()

    engine = make_engine()
    init_db(engine)
    session = make_session_factory(engine)()
    try:
        repo = Repository(session)
        try:
            matchups = generate_round_robin_schedule(repo, args.league_id)
        except LYFantasyError as e:
            console.print(f"[red]{e}[/]")
            return 1
        names = {team.id: team.name for team in repo.teams_in_league(args.league_id)}
    finally:
        session.close()

    table = Table(title="Schedule", title_style="bold green")
    table.add_column("Week", justify="right")
    table.add_column("Home")
    table.add_column("Away")
    for m in matchups:
        away = names.get(m.team2_id, "?") if m.team2_id else "[dim]BYE[/]"
        table.add_row(str(m.week), names.get(m.team1_id, "?"), away)
    console.print(table)
    return 0


if __name__ == "__main__":
    sys.exit(main())
