#!/usr/bin/env python3
"""Terminal view of the run log: cron refreshes, script syncs, roster syncs.

Usage:
    python scripts/log_dashboard.py                  # last 20 runs
    python scripts/log_dashboard.py --tail 50
    python scripts/log_dashboard.py --task refresh   # refresh:* only
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from ly_fantasy.run_log import get_log_path, load_recent_runs  # noqa: E402

console = Console()


def _t(s: str) -> str:
    """Shorten an ISO timestamp to ``MM/DD HH:MM``."""
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).strftime("%m/%d %H:%M")
    except ValueError:
        return s[:16]


def _fmt_dur(s: float | None) -> str:
    if s is None:
        return "-"
    if s >= 60:
        return f"{s / 60:.1f}m"
    return f"{s:.1f}s"


def main() -> int:
    parser = argparse.ArgumentParser(description="View the sync run log.")
    parser.add_argument("--tail", "-n", type=int, default=20, help="Runs to show (default: 20).")
    parser.add_argument("--task", default=None, help="Only tasks starting with this prefix.")
    args = parser.parse_args()

    path = get_log_path()
    runs = load_recent_runs(n=args.tail, task=args.task)
    if not runs:
        console.print(f"[dim]No runs found in {path} (task={args.task or 'any'}).[/]")
        return 0

    table = Table(title=f"Run log  tail={len(runs)}", title_style="bold green")
    table.add_column("Started", style="dim")
    table.add_column("Task", style="yellow")
    table.add_column("Time", justify="right")
    table.add_column("Status")
    table.add_column("Errors", justify="right")
    table.add_column("Slowest phase", style="dim")
    table.add_column("Run", style="dim")

    for r in runs:
        status = f"[green]{r.status}[/]" if r.status == "ok" else f"[red]{r.status}[/]"
        slowest = max(r.phases, key=lambda p: p.get("duration_s") or 0, default=None)
        phase_text = ""
        if slowest is not None:
            phase_text = f"{slowest.get('name', '?')}: {_fmt_dur(slowest.get('duration_s'))}"
        errors = r.error_count
        table.add_row(
            _t(r.started_at),
            r.task,
            _fmt_dur(r.duration_s),
            status,
            f"[red]{errors}[/]" if errors else "0",
            phase_text,
            f"#{r.run_id}",
        )
    console.print(table)

    failed = [r for r in runs if r.error]
    if failed:
        console.print("[bold red]── Failures ──[/]")
        for r in failed:
            console.print(f"  [dim]{_t(r.started_at)}[/] {r.task}: [red]{r.error}[/]")
    console.print(f"[dim]Log file: {path}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
