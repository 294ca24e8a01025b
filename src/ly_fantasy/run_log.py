"""Append-only JSONL log of sync runs.

Every sync (cron trigger or script) appends one line with its task name,
timing per phase, final status and the summary statistics, so
``scripts/log_dashboard.py`` can show what ran recently and what failed.

Usage::

    from ly_fantasy.run_log import RunLogger

    with RunLogger("refresh:all") as run:
        with run.phase("propose"):
            stats = ...
        run.meta["propose"] = stats.to_dict()
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config as cfg

LOGGER = logging.getLogger(__name__)


def get_log_path() -> Path:
    return cfg.RUN_LOG_PATH


@dataclass
class RunRecord:
    run_id: str
    task: str
    started_at: str  # ISO, UTC
    ended_at: str | None = None
    duration_s: float | None = None
    status: str = "running"  # ok | error | running
    phases: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json_line(cls, line: str) -> RunRecord | None:
        line = line.strip()
        if not line:
            return None
        try:
            d = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(d, dict):
            return None
        return cls(
            run_id=str(d.get("run_id", "")),
            task=str(d.get("task", "")),
            started_at=str(d.get("started_at", "")),
            ended_at=d.get("ended_at"),
            duration_s=d.get("duration_s"),
            status=d.get("status", "ok"),
            phases=d.get("phases") or [],
            error=d.get("error"),
            meta=d.get("meta") or {},
        )

    @property
    def error_count(self) -> int:
        """Sum of ``errorCount``-style values found in the run's summaries."""
        total = 0
        for summary in self.meta.values():
            if isinstance(summary, dict):
                total += int(summary.get("error_count") or 0)
        return total


class RunLogger:
    """Times one run and appends it to the log on exit (also on failure)."""

    def __init__(self, task: str, *, log_path: Path | None = None, meta: dict | None = None):
        self.task = task
        self.log_path = log_path if log_path is not None else get_log_path()
        self.meta: dict[str, Any] = dict(meta or {})
        self.run_id = uuid.uuid4().hex[:8]
        self._started_at = ""
        self._t0: float | None = None
        self._phases: list[dict[str, Any]] = []

    @contextmanager
    def phase(self, name: str, detail: str | None = None) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._phases.append(
                {"name": name, "duration_s": round(time.perf_counter() - t0, 2), "detail": detail}
            )

    def start(self) -> None:
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._t0 = time.perf_counter()
        self._phases = []

    def finish(self, status: str = "ok", error: str | None = None) -> RunRecord | None:
        if self._t0 is None:
            return None
        record = RunRecord(
            run_id=self.run_id,
            task=self.task,
            started_at=self._started_at,
            ended_at=datetime.now(timezone.utc).isoformat(),
            duration_s=round(time.perf_counter() - self._t0, 2),
            status=status,
            phases=self._phases,
            error=error,
            meta=self.meta,
        )
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(record.to_json_line() + "\n")
        except OSError as e:
            LOGGER.warning("Run log append failed: %s", e)
        return record

    def __enter__(self) -> RunLogger:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.finish("ok")
        else:
            self.finish("error", f"{exc_type.__name__}: {exc_val}" if exc_val else exc_type.__name__)


def load_recent_runs(
    n: int = 100,
    *,
    task: str | None = None,
    log_path: Path | None = None,
) -> list[RunRecord]:
    """The last *n* runs, newest first, optionally only those whose task starts with *task*."""
    path = log_path or get_log_path()
    if not path.exists():
        return []
    records: list[RunRecord] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            rec = RunRecord.from_json_line(line)
            if rec is None:
                continue
            if task is None or rec.task.startswith(task):
                records.append(rec)
    return records[::-1][:n]
