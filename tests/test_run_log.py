from __future__ import annotations

import pytest

from ly_fantasy.run_log import RunLogger, RunRecord, load_recent_runs


class TestRunLogger:
    def test_ok_run_is_appended(self, tmp_path) -> None:
        path = tmp_path / "runs.jsonl"
        with RunLogger("refresh:propose", log_path=path) as run:
            with run.phase("sync", detail="propose"):
                pass
            run.meta["propose"] = {"processed_count": 3, "error_count": 1}

        (record,) = load_recent_runs(log_path=path)
        assert record.task == "refresh:propose"
        assert record.status == "ok"
        assert record.phases[0]["name"] == "sync"
        assert record.error_count == 1

    def test_failed_run_is_recorded(self, tmp_path) -> None:
        path = tmp_path / "runs.jsonl"
        with pytest.raises(RuntimeError):
            with RunLogger("legislators", log_path=path):
                raise RuntimeError("feed down")

        (record,) = load_recent_runs(log_path=path)
        assert record.status == "error"
        assert record.error == "RuntimeError: feed down"

    def test_default_path_comes_from_config(self) -> None:
        with RunLogger("script:all"):
            pass
        assert [r.task for r in load_recent_runs()] == ["script:all"]


class TestLoadRecentRuns:
    def test_newest_first_filtered_and_limited(self, tmp_path) -> None:
        path = tmp_path / "runs.jsonl"
        for task in ["refresh:all", "legislators", "refresh:rollcall", "refresh:propose"]:
            with RunLogger(task, log_path=path):
                pass
        with path.open("a", encoding="utf-8") as f:
            f.write("not json\n")

        runs = load_recent_runs(2, task="refresh", log_path=path)
        assert [r.task for r in runs] == ["refresh:propose", "refresh:rollcall"]

    def test_missing_file(self, tmp_path) -> None:
        assert load_recent_runs(log_path=tmp_path / "nope.jsonl") == []

    def test_garbage_line(self) -> None:
        assert RunRecord.from_json_line("[1, 2]") is None
        assert RunRecord.from_json_line("") is None
