from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime

import httpx
import pytest

from ly_fantasy import config as cfg
from ly_fantasy.db import League, Legislator, Team, init_db, make_engine, make_session_factory
from ly_fantasy.store import Repository

# ── Environment ───────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _fast_and_isolated(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """No sleeping between retries or batches; run log goes to a temp file."""
    monkeypatch.setattr(cfg, "FETCH_INITIAL_BACKOFF_S", 0.0)
    monkeypatch.setattr(cfg, "SYNC_BATCH_DELAY_S", 0.0)
    monkeypatch.setattr(cfg, "ROLLCALL_DELAY_S", 0.0)
    monkeypatch.setattr(cfg, "ROLLCALL_INDEX_RETRY_DELAY_S", 0.0)
    monkeypatch.setattr(cfg, "RUN_LOG_PATH", tmp_path / "run_log.jsonl")


# ── Database ──────────────────────────────────────────────────────────────────


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", echo=False)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    s = make_session_factory(engine)()
    yield s
    s.close()


@pytest.fixture
def repo(session) -> Repository:
    return Repository(session)


# ── Legislators ───────────────────────────────────────────────────────────────

SAMPLE_LEGISLATORS = [
    ("110001", "王小明", "民主進步黨"),
    ("110002", "李大華", "民主進步黨"),
    ("110003", "陳美玲", "中國國民黨"),
    ("110004", "林志豪", "中國國民黨"),
    ("110005", "黃國昌", "台灣民眾黨"),
    ("110006", "伍麗華Saidhai‧Tahovecahe", "民主進步黨"),
]


@pytest.fixture
def legislators(repo: Repository) -> list[Legislator]:
    return [
        repo.add_legislator(external_id=ext, name_ch=name, party=party)
        for ext, name, party in SAMPLE_LEGISLATORS
    ]


@pytest.fixture
def make_legislators(repo: Repository) -> Callable[[int], list[Legislator]]:
    """Create *n* legislators named 委員01, 委員02, ... (sorted in creation order)."""

    def _make(n: int, party: str = "民主進步黨") -> list[Legislator]:
        return [
            repo.add_legislator(external_id=f"9{i:05d}", name_ch=f"委員{i:02d}", party=party)
            for i in range(1, n + 1)
        ]

    return _make


# ── League ────────────────────────────────────────────────────────────────────

SEASON_START = datetime(2024, 3, 4)  # a Monday


@pytest.fixture
def make_league(session) -> Callable[..., League]:
    def _make(team_count: int = 4, total_weeks: int = 10, name: str = "測試聯盟") -> League:
        league = League(name=name, season_start=SEASON_START, total_weeks=total_weeks)
        session.add(league)
        session.flush()
        for i in range(team_count):
            session.add(
                Team(
                    league_id=league.id,
                    name=f"Team {chr(ord('A') + i)}",
                    created_at=datetime(2024, 1, 1, 0, 0, i),
                )
            )
        session.commit()
        return league

    return _make


# ── HTTP ──────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_client() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]]:
    """Build an ``AsyncClient`` whose requests are answered by *handler*."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    yield _make
