"""SQLAlchemy ORM models and engine/session factories.

Tables:

- ``legislators``      -- roster, including the per-legislator sync error flag
- ``scores``           -- one row per scored activity, unique on
                          ``(legislator_id, category, dedupe_key)``
- ``leagues`` / ``teams`` / ``matchups`` -- fantasy league state
- ``team_legislators`` / ``team_bench``  -- roster and bench (sets)
- ``draft_picks`` / ``draft_preferences``
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from . import config as cfg

ERROR_FLAG_SET = "是"

DRAFT_PENDING = "PENDING"
DRAFT_COMPLETED = "COMPLETED"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


team_legislators = Table(
    "team_legislators",
    Base.metadata,
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("legislator_id", ForeignKey("legislators.id", ondelete="CASCADE"), primary_key=True),
)

team_bench = Table(
    "team_bench",
    Base.metadata,
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("legislator_id", ForeignKey("legislators.id", ondelete="CASCADE"), primary_key=True),
)


# ── Legislators & scores ─────────────────────────────────────────────────────


class Legislator(Base):
    __tablename__ = "legislators"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    external_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, index=True)
    name_ch: Mapped[str] = mapped_column(String(100), index=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(200))
    party: Mapped[Optional[str]] = mapped_column(String(50))
    sex: Mapped[Optional[str]] = mapped_column(String(10))
    pic_url: Mapped[Optional[str]] = mapped_column(Text)
    area_name: Mapped[Optional[str]] = mapped_column(String(100))
    committee: Mapped[Optional[str]] = mapped_column(Text)
    onboard_date: Mapped[Optional[str]] = mapped_column(String(20))
    leave_flag: Mapped[Optional[str]] = mapped_column(String(10))
    leave_date: Mapped[Optional[str]] = mapped_column(String(20))
    leave_reason: Mapped[Optional[str]] = mapped_column(Text)

    # "是" after the last sync for this legislator failed; cleared on success.
    error_flag: Mapped[Optional[str]] = mapped_column(String(10))
    error_reason: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    scores: Mapped[list[Score]] = relationship(back_populates="legislator")

    def __repr__(self) -> str:
        return f"Legislator({self.name_ch!r}, party={self.party!r})"


class Score(Base):
    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("legislator_id", "category", "dedupe_key", name="uq_score_dedupe"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    legislator_id: Mapped[str] = mapped_column(
        ForeignKey("legislators.id", ondelete="CASCADE"), index=True
    )
    category: Mapped[str] = mapped_column(String(32), index=True)
    date: Mapped[datetime] = mapped_column(DateTime, index=True)
    points: Mapped[float] = mapped_column(Float)
    description: Mapped[str] = mapped_column(Text)
    dedupe_key: Mapped[str] = mapped_column(Text)
    bill_number: Mapped[Optional[str]] = mapped_column(String(100))
    bill_title: Mapped[Optional[str]] = mapped_column(Text)
    # JSON text; ``metadata`` is reserved on declarative classes.
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    legislator: Mapped[Legislator] = relationship(back_populates="scores")


# ── League state ─────────────────────────────────────────────────────────────


class League(Base):
    __tablename__ = "leagues"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    season_start: Mapped[datetime] = mapped_column(DateTime)
    total_weeks: Mapped[int] = mapped_column(Integer, default=10)
    draft_status: Mapped[str] = mapped_column(String(20), default=DRAFT_PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    teams: Mapped[list[Team]] = relationship(back_populates="league")


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    owner: Mapped[Optional[str]] = mapped_column(String(200))
    wins: Mapped[int] = mapped_column(Integer, default=0)
    losses: Mapped[int] = mapped_column(Integer, default=0)
    ties: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    league: Mapped[League] = relationship(back_populates="teams")
    legislators: Mapped[list[Legislator]] = relationship(secondary=team_legislators)
    bench: Mapped[list[Legislator]] = relationship(secondary=team_bench)
    draft_preferences: Mapped[list[DraftPreference]] = relationship(
        back_populates="team", order_by="DraftPreference.rank"
    )

    @property
    def starter_ids(self) -> set[str]:
        benched = {leg.id for leg in self.bench}
        return {leg.id for leg in self.legislators if leg.id not in benched}


class Matchup(Base):
    __tablename__ = "matchups"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    week: Mapped[int] = mapped_column(Integer, index=True)
    week_start: Mapped[datetime] = mapped_column(DateTime)
    team1_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    # None means team1 has a bye this week.
    team2_id: Mapped[Optional[str]] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    team1_score: Mapped[Optional[float]] = mapped_column(Float)
    team2_score: Mapped[Optional[float]] = mapped_column(Float)
    winner_id: Mapped[Optional[str]] = mapped_column(String(32))

    @property
    def is_bye(self) -> bool:
        return self.team2_id is None


class DraftPick(Base):
    __tablename__ = "draft_picks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    legislator_id: Mapped[str] = mapped_column(ForeignKey("legislators.id", ondelete="CASCADE"))
    round: Mapped[int] = mapped_column(Integer)
    pick_number: Mapped[int] = mapped_column(Integer)


class DraftPreference(Base):
    __tablename__ = "draft_preferences"
    __table_args__ = (UniqueConstraint("team_id", "legislator_id", name="uq_team_preference"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    legislator_id: Mapped[str] = mapped_column(ForeignKey("legislators.id", ondelete="CASCADE"))
    rank: Mapped[int] = mapped_column(Integer)

    team: Mapped[Team] = relationship(back_populates="draft_preferences")


# ── Engine / session ─────────────────────────────────────────────────────────


def make_engine(url: str | None = None, *, echo: bool | None = None) -> Engine:
    """Create an engine for *url* (default ``config.DATABASE_URL``).

    In-memory SQLite gets a single shared connection so every session (and the
    test client's worker thread) sees the same database.
    """
    url = url or cfg.DATABASE_URL
    kwargs: dict = {"echo": cfg.SQL_ECHO if echo is None else echo}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)
