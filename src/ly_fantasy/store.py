"""Repository over an injected SQLAlchemy ``Session``.

Every query the sync engine, scheduler and draft need lives here, so those
modules never build SQL themselves.  The repository never opens its own
session; callers own the session lifecycle.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import (
    ERROR_FLAG_SET,
    DraftPick,
    DraftPreference,
    League,
    Legislator,
    Matchup,
    Score,
    Team,
)
from .errors import NotFoundError
from .models import LegislatorRecord, ScoreDraft

LOGGER = logging.getLogger(__name__)


class Repository:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[Repository]:
        """Commit everything done inside the block, or roll it all back."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ── Legislators ──────────────────────────────────────────────────────

    def list_legislators(
        self,
        *,
        name: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Legislator]:
        """Legislators ordered by Chinese name, optionally one name or a page."""
        stmt = select(Legislator).order_by(Legislator.name_ch, Legislator.id)
        if name:
            stmt = stmt.where(Legislator.name_ch == name)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def get_legislator(self, legislator_id: str) -> Legislator | None:
        return self.session.get(Legislator, legislator_id)

    def add_legislator(self, **fields) -> Legislator:
        legislator = Legislator(**fields)
        self.session.add(legislator)
        self.session.commit()
        return legislator

    def upsert_legislator(self, record: LegislatorRecord) -> tuple[Legislator, bool]:
        """Insert or update by external id.  Returns ``(row, created)``."""
        existing = self.session.scalar(
            select(Legislator).where(Legislator.external_id == record.external_id)
        )
        created = existing is None
        legislator = existing or Legislator(external_id=record.external_id)
        legislator.name_ch = record.name_ch
        legislator.name_en = record.name_en or None
        legislator.party = record.party or None
        legislator.sex = record.sex or None
        legislator.pic_url = record.pic_url or None
        legislator.area_name = record.area_name or None
        legislator.committee = record.committee or None
        legislator.onboard_date = record.onboard_date or None
        legislator.leave_flag = record.leave_flag or None
        legislator.leave_date = record.leave_date or None
        legislator.leave_reason = record.leave_reason or None
        if created:
            self.session.add(legislator)
        self.session.commit()
        return legislator, created

    def set_error_flag(self, legislator_id: str, reason: str) -> None:
        legislator = self.session.get(Legislator, legislator_id)
        if legislator is None:
            return
        legislator.error_flag = ERROR_FLAG_SET
        legislator.error_reason = reason
        self.session.commit()

    def clear_error_flag(self, legislator_id: str) -> None:
        legislator = self.session.get(Legislator, legislator_id)
        if legislator is None or (legislator.error_flag is None and legislator.error_reason is None):
            return
        legislator.error_flag = None
        legislator.error_reason = None
        self.session.commit()

    # ── Scores ───────────────────────────────────────────────────────────

    def score_exists(self, legislator_id: str, category: str, dedupe_key: str) -> bool:
        stmt = select(Score.id).where(
            Score.legislator_id == legislator_id,
            Score.category == category,
            Score.dedupe_key == dedupe_key,
        )
        return self.session.scalar(stmt) is not None

    def create_score(self, draft: ScoreDraft) -> bool:
        """Persist *draft* unless its dedupe key is already taken.

        Returns ``True`` when a row was written.  A concurrent writer that wins
        the race trips the unique constraint; that counts as a duplicate.
        """
        if self.score_exists(draft.legislator_id, draft.category, draft.dedupe_key):
            return False
        self.session.add(
            Score(
                legislator_id=draft.legislator_id,
                category=draft.category,
                date=draft.date,
                points=draft.points,
                description=draft.description,
                dedupe_key=draft.dedupe_key,
                bill_number=draft.bill_number,
                bill_title=draft.bill_title,
                metadata_json=(
                    json.dumps(draft.metadata, ensure_ascii=False)
                    if draft.metadata is not None
                    else None
                ),
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            LOGGER.debug("Duplicate score skipped: %s %s", draft.category, draft.dedupe_key)
            return False
        return True

    def scores_for(
        self,
        legislator_ids: Iterable[str],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Score]:
        ids = list(legislator_ids)
        if not ids:
            return []
        stmt = select(Score).where(Score.legislator_id.in_(ids))
        if start is not None:
            stmt = stmt.where(Score.date >= start)
        if end is not None:
            stmt = stmt.where(Score.date <= end)
        return list(self.session.scalars(stmt.order_by(Score.date)))

    def sum_points(
        self,
        legislator_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> float:
        ids = list(legislator_ids)
        if not ids:
            return 0.0
        stmt = select(func.coalesce(func.sum(Score.points), 0.0)).where(
            Score.legislator_id.in_(ids),
            Score.date >= start,
            Score.date <= end,
        )
        return float(self.session.scalar(stmt) or 0.0)

    def count_scores(self, category: str | None = None) -> int:
        stmt = select(func.count(Score.id))
        if category is not None:
            stmt = stmt.where(Score.category == category)
        return int(self.session.scalar(stmt) or 0)

    # ── Leagues & teams ──────────────────────────────────────────────────

    def get_league(self, league_id: str) -> League:
        league = self.session.get(League, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        return league

    def teams_in_league(self, league_id: str) -> list[Team]:
        stmt = select(Team).where(Team.league_id == league_id).order_by(Team.created_at, Team.id)
        return list(self.session.scalars(stmt))

    def get_team(self, team_id: str) -> Team:
        team = self.session.get(Team, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        return team

    def standings(self, league_id: str) -> list[Team]:
        stmt = (
            select(Team)
            .where(Team.league_id == league_id)
            .order_by(Team.wins.desc(), Team.ties.desc(), Team.losses, Team.name)
        )
        return list(self.session.scalars(stmt))

    def set_bench(self, team_id: str, legislator_ids: Iterable[str]) -> None:
        team = self.get_team(team_id)
        wanted = set(legislator_ids)
        team.bench = [leg for leg in team.legislators if leg.id in wanted]
        self.session.flush()

    # ── Matchups ─────────────────────────────────────────────────────────

    def delete_matchups(self, league_id: str) -> int:
        result = self.session.execute(delete(Matchup).where(Matchup.league_id == league_id))
        return result.rowcount or 0

    def add_matchup(
        self,
        league_id: str,
        week: int,
        week_start: datetime,
        team1_id: str,
        team2_id: str | None,
    ) -> Matchup:
        matchup = Matchup(
            league_id=league_id,
            week=week,
            week_start=week_start,
            team1_id=team1_id,
            team2_id=team2_id,
        )
        self.session.add(matchup)
        return matchup

    def get_matchup(self, matchup_id: str) -> Matchup:
        matchup = self.session.get(Matchup, matchup_id)
        if matchup is None:
            raise NotFoundError(f"Matchup not found: {matchup_id}")
        return matchup

    def matchups(self, league_id: str, *, week: int | None = None) -> list[Matchup]:
        stmt = select(Matchup).where(Matchup.league_id == league_id)
        if week is not None:
            stmt = stmt.where(Matchup.week == week)
        return list(self.session.scalars(stmt.order_by(Matchup.week, Matchup.id)))

    # ── Draft ────────────────────────────────────────────────────────────

    def draft_preferences(self, team_id: str) -> list[DraftPreference]:
        stmt = (
            select(DraftPreference)
            .where(DraftPreference.team_id == team_id)
            .order_by(DraftPreference.rank)
        )
        return list(self.session.scalars(stmt))

    def add_draft_preference(self, team_id: str, legislator_id: str, rank: int) -> DraftPreference:
        pref = DraftPreference(team_id=team_id, legislator_id=legislator_id, rank=rank)
        self.session.add(pref)
        self.session.commit()
        return pref

    def add_draft_pick(
        self, league_id: str, team_id: str, legislator_id: str, round_no: int, pick_number: int
    ) -> DraftPick:
        pick = DraftPick(
            league_id=league_id,
            team_id=team_id,
            legislator_id=legislator_id,
            round=round_no,
            pick_number=pick_number,
        )
        self.session.add(pick)
        return pick

    def draft_picks(self, league_id: str) -> list[DraftPick]:
        stmt = select(DraftPick).where(DraftPick.league_id == league_id).order_by(DraftPick.pick_number)
        return list(self.session.scalars(stmt))
