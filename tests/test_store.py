from __future__ import annotations

import json
from datetime import datetime

import pytest

from ly_fantasy.db import ERROR_FLAG_SET, Score
from ly_fantasy.errors import NotFoundError
from ly_fantasy.models import LegislatorRecord, ScoreDraft


def _draft(legislator_id: str, key: str = "院總第1號", **overrides) -> ScoreDraft:
    fields = dict(
        legislator_id=legislator_id,
        category="PROPOSE_BILL",
        date=datetime(2024, 3, 5),
        points=3,
        description="Proposed: 測試",
        dedupe_key=key,
        metadata={"status": "交付審查"},
    )
    fields.update(overrides)
    return ScoreDraft(**fields)


class TestLegislators:
    def test_list_is_name_ordered_and_pageable(self, repo, make_legislators) -> None:
        make_legislators(5)
        names = [leg.name_ch for leg in repo.list_legislators(limit=2, offset=1)]
        assert names == ["委員02", "委員03"]

    def test_filter_by_name(self, repo, legislators) -> None:
        (leg,) = repo.list_legislators(name="李大華")
        assert leg.party == "民主進步黨"

    def test_upsert(self, repo) -> None:
        record = LegislatorRecord(external_id="110001", name_ch="王小明", party="民主進步黨")
        _, created = repo.upsert_legislator(record)
        assert created
        record.party = "無黨籍"
        leg, created = repo.upsert_legislator(record)
        assert not created
        assert leg.party == "無黨籍"
        assert len(repo.list_legislators()) == 1

    def test_error_flag_roundtrip(self, repo, legislators) -> None:
        leg = legislators[0]
        repo.set_error_flag(leg.id, "Cosign Bills API: Status 500")
        assert repo.get_legislator(leg.id).error_flag == ERROR_FLAG_SET
        repo.clear_error_flag(leg.id)
        assert repo.get_legislator(leg.id).error_reason is None


class TestScores:
    def test_duplicate_key_skipped(self, repo, legislators) -> None:
        leg = legislators[0]
        assert repo.create_score(_draft(leg.id))
        assert not repo.create_score(_draft(leg.id, points=9))
        assert repo.count_scores() == 1

    def test_same_key_other_legislator_or_category(self, repo, legislators) -> None:
        assert repo.create_score(_draft(legislators[0].id))
        assert repo.create_score(_draft(legislators[1].id))
        assert repo.create_score(_draft(legislators[0].id, category="COSIGN_BILL"))
        assert repo.count_scores() == 3
        assert repo.count_scores("COSIGN_BILL") == 1

    def test_unique_constraint_catches_race(self, repo, session, legislators) -> None:
        leg = legislators[0]
        repo.create_score(_draft(leg.id))
        # Simulate a concurrent writer: skip the existence check.
        repo.score_exists = lambda *args: False
        assert not repo.create_score(_draft(leg.id))
        assert session.query(Score).count() == 1

    def test_metadata_json(self, repo, legislators) -> None:
        repo.create_score(_draft(legislators[0].id))
        (score,) = repo.scores_for([legislators[0].id])
        assert json.loads(score.metadata_json) == {"status": "交付審查"}

    def test_sum_points_window(self, repo, legislators) -> None:
        leg = legislators[0]
        repo.create_score(_draft(leg.id, key="a", date=datetime(2024, 3, 4)))
        repo.create_score(_draft(leg.id, key="b", date=datetime(2024, 3, 10, 23)))
        repo.create_score(_draft(leg.id, key="c", date=datetime(2024, 3, 11)))
        total = repo.sum_points([leg.id], datetime(2024, 3, 4), datetime(2024, 3, 10, 23, 59, 59))
        assert total == 6
        assert repo.sum_points([], datetime(2024, 3, 4), datetime(2024, 3, 10)) == 0.0


class TestLeague:
    def test_missing_league(self, repo) -> None:
        with pytest.raises(NotFoundError):
            repo.get_league("missing")

    def test_missing_team(self, repo) -> None:
        with pytest.raises(NotFoundError):
            repo.get_team("missing")

    def test_transaction_rolls_back(self, repo, make_league) -> None:
        league = make_league(team_count=2, total_weeks=1)
        team1, team2 = repo.teams_in_league(league.id)
        with pytest.raises(RuntimeError):
            with repo.transaction():
                repo.add_matchup(league.id, 1, league.season_start, team1.id, team2.id)
                raise RuntimeError("boom")
        assert repo.matchups(league.id) == []
