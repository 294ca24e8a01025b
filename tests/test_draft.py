from __future__ import annotations

import random

import pytest

from ly_fantasy.db import DRAFT_COMPLETED
from ly_fantasy.draft import BENCH_ROUNDS, TOTAL_ROUNDS, run_snake_draft, snake_order
from ly_fantasy.errors import DraftError


class TestSnakeOrder:
    def test_alternates_direction(self) -> None:
        slots = snake_order(["a", "b", "c"], 3)
        assert [s.team_id for s in slots] == ["a", "b", "c", "c", "b", "a", "a", "b", "c"]
        assert [s.pick_number for s in slots] == list(range(1, 10))

    def test_bench_rounds(self) -> None:
        slots = snake_order(["a"])
        assert len(slots) == TOTAL_ROUNDS
        assert sum(s.is_bench for s in slots) == BENCH_ROUNDS


class TestRunSnakeDraft:
    def test_full_draft(self, repo, make_league, make_legislators) -> None:
        make_legislators(20)
        league = make_league(team_count=2, total_weeks=3)

        result = run_snake_draft(repo, league.id, rng=random.Random(0))

        assert result.picks == 18
        assert result.schedule_generated
        assert repo.get_league(league.id).draft_status == DRAFT_COMPLETED
        for team in repo.teams_in_league(league.id):
            assert len(team.legislators) == 9
            assert len(team.bench) == 3
            assert len(team.starter_ids) == 6
        picked = [p.legislator_id for p in repo.draft_picks(league.id)]
        assert len(set(picked)) == 18
        assert len(repo.matchups(league.id)) == 3

    def test_preferences_first(self, repo, make_league, make_legislators) -> None:
        legs = make_legislators(20)
        league = make_league(team_count=2)
        team_a, team_b = repo.teams_in_league(league.id)
        repo.add_draft_preference(team_a.id, legs[5].id, 1)
        repo.add_draft_preference(team_a.id, legs[6].id, 2)
        repo.add_draft_preference(team_b.id, legs[5].id, 1)
        repo.add_draft_preference(team_b.id, legs[7].id, 2)
        repo.add_draft_preference(team_b.id, legs[8].id, 3)

        run_snake_draft(repo, league.id, rng=random.Random(1))

        picks = repo.draft_picks(league.id)
        assert (picks[0].team_id, picks[0].legislator_id) == (team_a.id, legs[5].id)
        assert (picks[1].team_id, picks[1].legislator_id) == (team_b.id, legs[7].id)
        # round 2 starts with team B again
        assert (picks[2].team_id, picks[2].legislator_id) == (team_b.id, legs[8].id)
        assert picks[3].team_id == team_a.id
        assert picks[3].legislator_id == legs[6].id

    def test_pool_exhausted(self, repo, make_league, make_legislators) -> None:
        make_legislators(5)
        league = make_league(team_count=2)
        result = run_snake_draft(repo, league.id, rng=random.Random(2))
        assert result.picks == 5
        assert repo.get_league(league.id).draft_status == DRAFT_COMPLETED

    def test_no_teams(self, repo, make_league, make_legislators) -> None:
        make_legislators(3)
        league = make_league(team_count=0)
        with pytest.raises(DraftError):
            run_snake_draft(repo, league.id)

    def test_schedule_failure_keeps_draft(self, repo, make_league, make_legislators) -> None:
        make_legislators(12)
        league = make_league(team_count=1)
        result = run_snake_draft(repo, league.id, rng=random.Random(3))
        assert result.picks == 9
        assert not result.schedule_generated
        assert repo.get_league(league.id).draft_status == DRAFT_COMPLETED
