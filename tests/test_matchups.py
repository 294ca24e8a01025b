from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from itertools import combinations

import pytest

from ly_fantasy.errors import NotFoundError, ScheduleError
from ly_fantasy.matchups import (
    calculate_matchup_scores,
    calculate_week_matchups,
    generate_round_robin_schedule,
    legislator_current_week_score,
    legislator_last_week_score,
    round_robin_weeks,
    set_bench,
    team_all_weekly_scores,
    update_league_standings,
    update_team_records,
)
from ly_fantasy.models import ScoreDraft

SEASON_START = datetime(2024, 3, 4)  # same Monday the league fixture uses


def _score(repo, legislator, points: float, when: datetime, key: str) -> None:
    repo.create_score(
        ScoreDraft(
            legislator_id=legislator.id,
            category="PROPOSE_BILL",
            date=when,
            points=points,
            description=f"test {key}",
            dedupe_key=key,
        )
    )


# ── Pure schedule ─────────────────────────────────────────────────────────────


class TestRoundRobinWeeks:
    def test_four_teams(self) -> None:
        assert round_robin_weeks(["a", "b", "c", "d"], 3) == [
            [("a", "d"), ("b", "c")],
            [("a", "c"), ("d", "b")],
            [("a", "b"), ("c", "d")],
        ]

    def test_even_cycle_meets_everyone_once(self) -> None:
        teams = [f"t{i}" for i in range(6)]
        weeks = round_robin_weeks(teams, 5)
        pairs = [frozenset(p) for week in weeks for p in week]
        assert len(pairs) == 15
        assert set(pairs) == {frozenset(p) for p in combinations(teams, 2)}

    def test_odd_count_gives_one_bye_per_week(self) -> None:
        teams = ["a", "b", "c", "d", "e"]
        weeks = round_robin_weeks(teams, 5)
        for week in weeks:
            assert len(week) == 3
            byes = [p for p in week if p[1] is None]
            assert len(byes) == 1
            assert all(p[0] is not None for p in week)
            played = [t for p in week for t in p if t is not None]
            assert sorted(played) == teams

        bye_teams = Counter(p[0] for week in weeks for p in week if p[1] is None)
        assert bye_teams == Counter(teams)
        games = {frozenset(p) for week in weeks for p in week if p[1] is not None}
        assert games == {frozenset(p) for p in combinations(teams, 2)}

    def test_longer_season_repeats_cycle(self) -> None:
        weeks = round_robin_weeks(["a", "b", "c", "d", "e"], 8)
        assert len(weeks) == 8
        assert weeks[5] == weeks[0]
        assert weeks[7] == weeks[2]

    def test_two_teams(self) -> None:
        assert round_robin_weeks(["a", "b"], 3) == [[("a", "b")]] * 3

    def test_needs_two_teams(self) -> None:
        with pytest.raises(ScheduleError):
            round_robin_weeks(["a"], 3)


# ── Persisted schedule ────────────────────────────────────────────────────────


class TestGenerateSchedule:
    def test_five_teams_eight_weeks(self, repo, make_league) -> None:
        league = make_league(team_count=5, total_weeks=8)
        matchups = generate_round_robin_schedule(repo, league.id)
        assert len(matchups) == 24
        assert sum(1 for m in matchups if m.is_bye) == 8

        week1 = repo.matchups(league.id, week=1)
        assert {m.week_start for m in week1} == {SEASON_START}
        week3 = repo.matchups(league.id, week=3)
        assert {m.week_start for m in week3} == {SEASON_START + timedelta(weeks=2)}

        team_ids = sorted(team.id for team in repo.teams_in_league(league.id))
        for week in range(1, 9):
            rows = repo.matchups(league.id, week=week)
            sides = [m.team1_id for m in rows] + [m.team2_id for m in rows if m.team2_id]
            assert sorted(sides) == team_ids

    def test_no_team_byes_twice_in_five_weeks(self, repo, make_league) -> None:
        league = make_league(team_count=5, total_weeks=8)
        generate_round_robin_schedule(repo, league.id)
        bye_by_week = {m.week: m.team1_id for m in repo.matchups(league.id) if m.is_bye}
        assert sorted(bye_by_week) == list(range(1, 9))
        for first in range(1, 5):
            window = [bye_by_week[week] for week in range(first, first + 5)]
            assert len(set(window)) == 5

    def test_regenerate_replaces(self, repo, make_league) -> None:
        league = make_league(team_count=4, total_weeks=6)
        generate_round_robin_schedule(repo, league.id)
        generate_round_robin_schedule(repo, league.id)
        assert len(repo.matchups(league.id)) == 12

    def test_single_team_rejected(self, repo, make_league) -> None:
        league = make_league(team_count=1)
        with pytest.raises(ScheduleError):
            generate_round_robin_schedule(repo, league.id)
        assert repo.matchups(league.id) == []

    def test_unknown_league(self, repo) -> None:
        with pytest.raises(NotFoundError):
            generate_round_robin_schedule(repo, "missing")


# ── Scoring and records ───────────────────────────────────────────────────────


@pytest.fixture
def two_team_league(repo, session, make_league, legislators):
    league = make_league(team_count=2, total_weeks=2)
    team_a, team_b = repo.teams_in_league(league.id)
    team_a.legislators.extend([legislators[0], legislators[1]])
    team_b.legislators.append(legislators[2])
    session.commit()
    set_bench(repo, team_a.id, [legislators[1].id])
    generate_round_robin_schedule(repo, league.id)
    return league, team_a, team_b


class TestMatchupScores:
    def test_bench_excluded(self, repo, legislators, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        wed = SEASON_START + timedelta(days=2)
        _score(repo, legislators[0], 5, wed, "k1")
        _score(repo, legislators[1], 100, wed, "k2")  # benched
        _score(repo, legislators[2], 4, wed, "k3")

        (matchup,) = calculate_week_matchups(repo, league.id, 1)
        scores = {matchup.team1_id: matchup.team1_score, matchup.team2_id: matchup.team2_score}
        assert scores == {team_a.id: 5, team_b.id: 4}
        assert matchup.winner_id == team_a.id

    def test_scores_outside_week_ignored(self, repo, legislators, two_team_league) -> None:
        league, team_a, _ = two_team_league
        _score(repo, legislators[0], 5, SEASON_START - timedelta(days=1), "before")
        _score(repo, legislators[0], 7, SEASON_START + timedelta(days=7), "week2")
        (matchup,) = calculate_week_matchups(repo, league.id, 1)
        assert matchup.team1_score == 0
        assert matchup.team2_score == 0

    def test_tie(self, repo, legislators, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        _score(repo, legislators[0], 3, SEASON_START, "a")
        _score(repo, legislators[2], 3, SEASON_START, "b")
        (matchup,) = calculate_week_matchups(repo, league.id, 1)
        assert matchup.winner_id is None

        update_team_records(repo, league.id)
        for team in (team_a, team_b):
            assert (team.wins, team.losses, team.ties) == (0, 0, 1)

    def test_unscored_matchups_do_not_count(self, repo, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        update_team_records(repo, league.id)
        assert (team_a.wins, team_a.losses, team_a.ties) == (0, 0, 0)
        assert (team_b.wins, team_b.losses, team_b.ties) == (0, 0, 0)

    def test_records_are_recomputed_not_accumulated(self, repo, legislators, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        _score(repo, legislators[0], 5, SEASON_START, "a")
        calculate_week_matchups(repo, league.id, 1)
        update_team_records(repo, league.id)
        update_team_records(repo, league.id)
        assert (team_a.wins, team_a.losses) == (1, 0)
        assert (team_b.wins, team_b.losses) == (0, 1)

    def test_standings_up_to_week(self, repo, legislators, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        _score(repo, legislators[0], 5, SEASON_START, "w1")
        _score(repo, legislators[2], 9, SEASON_START + timedelta(days=7), "w2")

        standings = update_league_standings(repo, league.id, up_to_week=1)
        assert [t.id for t in standings] == [team_a.id, team_b.id]
        assert repo.matchups(league.id, week=2)[0].team1_score is None

        update_league_standings(repo, league.id)
        assert (team_a.wins, team_a.losses) == (1, 1)
        assert (team_b.wins, team_b.losses) == (1, 1)

    def test_unplayed_weeks_are_not_scored(self, repo, session, make_league, legislators) -> None:
        league = make_league(team_count=2, total_weeks=10)
        team_a, team_b = repo.teams_in_league(league.id)
        team_a.legislators.append(legislators[0])
        team_b.legislators.append(legislators[2])
        session.commit()
        generate_round_robin_schedule(repo, league.id)
        _score(repo, legislators[0], 5, SEASON_START + timedelta(days=1), "w1")
        now = SEASON_START + timedelta(days=9)  # Wednesday of week 2

        update_league_standings(repo, league.id, now=now)
        assert (team_a.wins, team_a.losses, team_a.ties) == (1, 0, 0)
        assert (team_b.wins, team_b.losses, team_b.ties) == (0, 1, 0)

        update_league_standings(repo, league.id, up_to_week=10, now=now)
        assert (team_a.wins, team_a.losses, team_a.ties) == (1, 0, 0)
        assert [m.team1_score for m in repo.matchups(league.id) if m.week > 1] == [None] * 9

    def test_bench_change_keeps_scored_weeks(self, repo, legislators, two_team_league) -> None:
        league, team_a, team_b = two_team_league
        _score(repo, legislators[0], 5, SEASON_START, "w1")
        update_league_standings(repo, league.id, up_to_week=1)
        (week1,) = repo.matchups(league.id, week=1)
        assert week1.team1_score == 5

        set_bench(repo, team_a.id, [legislators[0].id, legislators[1].id])
        update_league_standings(repo, league.id, up_to_week=1)
        assert week1.team1_score == 5
        assert (team_a.wins, team_a.losses) == (1, 0)

        update_league_standings(repo, league.id, up_to_week=1, force=True)
        assert week1.team1_score == 0

    def test_bye_is_a_win(self, repo, make_league) -> None:
        league = make_league(team_count=3, total_weeks=1)
        generate_round_robin_schedule(repo, league.id)
        bye = next(m for m in repo.matchups(league.id, week=1) if m.is_bye)

        calculate_matchup_scores(repo, bye.id)
        assert bye.winner_id == bye.team1_id
        assert bye.team2_score is None

        update_team_records(repo, league.id)
        assert repo.get_team(bye.team1_id).wins == 1


class TestBench:
    def test_non_roster_ids_ignored(self, repo, legislators, two_team_league) -> None:
        _, team_a, _ = two_team_league
        set_bench(repo, team_a.id, [legislators[0].id, legislators[4].id])
        assert {leg.id for leg in team_a.bench} == {legislators[0].id}
        assert team_a.starter_ids == {legislators[1].id}


# ── Weekly views ──────────────────────────────────────────────────────────────


class TestWeeklyViews:
    def test_team_all_weekly_scores(self, repo, legislators, two_team_league) -> None:
        _, team_a, _ = two_team_league
        _score(repo, legislators[0], 2, SEASON_START, "a")
        _score(repo, legislators[0], 6, SEASON_START + timedelta(days=8), "b")
        weekly = team_all_weekly_scores(repo, team_a.id, SEASON_START, 3)
        assert [w.score for w in weekly] == [2, 6, 0]
        assert weekly[1].week_start == SEASON_START + timedelta(weeks=1)

    def test_current_and_last_week(self, repo, legislators) -> None:
        leg = legislators[0]
        _score(repo, leg, 3, SEASON_START + timedelta(days=1), "w1")
        _score(repo, leg, 4, SEASON_START + timedelta(days=7), "w2")
        now = SEASON_START + timedelta(days=9)
        assert legislator_current_week_score(repo, leg.id, SEASON_START, now) == (2, 4)
        assert legislator_last_week_score(repo, leg.id, SEASON_START, now) == (1, 3)

    def test_before_season(self, repo, legislators) -> None:
        now = SEASON_START - timedelta(days=3)
        assert legislator_current_week_score(repo, legislators[0].id, SEASON_START, now) == (0, 0.0)
        assert legislator_last_week_score(repo, legislators[0].id, SEASON_START, now) == (0, 0.0)
