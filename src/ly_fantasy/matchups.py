"""Weekly head-to-head schedule, matchup scoring and team records.

Schedule generation uses the circle method: with the team list padded to an
even length by a bye placeholder, week k pairs slot ``i`` with slot
``n-1-i``; then every slot but the first shifts one place to the right.  One
cycle is ``N-1`` weeks for even ``N`` and ``N`` weeks for odd ``N``; longer
seasons replay the cycle from the original order.

A team's weekly score is the sum of its *starters'* scores (bench excluded)
dated inside the week window.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from .db import Matchup, Team
from .errors import ScheduleError
from .store import Repository
from .week_calendar import current_week, week_date_range, week_end

LOGGER = logging.getLogger(__name__)

Pairing = tuple[str, str | None]


# ── Schedule ─────────────────────────────────────────────────────────────────


def cycle_length(team_count: int) -> int:
    return team_count - 1 if team_count % 2 == 0 else team_count


def round_robin_weeks(team_ids: Sequence[str], total_weeks: int) -> list[list[Pairing]]:
    """Pairings for weeks ``1..total_weeks``.

    A bye is always returned as ``(team, None)``, whichever side the
    placeholder falls on.

    >>> round_robin_weeks(["a", "b", "c", "d"], 3)
    [[('a', 'd'), ('b', 'c')], [('a', 'c'), ('d', 'b')], [('a', 'b'), ('c', 'd')]]
    """
    if len(team_ids) < 2:
        raise ScheduleError("Need at least 2 teams to generate schedule")

    base: list[str | None] = list(team_ids)
    if len(base) % 2:
        base.append(None)
    n = len(base)
    per_cycle = cycle_length(len(team_ids))

    weeks: list[list[Pairing]] = []
    while len(weeks) < total_weeks:
        order = list(base)
        for _ in range(per_cycle):
            if len(weeks) >= total_weeks:
                break
            pairs: list[Pairing] = []
            for i in range(n // 2):
                home, away = order[i], order[n - 1 - i]
                if home is None:
                    pairs.append((away, None))
                elif away is None:
                    pairs.append((home, None))
                else:
                    pairs.append((home, away))
            weeks.append(pairs)
            order = [order[0], order[-1], *order[1:-1]]
    return weeks


def generate_round_robin_schedule(repo: Repository, league_id: str) -> list[Matchup]:
    """Replace the league's schedule.  Delete and recreate happen in one transaction.

    Raises:
        NotFoundError: the league does not exist.
        ScheduleError: the league has fewer than two teams.
    """
    league = repo.get_league(league_id)
    teams = repo.teams_in_league(league_id)
    weeks = round_robin_weeks([team.id for team in teams], league.total_weeks)

    created: list[Matchup] = []
    with repo.transaction():
        removed = repo.delete_matchups(league_id)
        for week_no, pairs in enumerate(weeks, 1):
            start, _ = week_date_range(league.season_start, week_no)
            for team1_id, team2_id in pairs:
                created.append(repo.add_matchup(league_id, week_no, start, team1_id, team2_id))
    LOGGER.info(
        "Schedule for %s: %d matchups over %d weeks (%d teams, %d old matchups removed)",
        league.name,
        len(created),
        len(weeks),
        len(teams),
        removed,
    )
    return created


# ── Scores ───────────────────────────────────────────────────────────────────


def team_weekly_score(repo: Repository, team: Team, start: datetime, end: datetime) -> float:
    return repo.sum_points(team.starter_ids, start, end)


def calculate_matchup_scores(repo: Repository, matchup_id: str) -> Matchup:
    """Score both sides for the matchup's week and set the winner.

    Equal scores leave ``winner_id`` empty (a tie).  A bye wins outright and
    keeps ``team2_score`` empty.
    """
    matchup = repo.get_matchup(matchup_id)
    start = matchup.week_start
    end = week_end(start)

    team1_score = team_weekly_score(repo, repo.get_team(matchup.team1_id), start, end)
    if matchup.team2_id is None:
        matchup.team1_score = team1_score
        matchup.team2_score = None
        matchup.winner_id = matchup.team1_id
    else:
        team2_score = team_weekly_score(repo, repo.get_team(matchup.team2_id), start, end)
        matchup.team1_score = team1_score
        matchup.team2_score = team2_score
        if team1_score > team2_score:
            matchup.winner_id = matchup.team1_id
        elif team2_score > team1_score:
            matchup.winner_id = matchup.team2_id
        else:
            matchup.winner_id = None
    repo.session.commit()
    return matchup


def calculate_week_matchups(repo: Repository, league_id: str, week: int) -> list[Matchup]:
    return [calculate_matchup_scores(repo, m.id) for m in repo.matchups(league_id, week=week)]


def update_team_records(repo: Repository, league_id: str) -> None:
    """Recompute every team's W/L/T from scored matchups.

    Only matchups that have been scored count.  Safe to call repeatedly.
    """
    teams = repo.teams_in_league(league_id)
    records = {team.id: [0, 0, 0] for team in teams}
    for matchup in repo.matchups(league_id):
        if matchup.team1_score is None:
            continue
        sides = [matchup.team1_id] + ([matchup.team2_id] if matchup.team2_id else [])
        for team_id in sides:
            record = records.get(team_id)
            if record is None:
                continue
            if matchup.winner_id == team_id:
                record[0] += 1
            elif matchup.winner_id is None:
                record[2] += 1
            else:
                record[1] += 1
    for team in teams:
        team.wins, team.losses, team.ties = records[team.id]
    repo.session.commit()


def update_league_standings(
    repo: Repository,
    league_id: str,
    up_to_week: int | None = None,
    *,
    now: datetime | None = None,
    force: bool = False,
) -> list[Team]:
    """Score finished weeks ``1..up_to_week``, then refresh records.

    *up_to_week* defaults to the last completed week.  A matchup is only scored
    once its week has ended, and a matchup that already has a score keeps it
    (bench changes apply to later weeks) unless *force* is set.
    """
    league = repo.get_league(league_id)
    now = now or datetime.now()
    if up_to_week is None:
        up_to_week = current_week(league.season_start, now) - 1
    last_week = min(up_to_week, league.total_weeks)
    for week in range(1, last_week + 1):
        for matchup in repo.matchups(league_id, week=week):
            if week_end(matchup.week_start) > now:
                continue
            if matchup.team1_score is not None and not force:
                continue
            calculate_matchup_scores(repo, matchup.id)
    update_team_records(repo, league_id)
    return repo.standings(league_id)


def set_bench(repo: Repository, team_id: str, legislator_ids: Sequence[str]) -> None:
    """Replace the team's bench.  Ids not on the roster are ignored."""
    repo.set_bench(team_id, legislator_ids)
    repo.session.commit()


# ── Weekly views ─────────────────────────────────────────────────────────────


@dataclass
class WeeklyScore:
    week: int
    score: float
    week_start: datetime
    week_end: datetime


def team_all_weekly_scores(
    repo: Repository, team_id: str, season_start: datetime, total_weeks: int
) -> list[WeeklyScore]:
    team = repo.get_team(team_id)
    results: list[WeeklyScore] = []
    for week in range(1, total_weeks + 1):
        start, end = week_date_range(season_start, week)
        results.append(WeeklyScore(week, team_weekly_score(repo, team, start, end), start, end))
    return results


def legislator_weekly_score(
    repo: Repository, legislator_id: str, start: datetime, end: datetime
) -> float:
    return repo.sum_points([legislator_id], start, end)


def legislator_current_week_score(
    repo: Repository,
    legislator_id: str,
    season_start: datetime,
    now: datetime | None = None,
) -> tuple[int, float]:
    """``(week, points so far this week)``; ``(0, 0.0)`` before the season."""
    now = now or datetime.now()
    week = current_week(season_start, now)
    if week == 0:
        return 0, 0.0
    start, _ = week_date_range(season_start, week)
    return week, repo.sum_points([legislator_id], start, now)


def legislator_last_week_score(
    repo: Repository,
    legislator_id: str,
    season_start: datetime,
    now: datetime | None = None,
) -> tuple[int, float]:
    """``(last week, points)``; ``(0, 0.0)`` until week 2."""
    week = current_week(season_start, now or datetime.now())
    if week <= 1:
        return 0, 0.0
    start, end = week_date_range(season_start, week - 1)
    return week - 1, repo.sum_points([legislator_id], start, end)
