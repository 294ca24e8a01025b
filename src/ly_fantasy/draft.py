"""Snake draft.

Nine rounds: six starter rounds then three bench rounds.  Odd rounds run in
team order, even rounds in reverse.  Each pick takes the team's best-ranked
preference still available, else a uniformly random undrafted legislator.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from .db import DRAFT_COMPLETED
from .errors import DraftError
from .matchups import generate_round_robin_schedule
from .store import Repository

LOGGER = logging.getLogger(__name__)

STARTER_ROUNDS = 6
BENCH_ROUNDS = 3
TOTAL_ROUNDS = STARTER_ROUNDS + BENCH_ROUNDS


@dataclass(frozen=True)
class DraftSlot:
    team_id: str
    round: int
    pick_number: int

    @property
    def is_bench(self) -> bool:
        return self.round > STARTER_ROUNDS


@dataclass
class DraftResult:
    picks: int
    schedule_generated: bool


def snake_order(team_ids: Sequence[str], rounds: int = TOTAL_ROUNDS) -> list[DraftSlot]:
    """
    >>> [(s.team_id, s.round) for s in snake_order(["a", "b"], 2)]
    [('a', 1), ('b', 1), ('b', 2), ('a', 2)]
    """
    slots: list[DraftSlot] = []
    pick_number = 1
    for round_no in range(1, rounds + 1):
        order = list(team_ids) if round_no % 2 == 1 else list(reversed(team_ids))
        for team_id in order:
            slots.append(DraftSlot(team_id, round_no, pick_number))
            pick_number += 1
    return slots


def run_snake_draft(
    repo: Repository, league_id: str, rng: random.Random | None = None
) -> DraftResult:
    """Draft every team's roster, then build the schedule.

    Picks, roster membership, bench and the league's ``COMPLETED`` status are
    written in one transaction.  The schedule is generated afterwards; if that
    fails it is logged and the draft still stands.

    Raises:
        NotFoundError: the league does not exist.
        DraftError: the league has no teams.
    """
    rng = rng or random.Random()
    league = repo.get_league(league_id)
    teams = repo.teams_in_league(league_id)
    if not teams:
        raise DraftError("No teams in league")
    teams_by_id = {team.id: team for team in teams}

    all_legislators = repo.list_legislators()
    by_id = {leg.id: leg for leg in all_legislators}
    drafted = {pick.legislator_id for pick in repo.draft_picks(league_id)}
    preferences = {
        team.id: [pref.legislator_id for pref in repo.draft_preferences(team.id)] for team in teams
    }

    chosen: list[tuple[DraftSlot, str]] = []
    for slot in snake_order([team.id for team in teams]):
        pick = next(
            (lid for lid in preferences[slot.team_id] if lid not in drafted and lid in by_id),
            None,
        )
        if pick is None:
            available = [leg.id for leg in all_legislators if leg.id not in drafted]
            if not available:
                LOGGER.warning("Draft pool exhausted at pick %d", slot.pick_number)
                break
            pick = rng.choice(available)
        drafted.add(pick)
        chosen.append((slot, pick))

    with repo.transaction():
        for slot, legislator_id in chosen:
            repo.add_draft_pick(league_id, slot.team_id, legislator_id, slot.round, slot.pick_number)
            team = teams_by_id[slot.team_id]
            legislator = by_id[legislator_id]
            if legislator not in team.legislators:
                team.legislators.append(legislator)
            if slot.is_bench and legislator not in team.bench:
                team.bench.append(legislator)
        league.draft_status = DRAFT_COMPLETED
    LOGGER.info("Draft complete for %s: %d picks", league.name, len(chosen))

    schedule_generated = True
    try:
        generate_round_robin_schedule(repo, league_id)
    except Exception:
        LOGGER.exception("Failed to generate matchup schedule for league %s", league_id)
        schedule_generated = False
    return DraftResult(picks=len(chosen), schedule_generated=schedule_generated)
