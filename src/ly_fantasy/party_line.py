"""Party-line analysis for roll-call votes.

For each party we count FOR / AGAINST / ABSTAIN among its matched members.
The party's majority position is FOR when more than half of its members voted
FOR, otherwise AGAINST (an exact 50/50 split resolves to AGAINST).

A legislator who voted FOR or AGAINST *against* that majority earns the
maverick bonus tier matching the share of the party that voted the other way.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

from .models import ParsedVote, VoteChoice
from .scoring import MAVERICK_TIERS


class PartyMember(Protocol):
    party: str | None


@dataclass
class PartyVoteStats:
    party: str
    for_count: int = 0
    against_count: int = 0
    abstain_count: int = 0

    @property
    def total(self) -> int:
        return self.for_count + self.against_count + self.abstain_count

    def percentage(self, choice: VoteChoice) -> float:
        if self.total == 0:
            return 0.0
        count = {
            VoteChoice.FOR: self.for_count,
            VoteChoice.AGAINST: self.against_count,
            VoteChoice.ABSTAIN: self.abstain_count,
        }[choice]
        return count / self.total * 100

    def record(self, choice: VoteChoice) -> None:
        if choice is VoteChoice.FOR:
            self.for_count += 1
        elif choice is VoteChoice.AGAINST:
            self.against_count += 1
        else:
            self.abstain_count += 1


def compute_party_stats(
    votes: Iterable[ParsedVote],
    matched: Mapping[str, PartyMember],
) -> dict[str, PartyVoteStats]:
    """Tally votes per party.  Unmatched names and party-less members are skipped."""
    stats: dict[str, PartyVoteStats] = {}
    for vote in votes:
        member = matched.get(vote.legislator_name)
        if member is None or not member.party:
            continue
        party_stats = stats.setdefault(member.party, PartyVoteStats(member.party))
        party_stats.record(vote.vote)
    return stats


def majority_position(stats: PartyVoteStats) -> VoteChoice:
    if stats.percentage(VoteChoice.FOR) > 50:
        return VoteChoice.FOR
    return VoteChoice.AGAINST


def opposition_percentage(choice: VoteChoice, stats: PartyVoteStats) -> float:
    """Share of the party that voted the opposite way to *choice*."""
    if choice is VoteChoice.FOR:
        return stats.percentage(VoteChoice.AGAINST)
    if choice is VoteChoice.AGAINST:
        return stats.percentage(VoteChoice.FOR)
    return 0.0


def maverick_bonus(
    choice: VoteChoice,
    party: str | None,
    party_stats: Mapping[str, PartyVoteStats],
) -> int:
    """Bonus points for breaking with the party majority (0 when not a maverick).

    >>> stats = {"民進黨": PartyVoteStats("民進黨", for_count=9, against_count=1)}
    >>> maverick_bonus(VoteChoice.AGAINST, "民進黨", stats)
    9
    """
    if choice is VoteChoice.ABSTAIN or not party:
        return 0
    stats = party_stats.get(party)
    if stats is None or stats.total == 0:
        return 0
    if choice is majority_position(stats):
        return 0
    opposed = opposition_percentage(choice, stats)
    for threshold, bonus in MAVERICK_TIERS:
        if opposed >= threshold:
            return bonus
    return 0
