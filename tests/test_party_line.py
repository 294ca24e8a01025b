from __future__ import annotations

from dataclasses import dataclass

from ly_fantasy.models import ParsedVote, VoteChoice
from ly_fantasy.party_line import (
    PartyVoteStats,
    compute_party_stats,
    majority_position,
    maverick_bonus,
)

FOR, AGAINST, ABSTAIN = VoteChoice.FOR, VoteChoice.AGAINST, VoteChoice.ABSTAIN


@dataclass
class _Member:
    party: str | None


def _party_votes(party: str, choices: list[VoteChoice]) -> tuple[list[ParsedVote], dict]:
    votes = [ParsedVote(f"{party}{i}", choice) for i, choice in enumerate(choices)]
    matched = {v.legislator_name: _Member(party) for v in votes}
    return votes, matched


class TestComputePartyStats:
    def test_counts_per_party(self) -> None:
        votes, matched = _party_votes("A", [FOR, FOR, AGAINST, ABSTAIN])
        stats = compute_party_stats(votes, matched)
        assert stats["A"].for_count == 2
        assert stats["A"].against_count == 1
        assert stats["A"].abstain_count == 1
        assert stats["A"].total == 4

    def test_skips_unmatched_and_partyless(self) -> None:
        votes = [ParsedVote("x", FOR), ParsedVote("y", FOR)]
        stats = compute_party_stats(votes, {"y": _Member(None)})
        assert stats == {}


class TestMajority:
    def test_for_majority(self) -> None:
        assert majority_position(PartyVoteStats("A", for_count=3, against_count=2)) is FOR

    def test_even_split_is_against(self) -> None:
        assert majority_position(PartyVoteStats("A", for_count=2, against_count=2)) is AGAINST

    def test_abstentions_count_toward_total(self) -> None:
        # 2 of 5 FOR is not a majority
        stats = PartyVoteStats("A", for_count=2, against_count=1, abstain_count=2)
        assert majority_position(stats) is AGAINST


class TestMaverickBonus:
    def test_tiers(self) -> None:
        for for_count, expected in [(9, 9), (8, 6), (7, 3), (6, 0)]:
            stats = {"A": PartyVoteStats("A", for_count=for_count, against_count=10 - for_count)}
            assert maverick_bonus(AGAINST, "A", stats) == expected

    def test_majority_voter_gets_nothing(self) -> None:
        stats = {"A": PartyVoteStats("A", for_count=9, against_count=1)}
        assert maverick_bonus(FOR, "A", stats) == 0

    def test_abstain_never_scores(self) -> None:
        stats = {"A": PartyVoteStats("A", for_count=9, abstain_count=1)}
        assert maverick_bonus(ABSTAIN, "A", stats) == 0

    def test_for_voter_against_against_majority(self) -> None:
        stats = {"A": PartyVoteStats("A", for_count=1, against_count=9)}
        assert maverick_bonus(FOR, "A", stats) == 9

    def test_unknown_party(self) -> None:
        assert maverick_bonus(AGAINST, "B", {}) == 0
        assert maverick_bonus(AGAINST, None, {}) == 0
