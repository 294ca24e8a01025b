"""Score categories, point values and score aggregation.

Point table (all values in this module are the single source of truth):

===================  ===================================================
Category             Points
===================  ===================================================
PROPOSE_BILL         3 per proposed bill, +6 when the bill has passed
COSIGN_BILL          3 per cosigned bill that reached third reading
WRITTEN_SPEECH       3 per written interpellation
FLOOR_SPEECH         1 per meeting the legislator spoke at
ROLLCALL_VOTE        1 per roll-call participation
MAVERICK_BONUS       3 / 6 / 9 when >=70 / >=80 / >=90 % of the party
                     voted the other way
===================  ===================================================

A score row is unique on ``(legislator_id, category, dedupe_key)``.  How the
dedupe key is built depends on the category's :class:`DedupeStrategy`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from .week_calendar import week_start

# ── Point constants ──────────────────────────────────────────────────────────

PROPOSE_BASE_POINTS = 3
PROPOSE_PASSED_BONUS = 6
COSIGN_POINTS = 3
WRITTEN_INTERPELLATION_POINTS = 3
FLOOR_SPEECH_POINTS = 1
ROLLCALL_POINTS = 1

# (threshold %, bonus) checked from the top down
MAVERICK_TIERS: tuple[tuple[float, int], ...] = ((90, 9), (80, 6), (70, 3))

# Vote issues are long; only the leading characters go into the key.
ISSUE_KEY_LENGTH = 50

_PASSED_MARKERS = ("三讀", "通過")
_THIRD_READING = "三讀"


class DedupeStrategy(str, enum.Enum):
    BILL = "bill"  # one row per bill number
    DATED_DESCRIPTION = "dated_description"  # one row per (date, description)
    WEEK_PREFIX = "week_prefix"  # one row per (week start, issue prefix)


class ScoreCategory(str, enum.Enum):
    PROPOSE_BILL = "PROPOSE_BILL"
    COSIGN_BILL = "COSIGN_BILL"
    WRITTEN_SPEECH = "WRITTEN_SPEECH"
    FLOOR_SPEECH = "FLOOR_SPEECH"
    ROLLCALL_VOTE = "ROLLCALL_VOTE"
    MAVERICK_BONUS = "MAVERICK_BONUS"
    LEGACY_SEED = "LEGACY_SEED"

    @property
    def dedupe_strategy(self) -> DedupeStrategy:
        return _STRATEGIES[self]


_STRATEGIES: dict[ScoreCategory, DedupeStrategy] = {
    ScoreCategory.PROPOSE_BILL: DedupeStrategy.BILL,
    ScoreCategory.COSIGN_BILL: DedupeStrategy.BILL,
    ScoreCategory.WRITTEN_SPEECH: DedupeStrategy.DATED_DESCRIPTION,
    ScoreCategory.FLOOR_SPEECH: DedupeStrategy.DATED_DESCRIPTION,
    ScoreCategory.ROLLCALL_VOTE: DedupeStrategy.WEEK_PREFIX,
    ScoreCategory.MAVERICK_BONUS: DedupeStrategy.WEEK_PREFIX,
    ScoreCategory.LEGACY_SEED: DedupeStrategy.DATED_DESCRIPTION,
}


# ── Bill status helpers ──────────────────────────────────────────────────────


def is_bill_passed(status: str | None) -> bool:
    """True when a 議案狀態 mentions third reading or passage."""
    if not status:
        return False
    return any(marker in status for marker in _PASSED_MARKERS)


def has_third_reading(status: str | None) -> bool:
    """Cosign points are only awarded for bills that reached 三讀."""
    return bool(status) and _THIRD_READING in status


def propose_points(status: str | None) -> int:
    if is_bill_passed(status):
        return PROPOSE_BASE_POINTS + PROPOSE_PASSED_BONUS
    return PROPOSE_BASE_POINTS


# ── Dedupe keys ──────────────────────────────────────────────────────────────


def dedupe_key(
    category: ScoreCategory,
    *,
    bill_number: str | None = None,
    date: datetime | None = None,
    description: str | None = None,
    issue: str | None = None,
) -> str:
    """Build the storage dedupe key for a score of *category*.

    >>> dedupe_key(ScoreCategory.PROPOSE_BILL, bill_number="院總第20號")
    '院總第20號'
    >>> dedupe_key(ScoreCategory.FLOOR_SPEECH, date=datetime(2024, 3, 5),
    ...            description="Floor Speech: 院會")
    '2024-03-05|Floor Speech: 院會'
    """
    strategy = category.dedupe_strategy
    if strategy is DedupeStrategy.BILL:
        if not bill_number:
            raise ValueError(f"{category.value} requires a bill number")
        return bill_number
    if date is None:
        raise ValueError(f"{category.value} requires a date")
    if strategy is DedupeStrategy.DATED_DESCRIPTION:
        return f"{date.date().isoformat()}|{description or ''}"
    start = week_start(date)
    return f"{start.date().isoformat()}|{(issue or '')[:ISSUE_KEY_LENGTH]}"


# ── Aggregation ──────────────────────────────────────────────────────────────


class ScoreLike(Protocol):
    category: str
    date: datetime
    points: float


@dataclass
class CategoryScores:
    """Per-category totals for one legislator or team over a window."""

    propose_bill: float = 0
    cosign_bill: float = 0
    written_speech: float = 0
    floor_speech: float = 0
    rollcall_vote: float = 0
    maverick_bonus: float = 0
    other: float = 0
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return (
            self.propose_bill
            + self.cosign_bill
            + self.written_speech
            + self.floor_speech
            + self.rollcall_vote
            + self.maverick_bonus
            + self.other
        )

    def add(self, category: str, points: float) -> None:
        attr = category.lower()
        if category == ScoreCategory.LEGACY_SEED.value or not hasattr(self, attr):
            attr = "other"
        setattr(self, attr, getattr(self, attr) + points)
        self.counts[category] = self.counts.get(category, 0) + 1


def _category_value(category: str | ScoreCategory) -> str:
    return category.value if isinstance(category, ScoreCategory) else str(category)


def scores_by_category(
    scores: Iterable[ScoreLike],
    start: datetime | None = None,
    end: datetime | None = None,
) -> CategoryScores:
    """Sum points per category, optionally restricted to ``[start, end]``."""
    result = CategoryScores()
    for score in scores:
        if start is not None and score.date < start:
            continue
        if end is not None and score.date > end:
            continue
        result.add(_category_value(score.category), score.points)
    return result


def distinct_weeks(scores: Iterable[ScoreLike]) -> int:
    return len({week_start(score.date) for score in scores})


def average_score(scores: Iterable[ScoreLike]) -> float:
    """Total points divided by the number of distinct weeks that scored."""
    scores = list(scores)
    weeks = distinct_weeks(scores)
    if weeks == 0:
        return 0.0
    return sum(score.points for score in scores) / weeks


def average_scores_by_category(scores: Iterable[ScoreLike]) -> dict[str, float]:
    """Per-category weekly average over the weeks the legislator scored at all."""
    scores = list(scores)
    weeks = distinct_weeks(scores)
    if weeks == 0:
        return {}
    totals: dict[str, float] = {}
    for score in scores:
        key = _category_value(score.category)
        totals[key] = totals.get(key, 0) + score.points
    return {category: total / weeks for category, total in totals.items()}
