"""Roll-call (記名表決) votes from the LY open-data portal.

Pipeline per vote event:

1. ``fetch_rollcall_index`` -- dataset 370 lists every vote of the term with a
   link to a per-vote spreadsheet; only ``voteType == "記名"`` entries are kept.
2. ``download_vote_sheet`` + ``read_sheet_rows`` -- the spreadsheet is read
   with polars (calamine engine) into rows of strings.
3. ``parse_vote_rows`` -- walk the rows, tracking the current section
   (贊成: / 反對: / 棄權:), and pull names out of the cells.
4. ``build_rollcall_scores`` -- every matched voter gets a participation
   point; party-line breakers also get a maverick bonus.

Sheet cells come in three shapes, all seen in the wild::

    ["0001  王小明"]        seat number and name in one cell, spaced
    ["025伍麗華"]           seat number fused to the name (maybe full-width)
    ["025", "伍麗華"]       seat number and name in adjacent cells
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import httpx
import polars as pl

from .. import config as cfg
from ..errors import FetchError
from ..http import fetch_with_retry, json_or_none
from ..legislator_matcher import LegislatorMatcher, normalize_sheet_name
from ..models import ParsedVote, RollcallEvent, ScoreDraft, VoteChoice
from ..party_line import compute_party_stats, maverick_bonus
from ..scoring import ROLLCALL_POINTS, ScoreCategory, dedupe_key
from ..week_calendar import from_roc_date, week_start

LOGGER = logging.getLogger(__name__)

ROLLCALL_VOTE_TYPE = "記名"
NO_MEMBERS_MARKER = "無"

_RE_FUSED_CELL = re.compile(r"^([\d\uff10-\uff19]{1,3})(.+)$")
_RE_DIGITS_ONLY = re.compile(r"^[\d\uff10-\uff19]+$")
# Numeric cells read as text come back as "25.0".
_RE_FLOAT_SEAT = re.compile(r"^(\d+)\.0+$")


# ── Index ────────────────────────────────────────────────────────────────────


async def fetch_rollcall_index(
    client: httpx.AsyncClient,
    *,
    term: int | None = None,
    attempts: int | None = None,
    retry_delay_s: float | None = None,
) -> list[RollcallEvent]:
    """Fetch the term's roll-call votes, oldest first as the portal returns them.

    The open-data portal is flaky, so on top of ``fetch_with_retry`` the whole
    request is retried up to *attempts* times, sleeping ``retry_delay_s * n``
    after the n-th failure.  The last failure propagates.
    """
    term = cfg.LEGISLATIVE_TERM if term is None else term
    attempts = cfg.ROLLCALL_INDEX_ATTEMPTS if attempts is None else attempts
    delay = cfg.ROLLCALL_INDEX_RETRY_DELAY_S if retry_delay_s is None else retry_delay_s
    params = {"id": cfg.ROLLCALL_DATASET_ID, "selectTerm": term}

    failures = 0
    while True:
        try:
            response = await fetch_with_retry(client, cfg.LY_OPEN_DATA_URL, params=params)
            if not response.is_success:
                raise FetchError(
                    f"Status {response.status_code}",
                    url=str(response.url),
                    status_code=response.status_code,
                )
            data = json_or_none(response)
            if not isinstance(data, dict) or not isinstance(data.get("jsonList"), list):
                raise FetchError("Roll-call index has no jsonList", url=str(response.url))
            break
        except (FetchError, httpx.TransportError) as exc:
            failures += 1
            LOGGER.warning("Roll-call index failed (attempt %d/%d): %s", failures, attempts, exc)
            if failures >= attempts:
                raise
            await asyncio.sleep(delay * failures)

    events = [
        RollcallEvent.from_feed(item)
        for item in data["jsonList"]
        if isinstance(item, dict) and item.get("voteType") == ROLLCALL_VOTE_TYPE
    ]
    LOGGER.info("Roll-call index: %d 記名 votes of %d", len(events), len(data["jsonList"]))
    return events


# ── Spreadsheet ──────────────────────────────────────────────────────────────


async def download_vote_sheet(client: httpx.AsyncClient, url: str) -> bytes:
    response = await fetch_with_retry(client, url)
    if not response.is_success:
        raise FetchError(
            f"Failed XLS: {response.status_code}", url=url, status_code=response.status_code
        )
    return response.content


def read_sheet_rows(content: bytes) -> list[list[str]]:
    """First worksheet as rows of stripped strings (empty cells become ``""``)."""
    df = pl.read_excel(
        io.BytesIO(content),
        engine="calamine",
        has_header=False,
        infer_schema_length=0,
        raise_if_empty=False,
    )
    return [[_clean_cell(cell) for cell in row] for row in df.rows()]


def _clean_cell(cell: object) -> str:
    if cell is None:
        return ""
    text = str(cell).strip()
    match = _RE_FLOAT_SEAT.match(text)
    return match.group(1) if match else text


def _section_header(cells: Sequence[str]) -> VoteChoice | None:
    for cell in cells:
        choice = VoteChoice.from_header(cell)
        if choice is not None:
            return choice
    return None


def parse_vote_rows(rows: Iterable[Sequence[object]]) -> list[ParsedVote]:
    """Extract ``(name, choice)`` pairs from spreadsheet rows.

    Rows before the first section header are ignored, as are rows that
    contain ``"無"`` (an empty section).  A name found twice in one sheet is
    kept once.
    """
    votes: list[ParsedVote] = []
    seen: set[str] = set()
    current: VoteChoice | None = None

    for row in rows:
        cells = ["" if c is None else str(c).strip() for c in row]

        header = _section_header(cells)
        if header is not None:
            current = header
            continue
        if current is None or NO_MEMBERS_MARKER in cells:
            continue

        found: list[str] = []
        for cell in cells:
            match = _RE_FUSED_CELL.match(cell)
            if match:
                found.append(normalize_sheet_name(match.group(2)))
        for i, cell in enumerate(cells[:-1]):
            if _RE_DIGITS_ONLY.match(cell) and cells[i + 1]:
                found.append(normalize_sheet_name(cells[i + 1]))

        for name in found:
            if name and name not in seen:
                seen.add(name)
                votes.append(ParsedVote(name, current))
    return votes


# ── Scoring ──────────────────────────────────────────────────────────────────


@dataclass
class RollcallScores:
    rollcall: list[ScoreDraft] = field(default_factory=list)
    maverick: list[ScoreDraft] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)


def build_rollcall_scores(
    event: RollcallEvent,
    votes: list[ParsedVote],
    matcher: LegislatorMatcher,
) -> RollcallScores:
    """Participation and maverick scores for one vote, dated at its week start.

    Raises ``ValueError`` when the event's ROC vote date is unparsable.
    """
    week = week_start(from_roc_date(event.vote_date))
    matched, unmatched = matcher.match_all(v.legislator_name for v in votes)
    stats = compute_party_stats(votes, matched)

    result = RollcallScores(unmatched=unmatched)
    for vote in votes:
        legislator = matched.get(vote.legislator_name)
        if legislator is None:
            continue
        result.rollcall.append(
            ScoreDraft(
                legislator_id=legislator.id,
                category=ScoreCategory.ROLLCALL_VOTE.value,
                date=week,
                points=ROLLCALL_POINTS,
                description=f"Rollcall vote on {event.vote_issue}",
                dedupe_key=dedupe_key(
                    ScoreCategory.ROLLCALL_VOTE, date=week, issue=event.vote_issue
                ),
                metadata={"vote": vote.vote.value, "sessionPeriod": event.session_period},
            )
        )
        bonus = maverick_bonus(vote.vote, legislator.party, stats)
        if bonus > 0:
            result.maverick.append(
                ScoreDraft(
                    legislator_id=legislator.id,
                    category=ScoreCategory.MAVERICK_BONUS.value,
                    date=week,
                    points=bonus,
                    description=f"Voted independently ({vote.vote.value}) on {event.vote_issue}",
                    dedupe_key=dedupe_key(
                        ScoreCategory.MAVERICK_BONUS, date=week, issue=event.vote_issue
                    ),
                    metadata={"vote": vote.vote.value, "party": legislator.party},
                )
            )
    return result
