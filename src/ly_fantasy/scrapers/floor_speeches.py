"""Floor speeches (院會發言) from the Legislative Yuan WebAPI.

Unlike the govapi feeds, this one is queried once per run for a date range and
returns every meeting with its speaker list.  Speaker names are resolved
against the roster once per run with :class:`LegislatorMatcher`; names that
match nobody are kept on the adapter as ``unresolved``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

import httpx

from .. import config as cfg
from ..db import Legislator
from ..errors import FetchError
from ..http import fetch_with_retry, json_or_none
from ..legislator_matcher import LegislatorMatcher
from ..models import FloorSpeechMeeting, ScoreDraft
from ..scoring import FLOOR_SPEECH_POINTS, ScoreCategory, dedupe_key
from ..week_calendar import from_roc_date, to_roc_date
from .base import SourceAdapter

LOGGER = logging.getLogger(__name__)

_RE_SPEECHER = re.compile(r"^\d+\s+(.+)$")


def floor_speech_url() -> str:
    return f"{cfg.LY_WEBAPI_URL}LegislativeSpeech.aspx"


def parse_speechers(speechers: str) -> list[str]:
    """Split ``"0001 Name1, 0002 Name2"`` into names; entries without a seat number are dropped.

    >>> parse_speechers("0001 王小明, 0002 李大華")
    ['王小明', '李大華']
    """
    if not speechers:
        return []
    names: list[str] = []
    for item in speechers.split(","):
        match = _RE_SPEECHER.match(item.strip())
        if match:
            names.append(match.group(1).strip())
    return names


async def fetch_floor_speeches(
    client: httpx.AsyncClient,
    date_from: datetime,
    date_to: datetime,
) -> list[FloorSpeechMeeting]:
    """All meetings with speeches between *date_from* and *date_to* (inclusive)."""
    params = {
        "from": to_roc_date(date_from),
        "to": to_roc_date(date_to),
        "mode": "JSON",
    }
    LOGGER.info("Fetching floor speeches from %s to %s...", params["from"], params["to"])
    response = await fetch_with_retry(client, floor_speech_url(), params=params)
    if not response.is_success:
        raise FetchError(
            f"Legislative Yuan API returned status {response.status_code}",
            url=str(response.url),
            status_code=response.status_code,
        )
    data = json_or_none(response)
    if not isinstance(data, list):
        LOGGER.info("No floor speeches found")
        return []
    meetings = [FloorSpeechMeeting.from_feed(item) for item in data if isinstance(item, dict)]
    LOGGER.info("Found %d meetings with speeches", len(meetings))
    return meetings


def _meeting_key(meeting: FloorSpeechMeeting) -> tuple[str, str]:
    return meeting.meeting_date, meeting.meeting_name


class FloorSpeechAdapter(SourceAdapter):
    """Scores one legislator against a meeting list fetched once per run."""

    category = ScoreCategory.FLOOR_SPEECH
    error_label = "Floor Speeches API"

    def __init__(
        self,
        meetings: list[FloorSpeechMeeting] | None = None,
        matcher: LegislatorMatcher | None = None,
    ):
        self.meetings = list(meetings or [])
        self.unresolved: list[str] = []
        # (meeting date, meeting name) -> ids of the legislators who spoke
        self._speakers: dict[tuple[str, str], set[str]] | None = None
        if matcher is not None:
            self._resolve_speakers(matcher)

    def _resolve_speakers(self, matcher: LegislatorMatcher) -> None:
        names = [name for m in self.meetings for name in parse_speechers(m.speechers)]
        matched, self.unresolved = matcher.match_all(names)
        self._speakers = {}
        for meeting in self.meetings:
            ids = self._speakers.setdefault(_meeting_key(meeting), set())
            ids.update(
                matched[name].id for name in parse_speechers(meeting.speechers) if name in matched
            )

    def spoke_at(self, legislator: Legislator, meeting: FloorSpeechMeeting) -> bool:
        if self._speakers is None:
            return legislator.name_ch in parse_speechers(meeting.speechers)
        return legislator.id in self._speakers.get(_meeting_key(meeting), ())

    async def fetch(
        self, client: httpx.AsyncClient, legislator: Legislator
    ) -> list[FloorSpeechMeeting]:
        return self.meetings

    def build_scores(
        self, legislator: Legislator, records: list[FloorSpeechMeeting]
    ) -> list[ScoreDraft]:
        drafts: list[ScoreDraft] = []
        for meeting in records:
            if not self.spoke_at(legislator, meeting):
                continue
            try:
                date = from_roc_date(meeting.meeting_date)
            except ValueError:
                LOGGER.info("  Skipping meeting with invalid date: %r", meeting.meeting_date)
                continue
            description = f"Floor Speech: {meeting.meeting_name}"
            drafts.append(
                ScoreDraft(
                    legislator_id=legislator.id,
                    category=self.category.value,
                    date=date,
                    points=FLOOR_SPEECH_POINTS,
                    description=description,
                    dedupe_key=dedupe_key(self.category, date=date, description=description),
                    metadata={
                        "meetingDate": meeting.meeting_date,
                        "meetingUnit": meeting.meeting_unit,
                        "meetingContent": meeting.meeting_content,
                        "meetingStatus": meeting.meeting_status,
                    },
                )
            )
        return drafts
