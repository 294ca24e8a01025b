"""Written interpellations (書面質詢) from ly.govapi.tw.

The interpellation endpoint rejects mixed-script names, so the lookup uses
only the Han characters of the legislator's name.
"""

from __future__ import annotations

import logging

import httpx

from ..db import Legislator
from ..legislator_matcher import extract_han_name
from ..models import InterpellationRecord, ScoreDraft
from ..scoring import WRITTEN_INTERPELLATION_POINTS, ScoreCategory, dedupe_key
from ..week_calendar import parse_feed_date
from .base import SourceAdapter, fetch_paginated, govapi_legislator_url, output_field_params

LOGGER = logging.getLogger(__name__)

INTERPELLATION_OUTPUT_FIELDS = ("屆", "會期", "質詢編號", "刊登日期", "質詢委員", "事由")


class WrittenInterpellationAdapter(SourceAdapter):
    category = ScoreCategory.WRITTEN_SPEECH
    error_label = "Written Interpellations API"

    async def fetch(
        self, client: httpx.AsyncClient, legislator: Legislator
    ) -> list[InterpellationRecord]:
        url = govapi_legislator_url(extract_han_name(legislator.name_ch), "interpellations")
        raw = await fetch_paginated(
            client,
            url,
            items_key="interpellations",
            params=output_field_params(INTERPELLATION_OUTPUT_FIELDS),
        )
        LOGGER.info("  Fetched %d interpellations for %s", len(raw), legislator.name_ch)
        return [InterpellationRecord.from_feed(item) for item in raw]

    def build_scores(
        self, legislator: Legislator, records: list[InterpellationRecord]
    ) -> list[ScoreDraft]:
        drafts: list[ScoreDraft] = []
        for record in records:
            date = parse_feed_date(record.published_date)
            if date is None:
                LOGGER.info(
                    "  Skipping interpellation with no usable date: %s", record.subject or "Unknown"
                )
                continue
            description = "Written Interpellation"
            if record.subject:
                description += f": {record.subject}"
            drafts.append(
                ScoreDraft(
                    legislator_id=legislator.id,
                    category=self.category.value,
                    date=date,
                    points=WRITTEN_INTERPELLATION_POINTS,
                    description=description,
                    dedupe_key=dedupe_key(self.category, date=date, description=description),
                    metadata={
                        "interpellationId": record.interpellation_id or None,
                        "sessionPeriod": record.session_period,
                    },
                )
            )
        return drafts
