"""Proposed and cosigned bills from ly.govapi.tw.

Both feeds return the same bill shape; they differ in which bills score and
how many points each is worth.  Bills are looked up by the legislator's full
name, including any Latin part (indigenous legislators).
"""

from __future__ import annotations

import logging

import httpx

from ..db import Legislator
from ..models import BillRecord, ScoreDraft
from ..scoring import (
    COSIGN_POINTS,
    ScoreCategory,
    dedupe_key,
    has_third_reading,
    is_bill_passed,
    propose_points,
)
from ..week_calendar import parse_feed_date
from .base import SourceAdapter, fetch_paginated, govapi_legislator_url, output_field_params

LOGGER = logging.getLogger(__name__)

BILL_OUTPUT_FIELDS = (
    "屆",
    "議案編號",
    "議案名稱",
    "提案日期",
    "字號",
    "法律編號",
    "議案狀態",
    "最新進度日期",
    "提案人",
)


class _BillAdapter(SourceAdapter):
    resource: str
    verb: str
    output_fields: tuple[str, ...] = BILL_OUTPUT_FIELDS

    async def fetch(self, client: httpx.AsyncClient, legislator: Legislator) -> list[BillRecord]:
        url = govapi_legislator_url(legislator.name_ch, self.resource)
        raw = await fetch_paginated(
            client, url, items_key="bills", params=output_field_params(self.output_fields)
        )
        LOGGER.info("  Fetched %d %s for %s", len(raw), self.resource, legislator.name_ch)
        return [BillRecord.from_feed(item) for item in raw]

    def accepts(self, bill: BillRecord) -> bool:
        return True

    def points(self, bill: BillRecord) -> int:
        raise NotImplementedError

    def describe(self, bill: BillRecord) -> str:
        description = self.verb
        if bill.title:
            description += f": {bill.title}"
        if bill.bill_number:
            description += f" (字號: {bill.bill_number})"
        return description

    def metadata(self, bill: BillRecord) -> dict:
        return {
            "billId": bill.bill_id or None,
            "lawNumber": bill.law_number,
            "status": bill.status,
            "latestProgressDate": bill.latest_progress_date,
            "proposingUnit": bill.proposing_unit,
        }

    def build_scores(self, legislator: Legislator, records: list[BillRecord]) -> list[ScoreDraft]:
        drafts: list[ScoreDraft] = []
        for bill in records:
            if not self.accepts(bill):
                continue
            number = bill.dedupe_number
            if not number:
                LOGGER.info("  Skipping bill with no number: %s", bill.title or "Unknown")
                continue
            date_str = bill.proposal_date or bill.latest_progress_date
            date = parse_feed_date(date_str)
            if date is None:
                LOGGER.info("  Skipping bill with no usable date: %s (%r)", number, date_str)
                continue
            drafts.append(
                ScoreDraft(
                    legislator_id=legislator.id,
                    category=self.category.value,
                    date=date,
                    points=self.points(bill),
                    description=self.describe(bill),
                    dedupe_key=dedupe_key(self.category, bill_number=number),
                    bill_number=bill.bill_number or number,
                    bill_title=bill.title,
                    metadata=self.metadata(bill),
                )
            )
        return drafts


class ProposeBillAdapter(_BillAdapter):
    category = ScoreCategory.PROPOSE_BILL
    error_label = "Propose Bills API"
    resource = "propose_bills"
    verb = "Proposed"

    def points(self, bill: BillRecord) -> int:
        return propose_points(bill.status)

    def describe(self, bill: BillRecord) -> str:
        description = super().describe(bill)
        if is_bill_passed(bill.status):
            description += " ✓ Passed"
        return description

    def metadata(self, bill: BillRecord) -> dict:
        meta = super().metadata(bill)
        meta["passed"] = is_bill_passed(bill.status)
        return meta


class CosignBillAdapter(_BillAdapter):
    """Only bills that reached third reading (三讀) earn cosign points."""

    category = ScoreCategory.COSIGN_BILL
    error_label = "Cosign Bills API"
    resource = "cosign_bills"
    verb = "Cosigned"
    output_fields = BILL_OUTPUT_FIELDS + ("連署人",)

    def accepts(self, bill: BillRecord) -> bool:
        return has_third_reading(bill.status)

    def points(self, bill: BillRecord) -> int:
        return COSIGN_POINTS
