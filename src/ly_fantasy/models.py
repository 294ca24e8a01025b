"""Normalized intermediate records produced by the source adapters.

Feed payloads are Chinese-keyed JSON (govapi, LY WebAPI, open data).  Each
adapter maps the fields it needs into one of these dataclasses before any
scoring happens, so the scoring and persistence code never sees raw keys.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


class VoteChoice(str, enum.Enum):
    FOR = "贊成"
    AGAINST = "反對"
    ABSTAIN = "棄權"

    @classmethod
    def from_header(cls, cell: str) -> VoteChoice | None:
        """Map a spreadsheet section header such as ``"贊成:"`` to a choice.

        The colon (ASCII or full-width) is required; a bare ``"贊成"`` is not a
        header.
        """
        label = cell.strip()
        if not label.endswith((":", "：")):
            return None
        label = label[:-1].strip()
        for choice in cls:
            if choice.value == label:
                return choice
        return None


@dataclass
class BillRecord:
    """A proposed or cosigned bill from ``/legislators/{term}/{name}/*_bills``."""

    bill_id: str  # 議案編號
    title: str | None  # 議案名稱
    bill_number: str | None  # 字號
    status: str | None  # 議案狀態 (free text)
    proposal_date: str | None  # 提案日期, "YYYY-MM-DD"
    latest_progress_date: str | None = None  # 最新進度日期
    law_number: str | None = None  # 法律編號 (first entry when a list)
    proposing_unit: str | None = None  # 提案單位
    proposers: list[str] = field(default_factory=list)  # 提案人
    cosigners: list[str] = field(default_factory=list)  # 連署人

    @property
    def dedupe_number(self) -> str | None:
        """字號 when present, else the stable 議案編號."""
        return self.bill_number or self.bill_id or None

    @classmethod
    def from_feed(cls, raw: dict[str, Any]) -> BillRecord:
        law_number = raw.get("法律編號")
        if isinstance(law_number, list):
            law_number = law_number[0] if law_number else None
        return cls(
            bill_id=str(raw.get("議案編號") or ""),
            title=raw.get("議案名稱") or None,
            bill_number=raw.get("字號") or None,
            status=raw.get("議案狀態") or None,
            proposal_date=raw.get("提案日期") or None,
            latest_progress_date=raw.get("最新進度日期") or None,
            law_number=law_number or None,
            proposing_unit=raw.get("提案單位") or None,
            proposers=list(raw.get("提案人") or []),
            cosigners=list(raw.get("連署人") or []),
        )


@dataclass
class InterpellationRecord:
    """A written interpellation from ``/legislators/{term}/{name}/interpellations``."""

    interpellation_id: str  # 質詢編號
    published_date: str | None  # 刊登日期
    subject: str | None  # 事由
    session_period: int | None = None  # 會期
    legislators: list[str] = field(default_factory=list)  # 質詢委員

    @classmethod
    def from_feed(cls, raw: dict[str, Any]) -> InterpellationRecord:
        return cls(
            interpellation_id=str(raw.get("質詢編號") or ""),
            published_date=raw.get("刊登日期") or None,
            subject=raw.get("事由") or None,
            session_period=raw.get("會期"),
            legislators=list(raw.get("質詢委員") or []),
        )


@dataclass
class FloorSpeechMeeting:
    """One meeting from the LY WebAPI ``LegislativeSpeech.aspx`` feed."""

    meeting_date: str  # smeeting_date, ROC "YYY/MM/DD"
    meeting_name: str
    meeting_status: str = ""
    meeting_content: str = ""
    meeting_unit: str = ""
    speechers: str = ""  # "0001 Name1, 0002 Name2, ..."

    @classmethod
    def from_feed(cls, raw: dict[str, Any]) -> FloorSpeechMeeting:
        return cls(
            meeting_date=str(raw.get("smeeting_date") or ""),
            meeting_name=str(raw.get("meeting_name") or ""),
            meeting_status=str(raw.get("meeting_status") or ""),
            meeting_content=str(raw.get("meeting_content") or ""),
            meeting_unit=str(raw.get("meeting_unit") or ""),
            speechers=str(raw.get("speechers") or ""),
        )


@dataclass
class RollcallEvent:
    """One entry of the open-data roll-call index (dataset 370)."""

    vote_date: str  # ROC "YYY/MM/DD"
    term: str
    vote_issue: str
    vote_type: str  # "記名" for roll-call
    session_period: str
    url: str  # spreadsheet download
    vote_time: str = ""

    @classmethod
    def from_feed(cls, raw: dict[str, Any]) -> RollcallEvent:
        return cls(
            vote_date=str(raw.get("voteDate") or ""),
            term=str(raw.get("term") or ""),
            vote_issue=str(raw.get("voteIssue") or ""),
            vote_type=str(raw.get("voteType") or ""),
            session_period=str(raw.get("sessionPeriod") or ""),
            url=str(raw.get("url") or ""),
            vote_time=str(raw.get("voteTime") or ""),
        )


@dataclass(frozen=True)
class ParsedVote:
    """A single row of a roll-call spreadsheet."""

    legislator_name: str
    vote: VoteChoice


@dataclass
class LegislatorRecord:
    """A roster entry from the open-data legislator list (dataset 9)."""

    external_id: str
    name_ch: str
    name_en: str = ""
    party: str = ""
    sex: str = ""
    pic_url: str = ""
    area_name: str = ""
    committee: str = ""
    onboard_date: str = ""
    leave_flag: str = ""
    leave_date: str = ""
    leave_reason: str = ""


@dataclass
class ScoreDraft:
    """A score about to be persisted (output of an adapter's mapping step)."""

    legislator_id: str
    category: str
    date: datetime
    points: float
    description: str
    dedupe_key: str
    bill_number: str | None = None
    bill_title: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class SyncStats:
    """Aggregate statistics returned by every sync entry point."""

    processed_count: int = 0
    error_count: int = 0
    total_scores_created: int = 0
    errors: list[str] = field(default_factory=list)
    rollcall_scores: int | None = None
    maverick_scores: int | None = None

    def merge(self, other: SyncStats) -> None:
        self.processed_count += other.processed_count
        self.error_count += other.error_count
        self.total_scores_created += other.total_scores_created
        self.errors.extend(other.errors)
        if other.rollcall_scores is not None:
            self.rollcall_scores = (self.rollcall_scores or 0) + other.rollcall_scores
        if other.maverick_scores is not None:
            self.maverick_scores = (self.maverick_scores or 0) + other.maverick_scores

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}
