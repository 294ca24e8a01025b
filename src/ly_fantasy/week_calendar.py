"""Week math and ROC (民國) calendar conversion.

Weeks run Monday 00:00:00.000 through Sunday 23:59:59.999.  The Monday is the
stable key used to group scores and to dedupe week-attributed categories.

ROC year = Gregorian year - 1911.  Feeds use two encodings:

- ``YYYMMDD``   -- no separators, zero-padded (floor-speech query params)
- ``YYY/MM/DD`` -- slash-separated (roll-call and floor-speech payloads)
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

ROC_YEAR_OFFSET = 1911

_RE_ROC_SLASHED = re.compile(r"^\s*(\d{2,3})/(\d{1,2})/(\d{1,2})\s*$")
_RE_ROC_COMPACT = re.compile(r"^\s*(\d{2,3})(\d{2})(\d{2})\s*$")
_RE_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")


def _as_datetime(d: date | datetime) -> datetime:
    if isinstance(d, datetime):
        return d
    return datetime(d.year, d.month, d.day)


def midnight(d: date | datetime) -> datetime:
    """Return *d* truncated to 00:00:00.000."""
    d = _as_datetime(d)
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


# ── Week boundaries ──────────────────────────────────────────────────────────


def week_start(d: date | datetime) -> datetime:
    """Monday 00:00 of the week containing *d*.

    Sunday counts as day 7 of the prior week, so it shifts back six days.
    """
    d = midnight(d)
    return d - timedelta(days=d.weekday())


def week_end(d: date | datetime) -> datetime:
    """Sunday 23:59:59.999 of the week containing *d*."""
    start = week_start(d)
    return start + timedelta(days=6, hours=23, minutes=59, seconds=59, microseconds=999000)


def add_days(d: date | datetime, days: int) -> datetime:
    return _as_datetime(d) + timedelta(days=days)


def add_weeks(d: date | datetime, weeks: int) -> datetime:
    return add_days(d, weeks * 7)


def week_date_range(season_start: date | datetime, week_number: int) -> tuple[datetime, datetime]:
    """Return ``(week_start, week_end)`` for 1-based *week_number* of a season."""
    start = add_weeks(week_start(season_start), week_number - 1)
    return start, week_end(start)


def current_week(season_start: date | datetime, now: date | datetime | None = None) -> int:
    """1-based week index of *now* within the season, or 0 before it starts."""
    start = week_start(season_start)
    current = week_start(now if now is not None else datetime.now())
    if current < start:
        return 0
    return (current - start).days // 7 + 1


# ── ROC calendar ─────────────────────────────────────────────────────────────


def to_roc_date(d: date | datetime, sep: str = "") -> str:
    """Format *d* as an ROC date string.

    >>> to_roc_date(datetime(2024, 3, 11))
    '1130311'
    >>> to_roc_date(datetime(2023, 12, 31), sep="/")
    '112/12/31'
    >>> to_roc_date(datetime(2010, 1, 1))
    '0990101'
    """
    year = d.year - ROC_YEAR_OFFSET
    return f"{year:03d}{sep}{d.month:02d}{sep}{d.day:02d}"


def from_roc_date(value: str) -> datetime:
    """Parse ``YYY/MM/DD`` or ``YYYMMDD`` into a Gregorian midnight datetime.

    Raises ``ValueError`` for anything else (including impossible dates).
    """
    match = _RE_ROC_SLASHED.match(value or "") or _RE_ROC_COMPACT.match(value or "")
    if not match:
        raise ValueError(f"Not an ROC date: {value!r}")
    roc_year, month, day = (int(part) for part in match.groups())
    return datetime(roc_year + ROC_YEAR_OFFSET, month, day)


def parse_feed_date(value: str | None) -> datetime | None:
    """Parse an ISO ``YYYY-MM-DD[...]`` feed date to midnight, or ``None``."""
    if not value:
        return None
    match = _RE_ISO_DATE.match(value)
    if not match:
        return None
    try:
        year, month, day = (int(part) for part in match.groups())
        return datetime(year, month, day)
    except ValueError:
        return None
