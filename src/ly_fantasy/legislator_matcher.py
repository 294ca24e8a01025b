"""Resolve raw legislator names from feeds to roster rows.

Feeds spell names in several ways:

- **Roll-call sheets**: ``"0001  王小明"`` or ``"025伍麗華"`` (seat number
  fused in, sometimes full-width digits), stray ideographic spaces and
  zero-width characters.
- **govapi interpellations**: Han characters only, so mixed-script names such
  as ``"伍麗華Saidhai‧Tahovecahe"`` must be cut down to ``"伍麗華"``.
- **Floor-speech speaker lists**: the stored name exactly.

Matching runs in three passes, first hit wins:

1. exact match on the stored ``name_ch``
2. stored name contains the stripped raw name
3. stripped raw name contains the stripped stored name
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Protocol

LOGGER = logging.getLogger(__name__)

# Leading seat numbers, ASCII or full-width.
_RE_LEADING_DIGITS = re.compile(r"^[\d\uff10-\uff19]+")
# Space, ideographic space, zero-width space, BOM.
_RE_NAME_WHITESPACE = re.compile(r"[\s\u3000\u200b\ufeff]+")
_RE_HAN = re.compile(r"[\u4e00-\u9fff]+")


class NamedLegislator(Protocol):
    id: str
    name_ch: str


# ── Name cleanup ─────────────────────────────────────────────────────────────


def strip_whitespace(name: str) -> str:
    """Remove every whitespace variant.

    >>> strip_whitespace("王 小明 ")
    '王小明'
    """
    return _RE_NAME_WHITESPACE.sub("", name)


def normalize_sheet_name(raw: str) -> str:
    """Drop a leading seat number and all whitespace from a sheet cell.

    >>> normalize_sheet_name("0001  王小明")
    '王小明'
    >>> normalize_sheet_name("０２５伍麗華")
    '伍麗華'
    """
    name = strip_whitespace(raw.strip())
    return _RE_LEADING_DIGITS.sub("", name)


def extract_han_name(name: str) -> str:
    """Keep only CJK ideographs; fall back to *name* when there are none.

    >>> extract_han_name("伍麗華Saidhai‧Tahovecahe")
    '伍麗華'
    >>> extract_han_name("Kolas Yotaka")
    'Kolas Yotaka'
    """
    parts = _RE_HAN.findall(name)
    return "".join(parts) if parts else name


# ── Matcher ──────────────────────────────────────────────────────────────────


class LegislatorMatcher:
    """Name → legislator lookup over a fixed roster snapshot."""

    def __init__(self, legislators: Iterable[NamedLegislator]):
        self._legislators = list(legislators)
        self._by_name = {leg.name_ch: leg for leg in self._legislators}
        self._stripped = [(strip_whitespace(leg.name_ch), leg) for leg in self._legislators]

    def __len__(self) -> int:
        return len(self._legislators)

    def match(self, raw: str) -> NamedLegislator | None:
        if not raw:
            return None
        exact = self._by_name.get(raw)
        if exact is not None:
            return exact

        wanted = strip_whitespace(raw)
        if not wanted:
            return None
        for _, leg in self._stripped:
            if wanted in leg.name_ch:
                return leg
        for stored, leg in self._stripped:
            if stored and stored in wanted:
                return leg
        return None

    def match_all(self, names: Iterable[str]) -> tuple[dict[str, NamedLegislator], list[str]]:
        """Resolve *names*; returns ``(matched by raw name, unresolved names)``."""
        matched: dict[str, NamedLegislator] = {}
        unresolved: list[str] = []
        for raw in names:
            if raw in matched or raw in unresolved:
                continue
            leg = self.match(raw)
            if leg is None:
                unresolved.append(raw)
            else:
                matched[raw] = leg

        if unresolved:
            LOGGER.warning(
                "Name matching: %d unresolved of %d (%s)",
                len(unresolved),
                len(matched) + len(unresolved),
                ", ".join(unresolved[:5]),
            )
        return matched, unresolved
