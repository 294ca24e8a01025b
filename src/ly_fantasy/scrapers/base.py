"""Shared plumbing for the per-category source adapters.

An adapter turns one external feed into scores for one legislator in two
steps: ``fetch`` (network, async) and ``process`` (mapping + persistence,
sync).  ``build_scores`` is the pure mapping half of ``process``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from .. import config as cfg
from ..db import Legislator
from ..errors import FetchError
from ..http import fetch_with_retry, json_or_none
from ..models import ScoreDraft
from ..scoring import ScoreCategory
from ..store import Repository

LOGGER = logging.getLogger(__name__)


def govapi_legislator_url(name: str, resource: str, term: int | None = None) -> str:
    """``{base}legislators/{term}/{name}/{resource}`` with the name percent-encoded."""
    term = cfg.LEGISLATIVE_TERM if term is None else term
    return f"{cfg.GOVAPI_BASE_URL}legislators/{term}/{quote(name, safe='')}/{resource}"


def output_field_params(fields: Sequence[str]) -> list[tuple[str, str]]:
    """Repeated ``output_fields=`` query pairs, in order."""
    return [("output_fields", f) for f in fields]


async def fetch_paginated(
    client: httpx.AsyncClient,
    url: str,
    *,
    items_key: str,
    params: list[tuple[str, Any]] | None = None,
    source: str = "Taiwan API",
) -> list[dict[str, Any]]:
    """Fetch every page of a govapi collection.

    The first page must succeed (a non-2xx status raises :class:`FetchError`).
    An error-shaped body, or one without *items_key*, means "no data".  Pages
    2..``total_page`` are best effort: failures are logged and skipped.
    """
    base_params = list(params or [])
    response = await fetch_with_retry(client, url, params=base_params)
    if not response.is_success:
        raise FetchError(
            f"{source} returned status {response.status_code}",
            url=url,
            status_code=response.status_code,
        )

    data = json_or_none(response)
    if not isinstance(data, dict) or data.get("error") or not data.get(items_key):
        return []

    items: list[dict[str, Any]] = list(data[items_key])
    try:
        total_pages = int(data.get("total_page") or 1)
    except (TypeError, ValueError):
        total_pages = 1

    if total_pages > 1:
        LOGGER.info("  Fetching %d additional pages...", total_pages - 1)
    for page in range(2, total_pages + 1):
        try:
            page_response = await fetch_with_retry(
                client, url, params=base_params + [("page", page)]
            )
        except (FetchError, httpx.TransportError) as exc:
            LOGGER.warning("  Page %d of %s failed: %s", page, url, exc)
            continue
        if not page_response.is_success:
            LOGGER.warning("  Page %d of %s returned %d", page, url, page_response.status_code)
            continue
        page_data = json_or_none(page_response)
        if isinstance(page_data, dict):
            items.extend(page_data.get(items_key) or [])
    return items


class SourceAdapter:
    """Base class: subclasses set ``category`` and ``error_label``."""

    category: ScoreCategory
    error_label: str

    async def fetch(self, client: httpx.AsyncClient, legislator: Legislator) -> list:
        raise NotImplementedError

    def build_scores(self, legislator: Legislator, records: list) -> list[ScoreDraft]:
        raise NotImplementedError

    def process(self, repo: Repository, legislator: Legislator, records: list) -> int:
        """Persist new scores for *records*; returns how many rows were created."""
        created = 0
        for draft in self.build_scores(legislator, records):
            if repo.create_score(draft):
                created += 1
                LOGGER.info("  + %gpts %s", draft.points, draft.description[:60])
        return created

    async def sync_one(
        self,
        client: httpx.AsyncClient,
        repo: Repository,
        legislator: Legislator,
    ) -> int:
        records = await self.fetch(client, legislator)
        try:
            return self.process(repo, legislator, records)
        except Exception:
            # Rows not yet committed for this legislator are discarded.
            repo.session.rollback()
            raise
