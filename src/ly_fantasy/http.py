"""Resilient HTTP GET for the Legislative Yuan feeds.

Client errors (4xx other than 429) are returned to the caller untouched --
a 404 from govapi usually means "no data for this legislator".  Everything
else (429, 5xx, transport failures) is retried with doubling backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from . import config as cfg
from .errors import FetchError

LOGGER = logging.getLogger(__name__)


def make_client(timeout_s: float | None = None) -> httpx.AsyncClient:
    """Build the shared async client used by one sync run."""
    return httpx.AsyncClient(
        timeout=timeout_s if timeout_s is not None else cfg.HTTP_TIMEOUT_S,
        headers={"User-Agent": cfg.USER_AGENT},
        follow_redirects=True,
    )


def is_retryable_status(status_code: int) -> bool:
    if 400 <= status_code < 500:
        return status_code == 429
    return not (200 <= status_code < 300)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Mapping[str, Any] | list[tuple[str, Any]] | None = None,
    headers: Mapping[str, str] | None = None,
    max_retries: int | None = None,
    initial_backoff_s: float | None = None,
) -> httpx.Response:
    """GET *url*, retrying transient failures with exponential backoff.

    Args:
        client: Shared async client.
        url: Absolute URL.
        params: Query parameters (a list of pairs allows repeated keys).
        headers: Extra request headers.
        max_retries: Retries after the first attempt (default from config).
        initial_backoff_s: First sleep; doubles on each retry (1s, 2s, 4s, ...).

    Returns:
        The response -- 2xx, or a non-retryable 4xx the caller must inspect.

    Raises:
        FetchError: a retryable status persisted through every retry.
        httpx.TransportError: the network kept failing through every retry.
    """
    retries = cfg.FETCH_MAX_RETRIES if max_retries is None else max_retries
    backoff = cfg.FETCH_INITIAL_BACKOFF_S if initial_backoff_s is None else initial_backoff_s

    attempt = 0
    while True:
        try:
            response = await client.get(url, params=params, headers=headers)
            if not is_retryable_status(response.status_code):
                return response
            raise FetchError(
                f"Status {response.status_code}",
                url=str(response.url),
                status_code=response.status_code,
            )
        except (FetchError, httpx.TransportError) as exc:
            if attempt >= retries:
                raise
            LOGGER.warning(
                "    Fetch failed (%s), retrying in %.1fs... (%d retries left)",
                exc,
                backoff,
                retries - attempt,
            )
            await asyncio.sleep(backoff)
            backoff *= 2
            attempt += 1


def json_or_none(response: httpx.Response) -> Any:
    """Decode a JSON body, returning ``None`` when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        LOGGER.warning("Non-JSON body from %s", response.url)
        return None
