"""Score sync engine.

Each entry point pulls one external feed and writes new ``Score`` rows:

- ``sync_propose_scores`` / ``sync_cosign_scores`` /
  ``sync_written_interpellation_scores`` -- one govapi request chain per
  legislator, run in batches of ``SYNC_BATCH_SIZE`` concurrent tasks.
- ``sync_floor_speech_scores`` -- one WebAPI request for the date range,
  then every legislator is scored against the shared meeting list.
- ``sync_rollcall_scores`` -- one open-data index request, then one
  spreadsheet per vote event, sequentially.
- ``sync_legislators`` -- roster upsert (run before any score sync).

A failure for one legislator sets their ``error_flag`` and is counted; it
never stops the run.  Failing to reach the feed a whole run depends on (the
roll-call index, the legislator list) propagates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import httpx

from . import config as cfg
from .http import make_client
from .legislator_matcher import LegislatorMatcher
from .models import SyncStats
from .scrapers import (
    CosignBillAdapter,
    FloorSpeechAdapter,
    ProposeBillAdapter,
    WrittenInterpellationAdapter,
)
from .scrapers.base import SourceAdapter
from .scrapers.floor_speeches import fetch_floor_speeches
from .scrapers.legislators import fetch_legislators
from .scrapers.rollcall import (
    build_rollcall_scores,
    download_vote_sheet,
    fetch_rollcall_index,
    parse_vote_rows,
    read_sheet_rows,
)
from .store import Repository
from .week_calendar import midnight

LOGGER = logging.getLogger(__name__)

SYNC_TYPES = ("rollcall", "propose", "cosign", "written_interpellation", "floor_speech")


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Use the caller's client, or open (and close) one for this run."""
    if client is not None:
        yield client
        return
    async with make_client() as owned:
        yield owned


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


# ── Per-legislator engine ────────────────────────────────────────────────────


async def run_legislator_sync(
    repo: Repository,
    adapter: SourceAdapter,
    client: httpx.AsyncClient,
    *,
    legislator_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    batch_size: int | None = None,
    batch_delay_s: float | None = None,
) -> SyncStats:
    """Run *adapter* for every selected legislator, ``batch_size`` at a time.

    Legislators are taken in Chinese-name order (optionally one name, or a
    ``limit``/``offset`` page).  Batches run strictly one after another with
    ``batch_delay_s`` between them; tasks inside a batch settle independently.
    """
    size = batch_size or cfg.SYNC_BATCH_SIZE
    delay = cfg.SYNC_BATCH_DELAY_S if batch_delay_s is None else batch_delay_s
    stats = SyncStats()

    legislators = repo.list_legislators(name=legislator_name, limit=limit, offset=offset)
    if not legislators:
        LOGGER.info("No legislators found for %s sync.", adapter.category.value)
        return stats

    batches = [legislators[i : i + size] for i in range(0, len(legislators), size)]
    LOGGER.info(
        "%s sync: %d legislator(s) in %d batch(es)",
        adapter.category.value,
        len(legislators),
        len(batches),
    )

    for number, batch in enumerate(batches, 1):
        LOGGER.info("Batch %d/%d (%d legislators)", number, len(batches), len(batch))
        outcomes = await asyncio.gather(
            *(adapter.sync_one(client, repo, legislator) for legislator in batch),
            return_exceptions=True,
        )

        for legislator, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                message = _error_message(outcome)
                LOGGER.error("  Error for %s: %s", legislator.name_ch, message)
                repo.set_error_flag(legislator.id, f"{adapter.error_label}: {message}")
                stats.error_count += 1
                stats.errors.append(f"{legislator.name_ch}: {message}")
            else:
                stats.processed_count += 1
                stats.total_scores_created += outcome
                repo.clear_error_flag(legislator.id)

        if number < len(batches) and delay > 0:
            await asyncio.sleep(delay)

    LOGGER.info(
        "%s sync done: %d processed, %d errors, %d scores created",
        adapter.category.value,
        stats.processed_count,
        stats.error_count,
        stats.total_scores_created,
    )
    return stats


async def sync_propose_scores(
    repo: Repository,
    *,
    legislator_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    client: httpx.AsyncClient | None = None,
    batch_delay_s: float | None = None,
) -> SyncStats:
    async with _client_scope(client) as http:
        return await run_legislator_sync(
            repo,
            ProposeBillAdapter(),
            http,
            legislator_name=legislator_name,
            limit=limit,
            offset=offset,
            batch_delay_s=batch_delay_s,
        )


async def sync_cosign_scores(
    repo: Repository,
    *,
    legislator_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    client: httpx.AsyncClient | None = None,
    batch_delay_s: float | None = None,
) -> SyncStats:
    async with _client_scope(client) as http:
        return await run_legislator_sync(
            repo,
            CosignBillAdapter(),
            http,
            legislator_name=legislator_name,
            limit=limit,
            offset=offset,
            batch_delay_s=batch_delay_s,
        )


async def sync_written_interpellation_scores(
    repo: Repository,
    *,
    legislator_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    client: httpx.AsyncClient | None = None,
    batch_delay_s: float | None = None,
) -> SyncStats:
    async with _client_scope(client) as http:
        return await run_legislator_sync(
            repo,
            WrittenInterpellationAdapter(),
            http,
            legislator_name=legislator_name,
            limit=limit,
            offset=offset,
            batch_delay_s=batch_delay_s,
        )


async def sync_floor_speech_scores(
    repo: Repository,
    *,
    legislator_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    client: httpx.AsyncClient | None = None,
    batch_delay_s: float | None = None,
) -> SyncStats:
    """Score floor speeches in ``[date_from, date_to]`` (default: the last 30 days).

    The meeting list is fetched once.  If that fetch fails the run returns an
    empty summary rather than flagging every legislator.  Speakers that match
    no legislator are reported in ``errors``.
    """
    date_to = date_to or datetime.now()
    date_from = date_from or midnight(date_to - timedelta(days=cfg.FLOOR_SPEECH_LOOKBACK_DAYS))

    async with _client_scope(client) as http:
        try:
            meetings = await fetch_floor_speeches(http, date_from, date_to)
        except Exception:
            LOGGER.exception("Failed to fetch floor speeches")
            return SyncStats()
        if not meetings:
            LOGGER.info("No meetings with speeches between %s and %s.", date_from, date_to)
            return SyncStats()
        adapter = FloorSpeechAdapter(meetings, LegislatorMatcher(repo.list_legislators()))
        stats = await run_legislator_sync(
            repo,
            adapter,
            http,
            legislator_name=legislator_name,
            limit=limit,
            offset=offset,
            batch_delay_s=batch_delay_s,
        )
    for unmatched in adapter.unresolved:
        stats.errors.append(f"Unmatched speaker: {unmatched}")
    stats.error_count += len(adapter.unresolved)
    return stats


# ── Roll-call ────────────────────────────────────────────────────────────────


async def sync_rollcall_scores(
    repo: Repository,
    *,
    limit: int | None = None,
    offset: int | None = None,
    client: httpx.AsyncClient | None = None,
    event_delay_s: float | None = None,
    index_retry_delay_s: float | None = None,
) -> SyncStats:
    """Score roll-call votes ``[offset, offset + limit)`` of the term's index.

    ``processed_count`` counts vote events attempted; a failed event adds to
    ``error_count`` with its message in ``errors``, as does every sheet name
    that matched no legislator.
    """
    delay = cfg.ROLLCALL_DELAY_S if event_delay_s is None else event_delay_s
    stats = SyncStats(rollcall_scores=0, maverick_scores=0)

    async with _client_scope(client) as http:
        events = await fetch_rollcall_index(http, retry_delay_s=index_retry_delay_s)
        start = offset or 0
        end = start + limit if limit else len(events)
        selected = events[start:end]
        LOGGER.info(
            "Roll-call: %d votes in index, processing %d (start=%d, end=%d)",
            len(events),
            len(selected),
            start,
            end,
        )

        matcher = LegislatorMatcher(repo.list_legislators())
        for i, event in enumerate(selected, 1):
            LOGGER.info("Processing %d/%d: %s", i, len(selected), event.vote_issue[:60])
            stats.processed_count += 1
            try:
                content = await download_vote_sheet(http, event.url)
                votes = parse_vote_rows(read_sheet_rows(content))
                scores = build_rollcall_scores(event, votes, matcher)
            except Exception as exc:
                LOGGER.exception("  Failed roll-call vote: %s", event.url)
                stats.error_count += 1
                stats.errors.append(f"{event.vote_issue[:50]}: {_error_message(exc)}")
            else:
                for unmatched in scores.unmatched:
                    stats.errors.append(f"Unmatched legislator: {unmatched}")
                stats.error_count += len(scores.unmatched)
                created_roll = sum(1 for d in scores.rollcall if repo.create_score(d))
                created_mav = sum(1 for d in scores.maverick if repo.create_score(d))
                stats.rollcall_scores += created_roll
                stats.maverick_scores += created_mav
                stats.total_scores_created += created_roll + created_mav

            if i < len(selected) and delay > 0:
                await asyncio.sleep(delay)

    LOGGER.info(
        "Roll-call done: %d votes, %d rollcall + %d maverick scores, %d errors",
        stats.processed_count,
        stats.rollcall_scores,
        stats.maverick_scores,
        stats.error_count,
    )
    return stats


# ── Roster ───────────────────────────────────────────────────────────────────


async def sync_legislators(
    repo: Repository,
    *,
    client: httpx.AsyncClient | None = None,
    select_term: str = "all",
) -> SyncStats:
    """Upsert the legislator roster by external id."""
    stats = SyncStats()
    async with _client_scope(client) as http:
        records, rejected = await fetch_legislators(http, select_term=select_term)
    stats.error_count += len(rejected)
    stats.errors.extend(f"Could not extract id from picUrl: {pic}" for pic in rejected)

    new = 0
    for record in records:
        try:
            _, created = repo.upsert_legislator(record)
        except Exception as exc:
            repo.session.rollback()
            LOGGER.exception("Error syncing legislator %s", record.name_ch)
            stats.error_count += 1
            stats.errors.append(f"{record.name_ch}: {_error_message(exc)}")
            continue
        stats.processed_count += 1
        new += created
    LOGGER.info(
        "Roster sync: %d synced (%d new), %d errors",
        stats.processed_count,
        new,
        stats.error_count,
    )
    return stats


# ── All sources ──────────────────────────────────────────────────────────────


async def sync_all(
    repo: Repository,
    types: Iterable[str] | str = "all",
    *,
    limit: int | None = None,
    offset: int | None = None,
    rollcall_limit: int | None = None,
    rollcall_offset: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, dict]:
    """Run the requested syncs in a fixed order; returns ``{type: summary}``.

    ``types`` is ``"all"`` or any of :data:`SYNC_TYPES`.  Unknown names raise
    ``ValueError`` before anything runs.
    """
    if isinstance(types, str):
        wanted = list(SYNC_TYPES) if types == "all" else [types]
    else:
        wanted = list(types)
    unknown = [t for t in wanted if t not in SYNC_TYPES]
    if unknown:
        raise ValueError(f"Unknown sync type(s): {', '.join(unknown)}")

    results: dict[str, dict] = {}
    async with _client_scope(client) as http:
        for sync_type in SYNC_TYPES:
            if sync_type not in wanted:
                continue
            LOGGER.info("── %s ──", sync_type)
            if sync_type == "rollcall":
                stats = await sync_rollcall_scores(
                    repo,
                    limit=cfg.ROLLCALL_DEFAULT_LIMIT if rollcall_limit is None else rollcall_limit,
                    offset=rollcall_offset or 0,
                    client=http,
                )
            elif sync_type == "propose":
                stats = await sync_propose_scores(repo, limit=limit, offset=offset, client=http)
            elif sync_type == "cosign":
                stats = await sync_cosign_scores(repo, limit=limit, offset=offset, client=http)
            elif sync_type == "written_interpellation":
                stats = await sync_written_interpellation_scores(
                    repo, limit=limit, offset=offset, client=http
                )
            else:
                stats = await sync_floor_speech_scores(
                    repo, limit=limit, offset=offset, client=http
                )
            results[sync_type] = stats.to_dict()
    return results
