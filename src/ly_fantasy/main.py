from __future__ import annotations

import hmac
import logging
import sys
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from . import config as cfg
from .db import init_db, make_engine, make_session_factory
from .errors import NotFoundError
from .http import make_client
from .run_log import RunLogger
from .store import Repository
from .sync import SYNC_TYPES, sync_all, sync_legislators

# ── Configure logging ────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
    force=True,
)
LOGGER = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = make_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


# ── Dependencies ─────────────────────────────────────────────────────────────


def get_repo() -> Iterator[Repository]:
    """One session per request, closed afterwards."""
    session = get_session_factory()()
    try:
        yield Repository(session)
    finally:
        session.close()


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with make_client() as client:
        yield client


def _authorized(request: Request) -> bool:
    """``Authorization: Bearer <CRON_SECRET>``.  No secret configured means nobody passes."""
    secret = cfg.CRON_SECRET
    if not secret:
        return False
    provided = request.headers.get("Authorization", "")
    return hmac.compare_digest(provided.encode(), f"Bearer {secret}".encode())


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


# ── App ──────────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db(get_engine())
    LOGGER.info("LY Fantasy ready (profile=%s, term=%d)", cfg.PROFILE, cfg.LEGISLATIVE_TERM)
    yield


app = FastAPI(title="LY Fantasy", lifespan=lifespan)


# ── Request logging middleware ───────────────────────────────────────────────
@app.middleware("http")
async def _request_logging_middleware(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
    """Log every request with method, path, and response time."""
    t0 = time.perf_counter()
    response: Response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    LOGGER.info(
        "%s %s %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ── Health endpoint ──────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "profile": cfg.PROFILE, "term": cfg.LEGISLATIVE_TERM}


# ── Cron trigger ─────────────────────────────────────────────────────────────
@app.get("/api/refresh-data")
async def refresh_data(
    request: Request,
    sync_type: str = Query("all", alias="type"),
    limit: int | None = Query(None, ge=1),
    offset: int | None = Query(None, ge=0),
    rollcall_limit: int | None = Query(None, ge=1),
    rollcall_offset: int | None = Query(None, ge=0),
    repo: Repository = Depends(get_repo),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Run the requested score syncs and return their summaries."""
    if not _authorized(request):
        return _unauthorized()
    if sync_type != "all" and sync_type not in SYNC_TYPES:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"Unknown type: {sync_type}"},
        )

    run = RunLogger(f"refresh:{sync_type}", meta={"limit": limit, "offset": offset})
    run.start()
    try:
        with run.phase("sync", detail=sync_type):
            results = await sync_all(
                repo,
                sync_type,
                limit=limit,
                offset=offset,
                rollcall_limit=rollcall_limit,
                rollcall_offset=rollcall_offset,
                client=client,
            )
    except Exception as exc:
        LOGGER.exception("Refresh failed (type=%s)", sync_type)
        run.finish("error", str(exc) or exc.__class__.__name__)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc) or exc.__class__.__name__},
        )
    run.meta.update(results)
    run.finish("ok")
    return JSONResponse(
        content={
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": results,
        }
    )


@app.post("/api/legislators/sync")
async def legislators_sync(
    request: Request,
    repo: Repository = Depends(get_repo),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    if not _authorized(request):
        return _unauthorized()
    try:
        with RunLogger("legislators") as run:
            stats = await sync_legislators(repo, client=client)
            run.meta["legislators"] = stats.to_dict()
    except Exception as exc:
        LOGGER.exception("Legislator sync failed")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc) or exc.__class__.__name__},
        )
    return JSONResponse(
        content={
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": stats.to_dict(),
        }
    )


# ── League views ─────────────────────────────────────────────────────────────
@app.get("/api/leagues/{league_id}/standings")
def league_standings(league_id: str, repo: Repository = Depends(get_repo)) -> JSONResponse:
    try:
        league = repo.get_league(league_id)
    except NotFoundError as exc:
        return JSONResponse(status_code=404, content={"error": str(exc)})
    return JSONResponse(
        content={
            "league": {"id": league.id, "name": league.name, "totalWeeks": league.total_weeks},
            "standings": [
                {
                    "id": team.id,
                    "name": team.name,
                    "owner": team.owner,
                    "wins": team.wins,
                    "losses": team.losses,
                    "ties": team.ties,
                }
                for team in repo.standings(league_id)
            ],
        }
    )
