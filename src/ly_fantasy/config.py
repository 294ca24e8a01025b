"""Centralized configuration for the LY Fantasy application.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``LYF_PROFILE=dev`` (default) or ``LYF_PROFILE=prod``
to get sensible defaults for each environment.  Any individual ``LYF_*`` var
still overrides the profile value.

Usage::

    from ly_fantasy.config import LEGISLATIVE_TERM, SYNC_BATCH_SIZE
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from current working directory (project root when running uvicorn / scripts)
load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────

PROFILE: str = os.getenv("LYF_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "LYF_DATABASE_URL": "sqlite:///ly_fantasy.db",
        "LYF_SQL_ECHO": "0",
        "LYF_BATCH_DELAY_S": "1.0",
    },
    "prod": {
        "LYF_DATABASE_URL": "",  # empty → must be explicitly set
        "LYF_SQL_ECHO": "0",
        "LYF_BATCH_DELAY_S": "1.0",
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown LYF_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


# ── Database ─────────────────────────────────────────────────────────────────
DATABASE_URL: str = _env("LYF_DATABASE_URL", "sqlite:///ly_fantasy.db").strip()
SQL_ECHO: bool = _env("LYF_SQL_ECHO") == "1"

# ── Legislative Yuan feeds ───────────────────────────────────────────────────
# 11th Legislative Yuan (2024-2028).
LEGISLATIVE_TERM: int = int(_env("LYF_TERM", "11"))

GOVAPI_BASE_URL: str = _env("LYF_GOVAPI_BASE_URL", "https://ly.govapi.tw/v2/").rstrip("/") + "/"
LY_OPEN_DATA_URL: str = _env(
    "LYF_OPEN_DATA_URL", "https://data.ly.gov.tw/odw/openDatasetJson.action"
)
LY_WEBAPI_URL: str = _env("LYF_WEBAPI_URL", "https://www.ly.gov.tw/WebAPI/").rstrip("/") + "/"

# Open-data dataset ids
ROLLCALL_DATASET_ID: int = 370
LEGISLATOR_DATASET_ID: int = 9

# ── HTTP behaviour ───────────────────────────────────────────────────────────
HTTP_TIMEOUT_S: float = float(_env("LYF_HTTP_TIMEOUT_S", "30"))
USER_AGENT: str = _env("LYF_USER_AGENT", "Mozilla/5.0 (ly-fantasy sync)")
FETCH_MAX_RETRIES: int = int(_env("LYF_FETCH_MAX_RETRIES", "3"))
FETCH_INITIAL_BACKOFF_S: float = float(_env("LYF_FETCH_INITIAL_BACKOFF_S", "1.0"))

# ── Sync engine ──────────────────────────────────────────────────────────────
SYNC_BATCH_SIZE: int = int(_env("LYF_BATCH_SIZE", "5"))
SYNC_BATCH_DELAY_S: float = float(_env("LYF_BATCH_DELAY_S", "1.0"))
ROLLCALL_DELAY_S: float = float(_env("LYF_ROLLCALL_DELAY_S", "0.25"))
ROLLCALL_INDEX_ATTEMPTS: int = int(_env("LYF_ROLLCALL_INDEX_ATTEMPTS", "5"))
ROLLCALL_INDEX_RETRY_DELAY_S: float = float(_env("LYF_ROLLCALL_INDEX_RETRY_DELAY_S", "1.0"))
ROLLCALL_DEFAULT_LIMIT: int = int(_env("LYF_ROLLCALL_DEFAULT_LIMIT", "20"))
FLOOR_SPEECH_LOOKBACK_DAYS: int = int(_env("LYF_FLOOR_SPEECH_LOOKBACK_DAYS", "30"))

# ── Security ─────────────────────────────────────────────────────────────────
CRON_SECRET: str = _env("LYF_CRON_SECRET").strip()

# ── Run log ──────────────────────────────────────────────────────────────────
RUN_LOG_PATH: Path = Path(_env("LYF_RUN_LOG", ".run_log.jsonl"))

# ── Production guard ─────────────────────────────────────────────────────────
if PROFILE == "prod":
    if not CRON_SECRET:
        LOGGER.warning(
            "LYF_PROFILE=prod but LYF_CRON_SECRET is empty. Refresh endpoints will reject every call."
        )
    if not DATABASE_URL:
        LOGGER.warning("LYF_PROFILE=prod but LYF_DATABASE_URL is empty.")
