"""Exception types raised by the ingestion and league layers."""

from __future__ import annotations


class LYFantasyError(Exception):
    """Base class for application errors."""


class FetchError(LYFantasyError):
    """An external feed could not be fetched (retries exhausted or fatal status)."""

    def __init__(self, message: str, *, url: str = "", status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NotFoundError(LYFantasyError):
    """A league, team or matchup referenced by id does not exist."""


class ScheduleError(LYFantasyError):
    """A schedule cannot be generated for the league as it stands."""


class DraftError(LYFantasyError):
    """The draft cannot run for the league as it stands."""
