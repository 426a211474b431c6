# radar/errors.py
from typing import Optional


class RadarError(Exception):
    """Base for every error raised by the radar pipeline."""


class ValidationError(RadarError, ValueError):
    """Malformed address or payload, rejected before any network call."""


class NetworkError(RadarError):
    """A single upstream call failed: timeout, transport error or non-2xx status."""

    def __init__(self, message: str, *, status: Optional[int] = None, timeout: bool = False,
                 source: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.timeout = timeout
        self.source = source

    @property
    def retryable(self) -> bool:
        # 4xx other than 429 will not get better by asking again
        if self.status is not None and 400 <= self.status < 500 and self.status != 429:
            return False
        return True


class MergeIncomplete(RadarError):
    """Every source failed; there is nothing trustworthy to score."""

    def __init__(self, message: str = "Failed to fetch token data", errors: Optional[dict] = None):
        super().__init__(message)
        self.errors = errors or {}


class StorageError(RadarError):
    """Persistent store read/write failure."""


class WatchlistError(RadarError):
    """Watchlist add refused: duplicate entry or the list is full."""
