# radar/utils/ratelimit.py
# Purpose: One shared rolling-window limiter + retrying JSON GET for every upstream API.
from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Optional

import requests

from radar.errors import NetworkError
from radar.settings import (
    MAX_RETRIES,
    RATE_LIMIT_PER_MINUTE,
    RATE_LIMIT_WINDOW,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
    RETRY_MULTIPLIER,
)


class RateLimiter:
    """At most `max_requests` acquisitions per rolling `window` seconds. Excess callers wait."""

    def __init__(self, max_requests: int = RATE_LIMIT_PER_MINUTE, window: float = RATE_LIMIT_WINDOW,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.max_requests = max(1, int(max_requests))
        self.window = float(window)
        self.requests: deque = deque()
        self._clock = clock
        self._sleep = sleep

    def _prune(self, now: float):
        while self.requests and now - self.requests[0] >= self.window:
            self.requests.popleft()

    async def acquire(self):
        while True:
            now = self._clock()
            self._prune(now)
            if len(self.requests) < self.max_requests:
                # no await between the check and the append, so this is atomic on the loop
                self.requests.append(now)
                return
            wait_for = self.window - (now - self.requests[0]) + 0.01
            await self._sleep(max(wait_for, 0.0))

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self.requests)


async def retry_with_backoff(fn: Callable[[], Awaitable[Any]], max_retries: int = MAX_RETRIES,
                             base_delay: float = RETRY_DELAY, multiplier: float = RETRY_MULTIPLIER,
                             sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
    """Call `fn` until it succeeds; back off base*mult^attempt between tries. 4xx (not 429) is final."""
    last_error: Optional[Exception] = None
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except NetworkError as e:
            last_error = e
            if not e.retryable:
                raise
            if attempt < max_retries:
                await sleep(base_delay * (multiplier ** attempt))
    raise last_error


class HttpClient:
    """requests-backed JSON client. Calls run in a worker thread so the event loop keeps going."""

    def __init__(self, limiter: Optional[RateLimiter] = None, timeout: float = REQUEST_TIMEOUT,
                 max_retries: int = MAX_RETRIES, base_delay: float = RETRY_DELAY,
                 session: Optional[requests.Session] = None):
        self.limiter = limiter or RateLimiter()
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    def _get(self, url: str, params: Optional[dict], headers: Optional[dict]) -> requests.Response:
        return self.session.get(url, params=params, headers=headers, timeout=self.timeout)

    async def _get_json_once(self, url: str, params: Optional[dict], headers: Optional[dict],
                             source: Optional[str]) -> Any:
        await self.limiter.acquire()
        try:
            resp = await asyncio.to_thread(self._get, url, params, headers)
        except requests.Timeout as e:
            raise NetworkError(f"Timeout after {self.timeout:.0f}s", timeout=True, source=source) from e
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {e}", source=source) from e

        if not resp.ok:
            raise NetworkError(f"HTTP {resp.status_code}", status=resp.status_code, source=source)
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError("Invalid JSON in response", status=resp.status_code, source=source) from e

    async def get_json(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None,
                       source: Optional[str] = None) -> Any:
        return await retry_with_backoff(
            lambda: self._get_json_once(url, params, headers, source),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
        )

    def close(self):
        self.session.close()


__all__ = ["RateLimiter", "retry_with_backoff", "HttpClient"]
