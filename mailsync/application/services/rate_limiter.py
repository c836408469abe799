"""Key-scoped fixed-window rate limiter for provider API calls.

One instance is constructed per process and injected wherever provider calls
are made; callers sharing a key (e.g. "messages-get-<connection_id>") share
one counter. Exceeding the ceiling never raises: callers wait for the window.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from mailsync.core.constants import DEFAULT_MAX_REQUESTS_PER_WINDOW, DEFAULT_WINDOW_SECONDS
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    """Admissions in the current window and when that window ends (clock seconds)."""

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitStatus:
    count: int
    remaining: int
    reset_at: float


class RateLimiter:
    """Admit at most max_requests calls per key per window."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS_PER_WINDOW,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._limits: dict[str, RateLimitEntry] = {}

    def check_limit(self, key: str) -> bool:
        """Admit one call under key if the window has room. Admission increments the counter."""
        now = self._clock()
        entry = self._limits.get(key)
        if entry is None or now >= entry.reset_at:
            self._limits[key] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
            return True
        if entry.count < self.max_requests:
            entry.count += 1
            return True
        return False

    async def wait_for_limit(self, key: str) -> None:
        """Suspend until a call under key is admitted."""
        while not self.check_limit(key):
            entry = self._limits[key]
            wait = max(0.0, entry.reset_at - self._clock())
            logger.debug("Rate limit reached for %s, waiting %.3fs", key, wait)
            await self._sleep(wait)

    def reset(self, key: str) -> None:
        self._limits.pop(key, None)

    def clear_all(self) -> None:
        self._limits.clear()

    def get_status(self, key: str) -> RateLimitStatus | None:
        """Current window for key, or None when no window is open."""
        entry = self._limits.get(key)
        if entry is None or self._clock() >= entry.reset_at:
            return None
        return RateLimitStatus(
            count=entry.count,
            remaining=max(0, self.max_requests - entry.count),
            reset_at=entry.reset_at,
        )
