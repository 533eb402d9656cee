"""
Rate limiting.

Two mechanisms:

- ``SubmissionRateLimiter``: the complaint-submission throttle. A per-client
  fixed window that opens on the client's first request and closes strictly
  after ``window_seconds`` have elapsed. Instances are created by the app
  factory and stored on ``app.state``; tests build their own with a fake clock.
- ``limiter``: slowapi limiter used for decorator-based limits on endpoints
  such as login.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from slowapi import Limiter

from core.config import RateLimitSettings

logger = logging.getLogger(__name__)


def _client_key(request) -> str:
    # Imported lazily: core.dependencies pulls in the database layer
    from core.dependencies import get_client_ip

    return get_client_ip(request)


# slowapi limiter for per-endpoint decorators (@limiter.limit(...))
limiter = Limiter(key_func=_client_key)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single ``hit``."""

    allowed: bool
    limit: int
    remaining: int
    retry_after: int
    reset_at: int

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


@dataclass
class _Window:
    expires_at: float
    count: int


class SubmissionRateLimiter:
    """
    Per-key request counter with an elapsed-time reset.

    All reads and writes of the counter map happen under one ``asyncio.Lock``
    so concurrent bursts from the same client cannot lose increments.
    Expired windows are swept at most once per ``sweep_interval`` seconds.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 15 * 60,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sweep_interval: float = 60.0,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self._sweep_interval = sweep_interval
        self._windows: Dict[str, _Window] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    @classmethod
    def from_settings(cls, config: RateLimitSettings) -> "SubmissionRateLimiter":
        return cls(
            max_requests=config.submission_max_requests,
            window_seconds=config.submission_window_seconds,
        )

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(self, key: str) -> RateLimitDecision:
        """
        Count one request for ``key``.

        Returns:
            Decision with ``allowed`` False once the window is exhausted.
            Rejected requests are not counted.
        """
        async with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep_locked(now)

            window = self._windows.get(key)
            if window is None or now >= window.expires_at:
                window = _Window(expires_at=now + self.window_seconds, count=1)
                self._windows[key] = window
                return self._decision(True, window, now)

            if window.count >= self.max_requests:
                decision = self._decision(False, window, now)
                logger.warning(
                    f"Rate limit exceeded for {key}: {window.count}/{self.max_requests}, "
                    f"retry after {decision.retry_after}s"
                )
                return decision

            window.count += 1
            return self._decision(True, window, now)

    async def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        async with self._lock:
            return self._sweep_locked(self._clock())

    async def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        async with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if now >= window.expires_at]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate-limit windows")
        return len(expired)

    def _decision(self, allowed: bool, window: _Window, now: float) -> RateLimitDecision:
        seconds_left = max(window.expires_at - now, 0.0)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(self.max_requests - window.count, 0),
            retry_after=0 if allowed else max(math.ceil(seconds_left), 1),
            reset_at=math.ceil(self._wall_clock() + seconds_left),
        )
