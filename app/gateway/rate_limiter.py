"""AI quota limiter: shared per-minute / per-day budget for the upstream key.

One instance per process guards the single upstream API key. Each window is a
fixed bucket with a lazy reset: the first call observed after ``reset_at``
zeroes the counter and starts a new window at that moment. There is no timer,
so an idle window simply stays expired until the next call.

Thread-safe via threading.Lock (sync route handlers run in a worker pool).
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from app.gateway.types import AiRateLimitExceeded, QuotaScope, RateLimitStatus

logger = logging.getLogger(__name__)

MINUTE_WINDOW = 60.0
DAY_WINDOW = 86_400.0


@dataclass
class _QuotaWindow:
    """Fixed-length usage bucket for a single scope."""

    scope: QuotaScope
    limit: int
    length: float  # seconds
    reset_at: float
    count: int = 0

    def reset_if_elapsed(self, now: float) -> None:
        if now >= self.reset_at:
            self.count = 0
            self.reset_at = now + self.length

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit

    def remaining(self) -> int:
        return min(self.limit, max(0, self.limit - self.count))

    def reset_in(self, now: float) -> float:
        return max(0.0, self.reset_at - now)


class AiRateLimiter:
    """Dual-window quota guarding the upstream AI API.

    Usage:
        limiter = AiRateLimiter(per_minute=30, per_day=1000)

        # Exactly once before every upstream call:
        limiter.check_and_consume()  # raises AiRateLimitExceeded

        # Admin status:
        limiter.get_status()
    """

    def __init__(
        self,
        per_minute: int,
        per_day: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if per_minute < 1 or per_day < 1:
            raise ValueError("Rate limits must be positive")

        self._clock = clock
        self._lock = threading.Lock()

        now = clock()
        self._minute = _QuotaWindow(QuotaScope.MINUTE, per_minute, MINUTE_WINDOW, reset_at=now + MINUTE_WINDOW)
        self._day = _QuotaWindow(QuotaScope.DAY, per_day, DAY_WINDOW, reset_at=now + DAY_WINDOW)

    def _reset_if_window_elapsed(self, now: float) -> None:
        self._minute.reset_if_elapsed(now)
        self._day.reset_if_elapsed(now)

    def check_and_consume(self) -> None:
        """Take one slot from both windows or raise without consuming anything."""
        with self._lock:
            now = self._clock()
            self._reset_if_window_elapsed(now)

            for window in (self._minute, self._day):
                if window.exhausted:
                    retry_after = math.ceil(window.reset_in(now))
                    logger.warning(
                        "AI quota exhausted (%s): %d/%d, resets in %ds",
                        window.scope.value,
                        window.count,
                        window.limit,
                        retry_after,
                    )
                    raise AiRateLimitExceeded(window.scope, retry_after_seconds=retry_after)

            self._minute.count += 1
            self._day.count += 1

    def get_status(self) -> RateLimitStatus:
        """Remaining quota, never negative and never above the limits."""
        with self._lock:
            now = self._clock()
            self._reset_if_window_elapsed(now)
            return RateLimitStatus(
                minute_remaining=self._minute.remaining(),
                day_remaining=self._day.remaining(),
                minute_reset_in_ms=int(self._minute.reset_in(now) * 1000),
                day_reset_in_ms=int(self._day.reset_in(now) * 1000),
            )

    @property
    def limits(self) -> dict[str, int]:
        return {"per_minute": self._minute.limit, "per_day": self._day.limit}
