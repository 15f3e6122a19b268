"""Sliding-window rate limiting for provider calls."""

import threading
import time
from collections import deque

from postcap.captions.logging import log_debug
from postcap.captions.models import RateLimitStatus

SHORT_WINDOW_SECONDS = 60.0
LONG_WINDOW_SECONDS = 3600.0

_LOGGER_NAME = "postcap.captions.rate_limiter"


class SlidingWindowLimiter:
    """Admits requests while both a per-minute and a per-hour budget remain.

    Keeps one ordered sequence of admitted timestamps. Rejected requests do
    not consume quota. In-memory and process-local: counters do not survive
    restarts and are not shared between worker processes.
    """

    def __init__(
        self,
        max_per_minute: int,
        max_per_hour: int,
        clock=time.monotonic,
    ):
        self.max_per_minute = max_per_minute
        self.max_per_hour = max_per_hour
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        # Timestamps are appended in order, so the oldest sit at the left
        while self._timestamps and now - self._timestamps[0] >= LONG_WINDOW_SECONDS:
            self._timestamps.popleft()

    def _count_short_window(self, now: float) -> int:
        count = 0
        for stamp in reversed(self._timestamps):
            if now - stamp >= SHORT_WINDOW_SECONDS:
                break
            count += 1
        return count

    def admit(self, now: float | None = None) -> bool:
        """Record and admit a request, or reject it without recording.

        Args:
            now: Timestamp of the request; defaults to the limiter's clock.

        Returns:
            True if the request fits in both windows, False otherwise.
        """
        with self._lock:
            if now is None:
                now = self._clock()
            self._prune(now)

            in_minute = self._count_short_window(now)
            in_hour = len(self._timestamps)
            if in_minute >= self.max_per_minute or in_hour >= self.max_per_hour:
                log_debug(
                    "Rate limit reached",
                    context={
                        "requests_in_last_minute": in_minute,
                        "requests_in_last_hour": in_hour,
                        "max_requests_per_minute": self.max_per_minute,
                        "max_requests_per_hour": self.max_per_hour,
                    },
                    logger_name=_LOGGER_NAME,
                )
                return False

            # Never let a skewed caller-supplied timestamp break ordering
            if self._timestamps and now < self._timestamps[-1]:
                now = self._timestamps[-1]
            self._timestamps.append(now)
            return True

    def status(self, now: float | None = None) -> RateLimitStatus:
        """Current window counts and configured maxima."""
        with self._lock:
            if now is None:
                now = self._clock()
            self._prune(now)
            return RateLimitStatus(
                requests_in_last_minute=self._count_short_window(now),
                requests_in_last_hour=len(self._timestamps),
                max_requests_per_minute=self.max_per_minute,
                max_requests_per_hour=self.max_per_hour,
            )

    def is_idle(self, now: float | None = None) -> bool:
        """True when no admitted request is left in either window."""
        with self._lock:
            if now is None:
                now = self._clock()
            self._prune(now)
            return not self._timestamps

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()


class KeyedSlidingWindowLimiter:
    """One ``SlidingWindowLimiter`` per key (typically the caller ID).

    Keys whose windows have emptied are evicted at most once per short
    window, so the map only holds callers seen within the last hour.
    """

    def __init__(
        self,
        max_per_minute: int,
        max_per_hour: int,
        clock=time.monotonic,
    ):
        self.max_per_minute = max_per_minute
        self.max_per_hour = max_per_hour
        self._clock = clock
        self._limiters: dict[str, SlidingWindowLimiter] = {}
        self._last_sweep: float | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._limiters)

    def _sweep(self, now: float) -> None:
        last = self._last_sweep
        if last is not None and now - last < SHORT_WINDOW_SECONDS:
            return
        self._last_sweep = now
        idle = [key for key, limiter in self._limiters.items() if limiter.is_idle(now)]
        for key in idle:
            del self._limiters[key]
        if idle:
            log_debug(
                "Evicted idle rate limit keys",
                context={"evicted": len(idle), "remaining": len(self._limiters)},
                logger_name=_LOGGER_NAME,
            )

    def admit(self, key: str, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        with self._lock:
            self._sweep(now)
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = SlidingWindowLimiter(
                    self.max_per_minute, self.max_per_hour, clock=self._clock
                )
                self._limiters[key] = limiter
            return limiter.admit(now)

    def status(self, key: str, now: float | None = None) -> RateLimitStatus:
        """Window counts for ``key``; unseen keys report zero without being tracked."""
        if now is None:
            now = self._clock()
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is not None:
                return limiter.status(now)
        return RateLimitStatus(
            requests_in_last_minute=0,
            requests_in_last_hour=0,
            max_requests_per_minute=self.max_per_minute,
            max_requests_per_hour=self.max_per_hour,
        )
