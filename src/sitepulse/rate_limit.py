"""
In-memory fixed-window rate limiting, keyed by client IP.

One RateLimiter is created per call site when the app is built and handed to
the routers that need it. State lives in this process only; nothing is
coordinated across workers.
"""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request counter. Thread-safe.

    Expired windows are evicted by a sweep that runs at most once per
    ``sweep_interval`` seconds, so memory stays bounded by the number of
    clients seen within roughly one window.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float | None = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sweep_interval = window_seconds if sweep_interval is None else sweep_interval
        self._windows: dict[str, _Window] = {}
        self._lock = Lock()
        self._next_sweep = clock() + self._sweep_interval

    def allow(self, key: str) -> bool:
        """Count a request for ``key`` and report whether it is within the limit."""
        now = self._clock()

        with self._lock:
            if now >= self._next_sweep:
                self._sweep_locked(now)

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            window.count += 1
            return window.count <= self.max_requests

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug(f"Rate limiter evicted {len(expired)} expired windows")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


def client_ip(headers: Mapping[str, str]) -> str:
    """Derive the rate-limit key from proxy headers.

    Uses the first hop of X-Forwarded-For, then X-Real-IP. Clients with
    neither share the ``unknown`` bucket.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_CLIENT
