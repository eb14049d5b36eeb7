"""In-process sliding-window rate limiter.

The e-invoice gateway accepts a few requests per second per GSTIN; this
keeps the API from submitting faster than that. State is per process.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from ..utils.errors import RateLimitedError


class SlidingWindowRateLimiter:
    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            self._prune(now)
            hits = self._hits.setdefault(key, deque())
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    def _prune(self, now: float) -> None:
        # Keys with no hits left in the window are forgotten
        for key in list(self._hits):
            hits = self._hits[key]
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if not hits:
                del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def check(self, key: str) -> None:
        """Record a hit for ``key`` or raise :class:`RateLimitedError`."""
        if not self.allow(key):
            raise RateLimitedError(
                "Too many requests for this GSTIN. Please retry shortly.",
                details={"limit": self.limit, "window_seconds": self.window},
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


__all__ = ["SlidingWindowRateLimiter"]
