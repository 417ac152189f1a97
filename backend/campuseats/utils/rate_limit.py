"""In-memory rate limiter used to throttle OTP requests per target."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by an arbitrary string.

    State lives in the process, so limits are per worker; that is enough
    for mocked OTP delivery where the goal is to stop accidental floods.
    """

    def __init__(self, clock=time.monotonic):
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()
        self._clock = clock

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key`; return `(allowed, retry_after_seconds)`."""
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            cutoff = now - window_seconds
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= max_requests:
                return False, max(1, int(window_seconds - (now - hits[0])))
            hits.append(now)
        return True, 0

    def reset(self, key: str | None = None) -> None:
        """Forget the hits of one key, or of every key when `key` is None."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
