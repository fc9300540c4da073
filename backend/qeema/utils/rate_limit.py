"""In-memory rate limiter for the public auth endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from ..errors import TooManyRequestsError


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by an arbitrary string (client ip + path).

    Keys whose hits have all aged out of the window are dropped, at most
    once per window, so the table only holds recently active clients.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def _sweep(self, cutoff: float) -> None:
        stale = [key for key, q in self._hits.items() if not q or q[-1] < cutoff]
        for key in stale:
            del self._hits[key]

    def allow(self, key: str) -> tuple[bool, int]:
        """Record a hit for `key`; return (allowed, retry_after_seconds)."""
        if not self.enabled:
            return True, 0
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now
            q = self._hits.setdefault(key, deque())
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= self.max_requests:
                retry_after = max(1, int(self.window_seconds - (now - q[0])))
                return False, retry_after
            q.append(now)
        return True, 0

    def enforce(self, key: str) -> None:
        allowed, retry_after = self.allow(key)
        if not allowed:
            raise TooManyRequestsError(
                f"Too many requests; retry after {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
