"""
Request Rate Limiting

WHY: Write endpoints mutate stock. A misbehaving register replaying its
offline queue in a tight loop must not starve other branches.

DESIGN:
- Fixed window per key (client address + route prefix)
- The store is injected through app.extensions["rate_limit_store"] so tests
  and multi-process deployments can swap it
- InMemoryRateLimitStore is per-process and thread-safe
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


class RateLimitStore:
    """Interface for rate-limit state. Implementations must be thread-safe."""

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (window_start, count, window_seconds)
        self._windows: dict[str, tuple[float, int, int]] = {}
        self._last_sweep = clock()

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._sweep(now, window_seconds)
            start, count, _ = self._windows.get(key, (now, 0, window_seconds))
            if now - start >= window_seconds:
                start, count = now, 0

            if count >= limit:
                retry_after = max(1, int(window_seconds - (now - start) + 0.999))
                return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

            count += 1
            self._windows[key] = (start, count, window_seconds)
            return RateLimitResult(allowed=True, remaining=limit - count, retry_after=0)

    def _sweep(self, now: float, interval: int) -> None:
        """Drop expired windows, at most once per interval. Caller holds the lock."""
        if now - self._last_sweep < interval:
            return
        self._last_sweep = now
        expired = [k for k, (start, _, window) in self._windows.items() if now - start >= window]
        for k in expired:
            del self._windows[k]

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = self._clock()
