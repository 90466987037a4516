"""Simple in-memory rate limiting utilities."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict

from app.core.exceptions import RateLimitExceededError


@dataclass
class _Bucket:
    window_seconds: int
    timestamps: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()


class InMemoryRateLimiter:
    """
    Sliding-window rate limiter suitable for single-node deployments.

    Buckets are keyed by caller-supplied strings (ip, identifier), so empty
    buckets are dropped and idle ones are swept every ``sweep_interval``
    seconds to keep memory bounded by recent traffic.
    """

    def __init__(self, timer: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._timer = timer
        self._lock = threading.Lock()
        self._buckets: Dict[str, _Bucket] = {}
        self._sweep_interval = sweep_interval
        self._last_sweep = timer()

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        for key in list(self._buckets):
            bucket = self._buckets[key]
            bucket.prune(now)
            if not bucket.timestamps:
                del self._buckets[key]

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = self._timer()
        with self._lock:
            self._sweep(now)
            bucket = self._buckets.get(key)
            if bucket is not None:
                bucket.prune(now)
                if not bucket.timestamps:
                    del self._buckets[key]
                    bucket = None
            if bucket is None:
                if limit <= 0:
                    return False
                bucket = self._buckets[key] = _Bucket(window_seconds)
            elif len(bucket.timestamps) >= limit:
                return False
            bucket.timestamps.append(now)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def hit(self, key: str, limit: int, window_seconds: int, message: str) -> None:
        """Record one request, raising ``RateLimitExceededError`` over the limit."""
        if limit > 0 and not self.allow(key, limit, window_seconds):
            raise RateLimitExceededError(message)
