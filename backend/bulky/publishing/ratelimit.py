"""
Fixed-window rate limiting per tenant and action.

Defaults mirror the publish API: 100 single publishes and 10 bulk publishes
per minute per shop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from ..core.errors import RateLimitExceeded


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    limit: int


@dataclass
class _Window:
    start: float
    count: int = 0


class RateLimiter:
    def __init__(self, *, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: Dict[Tuple[str, str], _Window] = {}

    def check(self, tenant: str, action: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Count one request and report whether it is allowed."""
        now = self._clock()
        window = self._windows.get((tenant, action))

        if window is None or now > window.start + window_seconds:
            window = _Window(start=now, count=1)
            self._windows[(tenant, action)] = window
            return RateLimitResult(True, limit - 1, now + window_seconds, limit)

        reset_at = window.start + window_seconds
        if window.count >= limit:
            return RateLimitResult(False, 0, reset_at, limit)

        window.count += 1
        return RateLimitResult(True, limit - window.count, reset_at, limit)

    def hit(self, tenant: str, action: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Like `check`, but raises RateLimitExceeded when the request is refused."""
        result = self.check(tenant, action, limit, window_seconds)
        if not result.allowed:
            raise RateLimitExceeded(action, limit, max(0.0, result.reset_at - self._clock()))
        return result
