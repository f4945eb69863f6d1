from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from fastapi import Request

from .errors import IndiError


class RateLimitExceeded(IndiError):
    status_code = 429
    code = "rate_limited"


SWEEP_INTERVAL_SECONDS = 60


class RateLimiter:
    """Fixed-window counter keyed by scope and client address.

    Keys whose window has ended are dropped on a periodic sweep.
    """

    def __init__(self) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_count, reset) in self._hits.items() if reset < now]
        for key in expired:
            del self._hits[key]
        self._next_sweep = now + SWEEP_INTERVAL_SECONDS

    def check(self, key: str, limit: int, window_seconds: int) -> None:
        if limit <= 0:
            return
        now = time.time()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            count, reset = self._hits.get(key, (0, now + window_seconds))
            if now > reset:
                count = 0
                reset = now + window_seconds
            count += 1
            self._hits[key] = (count, reset)
            if count > limit:
                raise RateLimitExceeded("Too many requests, try again shortly.")


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    key = f"{scope}:{client_ip(request)}"
    limiter.check(key, limit, window_seconds)
