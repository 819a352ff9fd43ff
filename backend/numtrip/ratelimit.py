from __future__ import annotations

import time
from functools import wraps
from threading import Lock
from typing import Callable, Dict, Tuple

from flask import current_app, g, request

from .errors import TooManyRequests


class FixedWindowLimiter:
    """Per-process request counter bucketed by fixed time windows.

    Counts are kept in memory, so every worker process enforces its own limit.
    Each key holds only its current window; keys whose window has closed are
    swept at most once per ``sweep_interval`` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = 0.0
        # key -> (window end timestamp, count)
        self._counts: Dict[str, Tuple[float, int]] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._counts)

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        """Record one request for ``key``; False once the window's limit is exceeded."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            ends_at, count = self._counts.get(key, (0.0, 0))
            if now >= ends_at:
                ends_at = (now // window_seconds + 1) * window_seconds
                count = 0
            count += 1
            self._counts[key] = (ends_at, count)
        return count <= limit

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        for key in [k for k, (ends_at, _) in self._counts.items() if ends_at <= now]:
            del self._counts[key]
        self._next_sweep = now + self._sweep_interval


def rate_limit(scope: str, limit: int, window_seconds: int = 60):
    """Throttle a view per authenticated user, or per client IP when anonymous."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATELIMIT_ENABLED", True):
                uid = getattr(g, "current_user_id", None)
                who = f"user:{uid}" if uid else f"ip:{request.remote_addr or 'unknown'}"
                limiter: FixedWindowLimiter = current_app.extensions["numtrip"].limiter
                if not limiter.hit(f"{scope}:{who}", limit, window_seconds):
                    raise TooManyRequests("Too many requests, please try again later")
            return view(*args, **kwargs)

        return wrapper

    return decorator
