"""Fixed-window request budget for the HTTP layer."""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from fastapi import Request, Response

from dnsboard.errors import RateLimited


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset_in: float


class RateLimiter:
    """Counts requests per key in fixed windows."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        stale = [key for key, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in stale:
            del self._windows[key]

    def hit(self, key: str) -> RateLimitInfo:
        """Count one request for ``key``.

        Raises:
            RateLimited: the key used up its budget for the current window.
        """
        with self._lock:
            now = self.clock()
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0
            if len(self._windows) > 10_000:
                self._sweep(now)
            count += 1
            self._windows[key] = (start, count)
            reset_in = max(0.0, start + self.window_seconds - now)
            if count > self.max_requests:
                raise RateLimited(
                    f"Rate limit exceeded. Try again in {math.ceil(reset_in)} seconds.",
                    retry_after=math.ceil(reset_in),
                )
            return RateLimitInfo(self.max_requests, self.max_requests - count, reset_in)


def client_key(request: Request) -> str:
    user_id = request.headers.get("user-id")
    if user_id:
        return f"user:{user_id}"
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for") \
        or request.headers.get("x-real-ip")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request, response: Response) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    info = limiter.hit(client_key(request))
    response.headers["X-RateLimit-Limit"] = str(info.limit)
    response.headers["X-RateLimit-Remaining"] = str(info.remaining)
    response.headers["X-RateLimit-Reset"] = str(math.ceil(info.reset_in))
