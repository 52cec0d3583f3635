"""Short-lived in-memory cache for provider read paths."""

import itertools
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

MISS = object()


class TTLCache:
    """Thread-safe key/value cache with lazy expiry and prefix invalidation.

    A ``put`` may race with an ``invalidate`` for the same key: the reader took
    its ticket, went to the provider, and came back after a mutation dropped the
    key. Passing the ticket to ``put`` makes the write a no-op in that case, so
    an invalidated key is never resurrected with data fetched before the
    invalidation.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._invalidated: Dict[str, int] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _next(self) -> int:
        return next(self._sequence)

    def ticket(self) -> int:
        """Return a token ordering a future ``put`` against invalidations."""
        with self._lock:
            return self._next()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            inserted_at, value = entry
            if self.clock() - inserted_at > self.ttl_seconds:
                del self._entries[key]
                return MISS
            return value

    def put(self, key: str, value: Any, ticket: Optional[int] = None) -> bool:
        """Store ``value``; returns False when a newer invalidation wins."""
        with self._lock:
            if ticket is not None:
                for prefix, seq in self._invalidated.items():
                    if seq > ticket and key.startswith(prefix):
                        return False
            self._entries[key] = (self.clock(), value)
            return True

    def invalidate(self, prefix_or_key: str) -> int:
        """Drop ``prefix_or_key`` and every key starting with it."""
        with self._lock:
            self._invalidated[prefix_or_key] = self._next()
            doomed = [key for key in self._entries if key.startswith(prefix_or_key)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidated = {"": self._next()}
