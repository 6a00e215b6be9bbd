"""In-memory read-through cache for feed documents with a fixed TTL."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Cached value with its expiry instant on the cache clock."""

    value: T
    expires_at: float


class TtlCache(Generic[T]):
    """Thread-safe key/value store whose entries expire ``ttl_seconds`` after a set.

    Expired entries are never swept; they are reported as misses and replaced
    by the next :meth:`set` for the same key.
    """

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic) -> None:
        """Initialise an empty cache with a fixed TTL."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        """Return the value for ``key`` while it is fresh, otherwise ``None``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() < entry.expires_at:
                LOGGER.debug("Cache hit for key: %s", key)
                return entry.value
        if entry is not None:
            LOGGER.debug("Cache expired for key: %s", key)
        else:
            LOGGER.debug("Cache miss for key: %s", key)
        return None

    def set(self, key: str, value: T) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock() + self._ttl)
        LOGGER.debug("Cache set for key: %s (TTL: %ss)", key, self._ttl)

    def size(self) -> int:
        """Number of stored entries, stale ones included."""
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "Clock", "TtlCache"]
