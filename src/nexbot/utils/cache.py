"""In-memory TTL cache shared by plugins.

Entries expire ``ttl`` seconds after they are set (0 means never).
When full, the oldest entry by creation time is evicted.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from nexbot.utils.scheduler import PeriodicTimer

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CacheStats:
    hits: int
    misses: int
    size: int
    hit_rate: float


@dataclass
class _Entry:
    value: Any
    expiry: float | None
    created_at: float


class Cache:
    """Dictionary cache with per-entry TTL and hit/miss accounting."""

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 300,
        cleanup_interval: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.clock = clock

        self._entries: dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()
        self._sweeper = PeriodicTimer(cleanup_interval, self.cleanup, name="cache.cleanup")

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            if len(self._entries) >= self.max_size and key not in self._entries:
                self._evict_oldest()

            ttl = self.default_ttl if ttl is None else ttl
            now = self.clock()
            self._entries[key] = _Entry(
                value=value,
                expiry=None if ttl == 0 else now + ttl,
                created_at=now,
            )

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default

            if entry.expiry is not None and self.clock() > entry.expiry:
                del self._entries[key]
                self._misses += 1
                return default

            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        """True if ``key`` holds a live entry. Does not touch hit/miss counters."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expiry is not None and self.clock() > entry.expiry:
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value, or await ``factory()`` and cache its result."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = await factory()
        self.set(key, value, ttl)
        return value

    def cleanup(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            now = self.clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.expiry is not None and now > entry.expiry
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Cache cleanup: removed %d expired entries", len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = round(self._hits / total * 100, 2) if total else 0.0
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                hit_rate=hit_rate,
            )

    def start(self) -> None:
        """Start the periodic cleanup."""
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()

    def destroy(self) -> None:
        self.stop()
        self.clear()

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest]
