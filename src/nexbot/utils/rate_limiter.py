"""Per-key command rate limiter.

Counts requests per key inside a fixed window. A key that exceeds the
window's budget is blocked for ``block_duration`` seconds. Times are
seconds from ``clock`` (``time.time`` by default).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from nexbot.utils.scheduler import PeriodicTimer

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SEC = 60


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float


@dataclass
class _Window:
    count: int
    first_request: float
    last_request: float


class RateLimiter:
    """Fixed-window rate limiter with timed blocking on overflow."""

    def __init__(
        self,
        max_requests: int = 10,
        window: float = 60,
        block_duration: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self.block_duration = block_duration
        self.clock = clock

        self._requests: dict[str, _Window] = {}
        self._blocked: dict[str, float] = {}
        self._lock = threading.Lock()
        self._sweeper = PeriodicTimer(
            CLEANUP_INTERVAL_SEC, self.cleanup, name="rate_limiter.cleanup"
        )

    def is_allowed(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it may proceed."""
        with self._lock:
            now = self.clock()

            blocked_until = self._blocked.get(key)
            if blocked_until is not None:
                if now < blocked_until:
                    return RateLimitResult(False, 0, blocked_until)
                del self._blocked[key]

            entry = self._requests.get(key)
            if entry is None or now - entry.first_request > self.window:
                entry = _Window(count=0, first_request=now, last_request=now)
                self._requests[key] = entry

            if entry.count >= self.max_requests:
                block_until = now + self.block_duration
                self._blocked[key] = block_until
                del self._requests[key]
                logger.warning(
                    "Rate limit exceeded: %s blocked for %ss", key, self.block_duration
                )
                return RateLimitResult(False, 0, block_until)

            entry.count += 1
            entry.last_request = now
            return RateLimitResult(
                True,
                self.max_requests - entry.count,
                entry.first_request + self.window,
            )

    def record(self, key: str) -> RateLimitResult:
        return self.is_allowed(key)

    def block(self, key: str, duration: float | None = None) -> None:
        with self._lock:
            until = self.clock() + (duration or self.block_duration)
            self._blocked[key] = until
            self._requests.pop(key, None)
        logger.info("Blocked %s for %ss", key, duration or self.block_duration)

    def unblock(self, key: str) -> None:
        with self._lock:
            self._blocked.pop(key, None)
            self._requests.pop(key, None)
        logger.info("Unblocked %s", key)

    def is_blocked(self, key: str) -> bool:
        with self._lock:
            blocked_until = self._blocked.get(key)
            if blocked_until is None:
                return False
            if self.clock() >= blocked_until:
                del self._blocked[key]
                return False
            return True

    def get_remaining(self, key: str) -> int:
        with self._lock:
            entry = self._requests.get(key)
            if entry is None or self.clock() - entry.first_request > self.window:
                return self.max_requests
            return max(0, self.max_requests - entry.count)

    def cleanup(self) -> int:
        """Drop expired blocks and windows idle for longer than one window.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self.clock()
            expired_blocks = [k for k, until in self._blocked.items() if now >= until]
            idle = [
                k
                for k, entry in self._requests.items()
                if now - entry.last_request > self.window
            ]
            for key in expired_blocks:
                del self._blocked[key]
            for key in idle:
                del self._requests[key]

        removed = len(expired_blocks) + len(idle)
        if removed:
            logger.debug("Rate limiter cleanup: removed %d entries", removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._requests.clear()
            self._blocked.clear()

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {"tracked": len(self._requests), "blocked": len(self._blocked)}

    def start(self) -> None:
        """Start the periodic cleanup."""
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()

    def destroy(self) -> None:
        self.stop()
        self.clear()
