"""Shared services for built-in plugins.

The bootstrap builds one Runtime and installs it with ``set_runtime()``.
Plugins read it lazily with ``get_runtime()`` inside their handlers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nexbot.core.plugin_manager import PluginManager
    from nexbot.database import Database
    from nexbot.utils.cache import Cache
    from nexbot.utils.health import HealthChecker
    from nexbot.utils.rate_limiter import RateLimiter


@dataclass
class Runtime:
    plugin_manager: PluginManager
    database: Database
    rate_limiter: RateLimiter
    cache: Cache
    health: HealthChecker
    prefix: str = "."
    started_at: float = field(default_factory=time.time)


_runtime: Runtime | None = None


def set_runtime(runtime: Runtime | None) -> None:
    global _runtime
    _runtime = runtime


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("nexbot runtime is not initialized")
    return _runtime
