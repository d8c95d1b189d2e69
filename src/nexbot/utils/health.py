"""Process health checks.

Counts handled messages and commands and derives an overall status from
memory usage and error rates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import psutil

from nexbot.utils.scheduler import PeriodicTimer

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

PASS = "pass"
WARN = "warn"
FAIL = "fail"


@dataclass
class MemoryUsage:
    used_mb: int
    total_mb: int
    percent: float


@dataclass
class Check:
    name: str
    status: str
    message: str = ""


@dataclass
class HealthStatus:
    status: str
    uptime: float
    memory: MemoryUsage
    messages_total: int
    messages_errors: int
    commands_total: int
    commands_errors: int
    checks: list[Check] = field(default_factory=list)


def _memory_usage() -> MemoryUsage:
    vm = psutil.virtual_memory()
    return MemoryUsage(
        used_mb=round(vm.used / 1024 / 1024),
        total_mb=round(vm.total / 1024 / 1024),
        percent=vm.percent,
    )


def _threshold_check(name: str, label: str, value: float, warn: float, fail: float) -> Check:
    if value > fail:
        return Check(name, FAIL, f"{label} too high: {value:.1f}%")
    if value > warn:
        return Check(name, WARN, f"{label} high: {value:.1f}%")
    return Check(name, PASS)


class HealthChecker:
    """Message/command counters plus periodic status logging."""

    def __init__(
        self,
        memory_probe: Callable[[], MemoryUsage] = _memory_usage,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._memory_probe = memory_probe
        self._clock = clock
        self.start_time = clock()

        self.message_count = 0
        self.message_errors = 0
        self.command_count = 0
        self.command_errors = 0
        self.last_check: float | None = None
        self._monitor: PeriodicTimer | None = None

    def record_message(self, success: bool = True) -> None:
        self.message_count += 1
        if not success:
            self.message_errors += 1

    def record_command(self, success: bool = True) -> None:
        self.command_count += 1
        if not success:
            self.command_errors += 1

    def get_status(self) -> HealthStatus:
        memory = self._memory_probe()
        message_rate = (
            self.message_errors / self.message_count * 100 if self.message_count else 0.0
        )
        command_rate = (
            self.command_errors / self.command_count * 100 if self.command_count else 0.0
        )

        checks = [
            _threshold_check("memory", "Memory usage", memory.percent, 70, 85),
            _threshold_check("message_errors", "Message error rate", message_rate, 10, 20),
            _threshold_check("command_errors", "Command error rate", command_rate, 10, 20),
        ]

        if any(c.status == FAIL for c in checks):
            status = UNHEALTHY
        elif any(c.status == WARN for c in checks):
            status = DEGRADED
        else:
            status = HEALTHY

        return HealthStatus(
            status=status,
            uptime=self._clock() - self.start_time,
            memory=memory,
            messages_total=self.message_count,
            messages_errors=self.message_errors,
            commands_total=self.command_count,
            commands_errors=self.command_errors,
            checks=checks,
        )

    def get_stats(self) -> str:
        """Human-readable summary for chat replies."""
        s = self.get_status()
        label = {HEALTHY: "✅ Healthy", DEGRADED: "⚠️ Degraded"}.get(s.status, "❌ Unhealthy")
        return "\n".join([
            f"📊 Status: {label}",
            f"⏱️ Uptime: {int(s.uptime // 60)} min",
            f"💾 Memory: {s.memory.used_mb}MB / {s.memory.total_mb}MB ({s.memory.percent}%)",
            f"📩 Messages: {s.messages_total} ({s.messages_errors} errors)",
            f"⚡ Commands: {s.commands_total} ({s.commands_errors} errors)",
        ])

    def perform_check(self) -> HealthStatus:
        """Evaluate status once and log failed or warning checks."""
        status = self.get_status()
        if status.status == UNHEALTHY:
            failed = [f"{c.name}: {c.message}" for c in status.checks if c.status == FAIL]
            logger.error("Health check failed: %s", "; ".join(failed))
        elif status.status == DEGRADED:
            warned = [f"{c.name}: {c.message}" for c in status.checks if c.status == WARN]
            logger.warning("Health check warning: %s", "; ".join(warned))
        self.last_check = self._clock()
        return status

    def start_monitoring(self, interval_sec: float = 60) -> None:
        if self._monitor is not None:
            return
        self._monitor = PeriodicTimer(interval_sec, self.perform_check, name="health.check")
        self._monitor.start()
        logger.info("Health monitoring started (every %ss)", interval_sec)

    def stop_monitoring(self) -> None:
        if self._monitor is None:
            return
        self._monitor.stop()
        self._monitor = None
        logger.info("Health monitoring stopped")
