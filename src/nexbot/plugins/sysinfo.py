"""System status commands."""

from __future__ import annotations

import platform
import time
from typing import Any

import psutil

from nexbot import __version__
from nexbot.config import Config
from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.runtime import get_runtime
from nexbot.utils.formatting import bold, format_uptime, italic
from nexbot.utils.health import DEGRADED, HEALTHY, PASS

_STATUS_ICON = {HEALTHY: "🟢", DEGRADED: "🟡"}


def _bar(percent: float) -> str:
    filled = min(10, int(percent // 10))
    return "█" * filled + "░" * (10 - filled)


class SysinfoPlugin(Plugin):
    meta = PluginMeta(
        name="sysinfo",
        version="1.0.0",
        description="System status monitoring",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "sysinfo": CommandDefinition(
                description="Show system information",
                handler=self.sysinfo,
                aliases=["status", "stats", "info"],
            ),
            "uptime": CommandDefinition(
                description="Show uptime",
                handler=self.uptime,
                aliases=["up"],
            ),
            "db": CommandDefinition(
                description="Database information",
                handler=self.db,
                aliases=["database"],
            ),
            "health": CommandDefinition(
                description="Health status",
                handler=self.health,
                aliases=["hc"],
            ),
            "cache": CommandDefinition(
                description="Cache statistics",
                handler=self.cache,
            ),
            "ratelimit": CommandDefinition(
                description="Rate limiter statistics",
                handler=self.ratelimit,
                aliases=["rl"],
            ),
        }

    async def sysinfo(self, message: Any, args: list[str], ctx: Any) -> None:
        vm = psutil.virtual_memory()
        cpu = psutil.cpu_percent(interval=None)
        cores = psutil.cpu_count() or 0

        text = bold(f"📊 {Config.bot_name}") + " " + italic(f"v{__version__}") + "\n\n"
        text += f"{platform.system()} · {platform.machine()} · Python {platform.python_version()}\n"
        text += f"⏱️ {format_uptime(time.time() - psutil.boot_time())}\n\n"
        text += f"💾 {_bar(vm.percent)} {vm.percent}%\n"
        text += f"{vm.used // 1024 // 1024}MB / {vm.total // 1024 // 1024}MB\n\n"
        text += f"💻 {_bar(cpu)} {cpu}%\n"
        text += f"{cores} cores · {platform.processor() or platform.machine()}"
        await ctx.reply_html(text)

    async def uptime(self, message: Any, args: list[str], ctx: Any) -> None:
        runtime = get_runtime()
        await ctx.reply_html(
            bold("⏳ Uptime") + "\n\n"
            + f"⏱️ System: {format_uptime(time.time() - psutil.boot_time())}\n"
            + f"⏱️ Process: {format_uptime(time.time() - runtime.started_at)}"
        )

    async def db(self, message: Any, args: list[str], ctx: Any) -> None:
        database = get_runtime().database
        aliases = len(database.get_all_aliases())
        plugins = database.get_all_plugins()
        enabled = sum(1 for p in plugins if p["enabled"])
        sudo = len(database.get_sudo_list())

        text = bold("🗄️ Database") + "\n\n"
        text += f"🏷️ {aliases} aliases\n"
        text += f"📦 {enabled}/{len(plugins)} external plugins enabled\n"
        text += f"👑 {sudo} sudo users"
        await ctx.reply_html(text)

    async def health(self, message: Any, args: list[str], ctx: Any) -> None:
        status = get_runtime().health.get_status()
        icon = _STATUS_ICON.get(status.status, "🔴")

        text = bold(f"{icon} Health: {status.status}") + "\n\n"
        text += f"⏱️ {format_uptime(status.uptime)}\n"
        text += (
            f"💾 {status.memory.percent}% · 📩 {status.messages_total}"
            f" · ⚡ {status.commands_total}\n"
        )
        problems = [c for c in status.checks if c.status != PASS]
        if problems:
            text += "\n" + "\n".join(f"⚠️ {c.name}: {c.message}" for c in problems)
        await ctx.reply_html(text)

    async def cache(self, message: Any, args: list[str], ctx: Any) -> None:
        stats = get_runtime().cache.get_stats()
        text = bold("🧠 Cache") + "\n\n"
        text += f"📦 {stats.size} entries\n"
        text += f"🎯 {stats.hit_rate}% hit rate ({stats.hits} hits / {stats.misses} misses)"
        await ctx.reply_html(text)

    async def ratelimit(self, message: Any, args: list[str], ctx: Any) -> None:
        limiter = get_runtime().rate_limiter
        stats = limiter.get_stats()
        text = bold("🚦 Rate limit") + "\n\n"
        text += f"🎯 {limiter.max_requests} requests / {limiter.window}s\n"
        text += f"👤 {stats['tracked']} tracked · 🚫 {stats['blocked']} blocked"
        await ctx.reply_html(text)
