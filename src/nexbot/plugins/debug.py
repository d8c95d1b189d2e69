"""Debug commands: chat info, echo, ping and raw message dump."""

from __future__ import annotations

import json
import time
from typing import Any

from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.utils.formatting import bold, escape_html, pre

RAW_DUMP_LIMIT = 4000


class DebugPlugin(Plugin):
    meta = PluginMeta(
        name="debug",
        version="1.0.0",
        description="Debugging tools",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "id": CommandDefinition(
                description="Show chat and sender info",
                handler=self.chat_info,
                aliases=["chatid", "chat"],
            ),
            "echo": CommandDefinition(
                description="Echo the arguments back",
                handler=self.echo,
                aliases=["say"],
                examples=["echo Hello World"],
            ),
            "ping": CommandDefinition(
                description="Measure response time",
                handler=self.ping,
                aliases=["pong"],
            ),
            "msg": CommandDefinition(
                description="Dump the raw message as JSON",
                handler=self.dump_message,
            ),
        }

    async def chat_info(self, message: Any, args: list[str], ctx: Any) -> None:
        chat = await message.get_chat()
        sender = await message.get_sender()

        lines = [bold("🆔 Chat"), f"ID: {message.chat_id}"]
        if chat is not None:
            lines.append(f"Type: {type(chat).__name__}")
            if getattr(chat, "title", None):
                lines.append(f"Title: {escape_html(chat.title)}")
            if getattr(chat, "username", None):
                lines.append(f"Username: @{escape_html(chat.username)}")

        lines += ["", bold("📨 Sender"), f"ID: {message.sender_id}"]
        if sender is not None:
            first = getattr(sender, "first_name", None) or ""
            last = getattr(sender, "last_name", None) or ""
            if first or last:
                lines.append(f"Name: {escape_html((first + ' ' + last).strip())}")
            if getattr(sender, "username", None):
                lines.append(f"Username: @{escape_html(sender.username)}")

        lines += ["", bold("💬 Message"), f"ID: {message.id}"]
        if message.date:
            lines.append(f"Date: {message.date:%Y-%m-%d %H:%M:%S %Z}")

        await ctx.reply_html("\n".join(lines))

    async def echo(self, message: Any, args: list[str], ctx: Any) -> None:
        text = " ".join(args) or "👋 Hello from NexBot!"
        await ctx.reply(f"📢 {text}")

    async def ping(self, message: Any, args: list[str], ctx: Any) -> None:
        start = time.perf_counter()
        sent = await ctx.reply("🏓 Pong!")
        latency_ms = round((time.perf_counter() - start) * 1000)
        await ctx.client.edit_message(
            sent.chat_id, sent.id, f"{bold('🏓 Pong!')}\nLatency: {latency_ms}ms", parse_mode="html"
        )

    async def dump_message(self, message: Any, args: list[str], ctx: Any) -> None:
        data = json.dumps(message.to_dict(), default=str, ensure_ascii=False, indent=2)
        if len(data) > RAW_DUMP_LIMIT:
            data = data[:RAW_DUMP_LIMIT] + "\n... (truncated)"
        await ctx.reply_html(pre(data, "json"))
