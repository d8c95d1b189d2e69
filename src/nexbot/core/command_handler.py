"""Inbound message dispatcher.

Subscribes to Telethon NewMessage events. A message starting with the
active prefix is parsed as ``<prefix><command> <args...>``, resolved
through the PluginManager, authorized against the owner, rate limited
and executed with a CommandContext. Anything else is handed to the
plugins' passive ``on_message`` observers.

Unknown commands and senders other than the owner are ignored without
any reply.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from telethon import events

from nexbot.core.context import create_context

if TYPE_CHECKING:
    from nexbot.core.plugin_manager import PluginManager
    from nexbot.utils.health import HealthChecker
    from nexbot.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class CommandHandler:
    """Single subscriber to the client's new-message stream."""

    def __init__(
        self,
        client: Any,
        plugin_manager: PluginManager,
        rate_limiter: RateLimiter,
        health: HealthChecker,
        *,
        prefix: str | None = None,
        owner_id: int | None = None,
    ) -> None:
        from nexbot.config import Config

        self._client = client
        self._plugin_manager = plugin_manager
        self._rate_limiter = rate_limiter
        self._health = health
        self.prefix = prefix if prefix is not None else Config.get_active_prefix()
        self.owner_id = owner_id if owner_id is not None else Config.telegram.owner_id

    def start(self) -> None:
        self._client.add_event_handler(self._on_new_message, events.NewMessage())
        logger.info("Command handler started (prefix=%r)", self.prefix)

    async def _on_new_message(self, event: Any) -> None:
        try:
            await self.handle_message(event.message)
        except Exception:
            logger.error("Message handling error", exc_info=True)

    async def handle_message(self, message: Any) -> None:
        """Classify and process one message. Never raises for plugin errors."""
        if message is None:
            return

        text = getattr(message, "message", None)
        if not text or not isinstance(text, str):
            return

        if not text.startswith(self.prefix):
            await self._dispatch_passive(message)
            return

        content = text[len(self.prefix):].strip()
        if not content:
            return

        parts = content.split()
        cmd_name = parts[0].lower()
        args = parts[1:]

        entry = self._plugin_manager.get_command(cmd_name)
        if entry is None:
            return

        raw_sender = getattr(message, "sender_id", None)
        try:
            sender_id = int(raw_sender)
        except (TypeError, ValueError):
            logger.warning("Cannot parse sender id: %r", raw_sender)
            return

        if sender_id != self.owner_id:
            return
        is_sudo = True

        rate = self._rate_limiter.record(f"{sender_id}:{cmd_name}")
        if not rate.allowed:
            await self._reply_rate_limited(message, rate.reset_time)
            self._health.record_command(False)
            return

        try:
            ctx = create_context(self._client, message, is_sudo)
            await entry.definition.handler(message, args, ctx)
        except Exception as e:
            logger.error(
                "Command execution error: %s (plugin=%s)",
                cmd_name,
                entry.plugin,
                exc_info=True,
            )
            self._health.record_command(False)
            await self._reply_error(message, e)
            return

        logger.debug("Command executed: %s [%s]", cmd_name, sender_id)
        self._health.record_command(True)

    async def _dispatch_passive(self, message: Any) -> None:
        try:
            await self._plugin_manager.handle_message(message)
        except Exception:
            logger.error("Plugin message dispatch error", exc_info=True)
            self._health.record_message(False)
            return
        self._health.record_message(True)

    async def _reply_rate_limited(self, message: Any, reset_time: float) -> None:
        seconds = max(1, math.ceil(reset_time - self._rate_limiter.clock()))
        try:
            await self._client.send_message(
                message.chat_id,
                f"⏱️ Too many requests, retry in {seconds} seconds",
                reply_to=message.id,
            )
        except Exception:
            logger.error("Failed to send rate limit notice", exc_info=True)

    async def _reply_error(self, message: Any, error: Exception) -> None:
        try:
            await self._client.send_message(
                message.chat_id, f"❌ Command execution error: {error}"
            )
        except Exception:
            logger.error("Failed to send error notice", exc_info=True)
