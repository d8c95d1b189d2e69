"""Per-invocation command context.

A CommandContext closes over the triggering message's chat and id and
exposes reply/edit/delete against the Telegram client. One is built for
every dispatched command and discarded after the handler returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ReplyOptions:
    """Options for ``CommandContext.reply`` and ``CommandContext.edit``.

    ``parse_mode`` is passed to Telethon as-is (``"html"``, ``"md"``).
    None keeps the client's default parse mode.
    Link previews are shown only when ``disable_web_page_preview`` is
    explicitly False.
    """

    parse_mode: str | None = None
    reply_to_message_id: int | None = None
    disable_web_page_preview: bool | None = None
    silent: bool | None = None


def _parse_mode_kwargs(options: ReplyOptions) -> dict[str, Any]:
    # Telethon treats parse_mode=None as plain text
    if options.parse_mode is None:
        return {}
    return {"parse_mode": options.parse_mode}


class CommandContext:
    """Reply/edit/delete facade handed to command handlers."""

    def __init__(self, client: Any, message: Any, is_sudo: bool) -> None:
        self.client = client
        self.message = message
        self.is_sudo = is_sudo
        self.chat_id = message.chat_id
        self.message_id = message.id

        self.is_private = bool(getattr(message, "is_private", False))
        self.is_group = bool(getattr(message, "is_group", False))
        # Telethon reports megagroups as channels too
        self.is_channel = bool(getattr(message, "is_channel", False)) and not self.is_group

    async def reply(self, text: str, options: ReplyOptions | None = None) -> Any:
        """Send ``text`` to the same chat as a reply.

        Replies to ``options.reply_to_message_id`` when set, otherwise to
        the triggering message.
        """
        options = options or ReplyOptions()
        return await self.client.send_message(
            self.chat_id,
            text,
            reply_to=options.reply_to_message_id or self.message_id,
            link_preview=options.disable_web_page_preview is False,
            silent=options.silent,
            **_parse_mode_kwargs(options),
        )

    async def reply_html(self, html: str, options: ReplyOptions | None = None) -> Any:
        options = replace(options or ReplyOptions(), parse_mode="html")
        return await self.reply(html, options)

    async def edit(self, text: str, options: ReplyOptions | None = None) -> Any:
        """Replace the triggering message's text in place."""
        options = options or ReplyOptions()
        return await self.client.edit_message(
            self.chat_id,
            self.message_id,
            text,
            link_preview=options.disable_web_page_preview is False,
            **_parse_mode_kwargs(options),
        )

    async def edit_html(self, html: str, options: ReplyOptions | None = None) -> Any:
        options = replace(options or ReplyOptions(), parse_mode="html")
        return await self.edit(html, options)

    async def delete_message(self) -> None:
        """Delete the triggering message for everyone. Errors are ignored."""
        try:
            await self.client.delete_messages(
                self.chat_id, [self.message_id], revoke=True
            )
        except Exception as e:
            logger.debug(f"Message delete failed (ignored): {e}")


def create_context(client: Any, message: Any, is_sudo: bool) -> CommandContext:
    """Create a CommandContext bound to ``message``.

    Example::

        ctx = create_context(client, event.message, is_sudo=True)
        await ctx.reply_html("<b>done</b>")
    """
    return CommandContext(client, message, is_sudo)
