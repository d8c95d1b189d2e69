"""Sudo user management.

Maintains the sudo table in the database. Command dispatch itself only
authorizes the owner account.
"""

from __future__ import annotations

import logging
from typing import Any

from telethon.tl.types import MessageEntityMentionName

from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.runtime import get_runtime
from nexbot.utils.formatting import blockquote, bold, copyable

logger = logging.getLogger(__name__)


async def resolve_target_user(message: Any, target: str | None) -> int | None:
    """Find a user id from a mention entity, the replied-to message, or a numeric argument."""
    for entity in getattr(message, "entities", None) or []:
        if isinstance(entity, MessageEntityMentionName):
            return entity.user_id

    if getattr(message, "is_reply", False):
        try:
            reply = await message.get_reply_message()
        except Exception as e:
            logger.debug(f"Reply message lookup failed: {e}")
            reply = None
        if reply is not None and reply.sender_id:
            return int(reply.sender_id)

    if target and target.isdigit():
        return int(target)
    return None


class SudoPlugin(Plugin):
    meta = PluginMeta(
        name="sudo",
        version="1.0.0",
        description="Sudo permission management",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "sudo": CommandDefinition(
                description="Manage sudo users",
                handler=self.sudo,
                aliases=["admin"],
                examples=["sudo add @user", "sudo remove <user id>", "sudo list"],
                sudo=True,
            ),
        }

    async def sudo(self, message: Any, args: list[str], ctx: Any) -> None:
        action = args[0].lower() if args else ""
        target = args[1] if len(args) > 1 else None
        db = get_runtime().database

        if action in ("add", "a"):
            if not target and not getattr(message, "is_reply", False):
                await ctx.reply("❓ Please specify a user")
                return
            user_id = await resolve_target_user(message, target)
            if user_id is None:
                await ctx.reply("❓ Cannot identify the user. Reply to their message or pass a user id")
                return
            db.add_sudo(user_id)
            await ctx.reply(f"✅ Sudo granted: {user_id}")

        elif action in ("remove", "rm", "r"):
            if not target:
                await ctx.reply("❓ Please specify a user id")
                return
            if not target.isdigit():
                await ctx.reply("❌ Invalid user id")
                return
            db.remove_sudo(int(target))
            await ctx.reply(f"✅ Sudo revoked: {target}")

        elif action in ("list", "ls", "l"):
            users = db.get_sudo_list()
            if not users:
                await ctx.reply("👑 Sudo list is empty")
                return
            body = "\n".join(str(u) for u in users) + f"\n\nTotal: {len(users)}"
            await ctx.reply_html(bold("👑 Sudo users") + "\n\n" + blockquote(body, expandable=True))

        else:
            prefix = get_runtime().prefix
            text = bold("👑 Sudo management") + "\n\n"
            text += f"{copyable('sudo add <user>', prefix)} - Grant sudo\n"
            text += f"{copyable('sudo remove <user id>', prefix)} - Revoke sudo\n"
            text += f"{copyable('sudo list', prefix)} - List sudo users"
            await ctx.reply_html(text)
