"""Plugin management commands: list, reload, install, remove and aliases."""

from __future__ import annotations

import logging
from typing import Any

from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.runtime import get_runtime
from nexbot.utils.formatting import blockquote, bold, copyable, escape_html

logger = logging.getLogger(__name__)


class PluginManagerPlugin(Plugin):
    meta = PluginMeta(
        name="plugin",
        version="1.0.0",
        description="Plugin manager",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "plugin": CommandDefinition(
                description="Manage plugins",
                handler=self.plugin,
                aliases=["pm", "plugins"],
                examples=["plugin list", "plugin install <name>", "plugin remove <name>"],
                sudo=True,
            ),
        }

    async def plugin(self, message: Any, args: list[str], ctx: Any) -> None:
        action = args[0].lower() if args else ""
        target = args[1] if len(args) > 1 else None

        if action in ("list", "ls"):
            await self._list(ctx)
        elif action in ("reload", "r"):
            await self._reload(ctx, target)
        elif action in ("reloadall", "ra"):
            await self._reload_all(ctx)
        elif action in ("install", "i"):
            await self._install(ctx, target)
        elif action in ("remove", "uninstall", "rm"):
            await self._remove(ctx, target)
        elif action == "alias":
            await self._alias(ctx, args[1:])
        else:
            await self._usage(ctx)

    async def _list(self, ctx: Any) -> None:
        runtime = get_runtime()
        manager = runtime.plugin_manager

        blocks = []
        for plugin in manager.get_all_plugins():
            name = plugin.meta.name
            split = manager.get_plugin_commands(name)
            cmds = split.commands + split.cmd_handlers
            kind = "" if manager.is_builtin(name) else " [external]"
            if cmds:
                blocks.append(
                    f"{escape_html(name)}{kind} ({len(cmds)} commands)\n  "
                    + " ".join(copyable(c, runtime.prefix) for c in cmds)
                )
            else:
                blocks.append(f"{escape_html(name)}{kind}\n  (no commands)")

        text = bold("📦 Loaded plugins") + "\n\n"
        text += blockquote("\n\n".join(blocks), expandable=True) + "\n\n"
        text += f"Use {copyable('help <command>', runtime.prefix)} for details"
        await ctx.reply_html(text)

    async def _reload(self, ctx: Any, name: str | None) -> None:
        if not name:
            await ctx.reply("❓ Please specify a plugin name")
            return

        if await get_runtime().plugin_manager.reload_plugin(name):
            await ctx.reply(f"✅ Plugin {name} reloaded")
        else:
            await ctx.reply(f"❌ Failed to reload plugin {name}")

    async def _reload_all(self, ctx: Any) -> None:
        results = await get_runtime().plugin_manager.reload_all()
        failed = [name for name, ok in results.items() if not ok]
        if failed:
            await ctx.reply(f"⚠️ Reloaded with failures: {', '.join(failed)}")
        else:
            await ctx.reply("✅ All plugins reloaded")

    async def _install(self, ctx: Any, name: str | None) -> None:
        if not name:
            await ctx.reply("❓ Please specify a plugin name\nUsage: plugin install <name>")
            return

        runtime = get_runtime()
        manager = runtime.plugin_manager
        path = manager.plugins_dir / f"{name}.py"
        logger.info("Installing plugin %s from %s", name, path)

        if not path.exists():
            logger.warning("Plugin file not found: %s", path)
            await ctx.reply(
                f'❌ Plugin "{name}" not found\nUse {runtime.prefix}plugin list to see loaded plugins'
            )
            return

        if runtime.database.is_plugin_enabled(name):
            await ctx.reply(f'⚠️ Plugin "{name}" is already installed')
            return

        # Import before enabling, so a broken file is never marked enabled
        try:
            plugin = manager.import_plugin(path)
            runtime.database.enable_plugin(plugin.meta.name)
            await manager.register_plugin(plugin, str(path), is_external=True)
        except Exception as e:
            logger.error("Failed to install plugin %s", name, exc_info=True)
            await ctx.reply(f'❌ Failed to load plugin "{name}":\n{e}')
            return

        await ctx.reply(f'✅ Plugin "{name}" installed')

    async def _remove(self, ctx: Any, name: str | None) -> None:
        if not name:
            await ctx.reply("❓ Please specify a plugin name\nUsage: plugin remove <name>")
            return

        runtime = get_runtime()
        if runtime.plugin_manager.is_builtin(name):
            await ctx.reply(f'⚠️ "{name}" is a built-in plugin and cannot be removed')
            return

        if not runtime.database.is_plugin_enabled(name):
            await ctx.reply(f'⚠️ Plugin "{name}" is not installed')
            return

        await runtime.plugin_manager.unregister_plugin(name)
        runtime.database.disable_plugin(name)
        await ctx.reply(f'✅ Plugin "{name}" removed')

    async def _alias(self, ctx: Any, args: list[str]) -> None:
        manager = get_runtime().plugin_manager
        action = args[0].lower() if args else "list"

        if action == "add":
            if len(args) < 3:
                await ctx.reply("❓ Usage: plugin alias add <alias> <command>")
                return
            alias, command = args[1], args[2]
            manager.set_alias(alias, command)
            await ctx.reply(f"✅ Alias set: {alias} -> {command}")
        elif action in ("remove", "rm"):
            if len(args) < 2:
                await ctx.reply("❓ Please specify an alias")
                return
            manager.remove_alias(args[1])
            await ctx.reply(f"✅ Alias removed: {args[1]}")
        else:
            aliases = manager.get_aliases()
            if not aliases:
                await ctx.reply_html(bold("🏷️ Command aliases") + "\n\nNo aliases")
                return
            body = "\n".join(
                f"{escape_html(a)} -> {escape_html(c)}" for a, c in aliases.items()
            )
            await ctx.reply_html(
                bold("🏷️ Command aliases") + "\n\n" + blockquote(body, expandable=True)
            )

    async def _usage(self, ctx: Any) -> None:
        prefix = get_runtime().prefix
        rows = [
            ("plugin list", "List plugins"),
            ("plugin install <name>", "Install a plugin"),
            ("plugin remove <name>", "Remove a plugin"),
            ("plugin reload <name>", "Reload a plugin"),
            ("plugin reloadall", "Reload all plugins"),
            ("plugin alias", "List aliases"),
        ]
        text = bold("🔌 Plugin manager") + "\n\n"
        text += "\n".join(f"{copyable(cmd, prefix)} - {desc}" for cmd, desc in rows)
        await ctx.reply_html(text)
