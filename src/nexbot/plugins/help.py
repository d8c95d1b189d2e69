"""Help plugin: command overview and per-command details."""

from __future__ import annotations

from typing import Any

from nexbot import __version__
from nexbot.config import Config
from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.runtime import get_runtime
from nexbot.utils.formatting import blockquote, bold, copyable, escape_html, italic


class HelpPlugin(Plugin):
    meta = PluginMeta(
        name="help",
        version="1.0.0",
        description="Help and command list",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "help": CommandDefinition(
                description="Show help",
                handler=self.help,
                aliases=["h", "start"],
                examples=["help", "help ping", "help plugin"],
            ),
        }

    async def help(self, message: Any, args: list[str], ctx: Any) -> None:
        if args:
            await ctx.reply_html(self.render_command(args[0].lower()))
        else:
            await ctx.reply_html(self.render_overview())

    def render_command(self, name: str) -> str:
        runtime = get_runtime()
        manager = runtime.plugin_manager
        entry = manager.get_command(name)
        if entry is None:
            return f"❓ Unknown command: {escape_html(name)}"

        definition = entry.definition
        lines = [
            f"Description: {escape_html(definition.description)}",
            f"Plugin: {escape_html(entry.plugin)}",
        ]

        if manager.is_cmd_handler_command(name):
            split = manager.get_plugin_commands(entry.plugin)
            lines.append("")
            lines.append("📋 Commands provided by this plugin:")
            if split.cmd_handlers:
                lines.append(f"Handlers: {escape_html(', '.join(split.cmd_handlers))}")
            if split.commands:
                lines.append(f"Commands: {escape_html(', '.join(split.commands))}")
            plugin = manager.get_plugin(entry.plugin)
            if plugin is not None and plugin.meta.description:
                lines.append("")
                lines.append(escape_html(plugin.meta.description))

        if definition.aliases:
            lines.append("")
            lines.append(f"Aliases: {escape_html(', '.join(definition.aliases))}")

        if definition.examples:
            lines.append("")
            lines.append("Examples:")
            lines.extend(f"  {escape_html(runtime.prefix + ex)}" for ex in definition.examples)

        return bold(f"📖 Help: {name}") + "\n\n" + blockquote("\n".join(lines), expandable=True)

    def render_overview(self) -> str:
        runtime = get_runtime()
        prefix = runtime.prefix

        text = bold(f"🤖 {Config.bot_name}") + " " + italic(f"v{__version__}") + "\n\n"
        text += f"Prefix {copyable(prefix)} · details {copyable('help <command>', prefix)}\n\n"

        sections = []
        for plugin in runtime.plugin_manager.get_all_plugins():
            split = runtime.plugin_manager.get_plugin_commands(plugin.meta.name)
            names = split.commands + split.cmd_handlers
            if not names:
                continue
            sections.append(
                bold(plugin.meta.name) + "\n" + " ".join(copyable(n, prefix) for n in names)
            )

        text += blockquote("\n\n".join(sections) or "No commands", expandable=True)
        return text
