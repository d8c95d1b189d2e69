"""Plugin lifecycle manager.

Owns the registry of loaded plugins and the command/alias index.
Handles loading plugin source files from the built-in and external
directories, registration and unregistration, hot reload, command
lookup and the passive ``on_message`` fan-out.

Notification is delegated to an async callable injected at construction.
The manager does not know about Telegram chats, it only calls the notifier.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from nexbot.core.plugin import (
    CmdHandler,
    CommandDefinition,
    Plugin,
    PluginLoadError,
)

if TYPE_CHECKING:
    from nexbot.database import Database

logger = logging.getLogger(__name__)

Notifier = Callable[[str], Awaitable[None]]

BUILTIN_DIR = Path(__file__).resolve().parent.parent / "plugins"
_BUILTIN_PACKAGE = "nexbot.plugins"
_EXTERNAL_PREFIX = "nexbot_ext_"


@dataclass
class LoadedPlugin:
    """Registry entry for one plugin.

    ``commands`` and ``cmd_handlers`` are the mappings captured at
    registration, so unregistration removes exactly what was added.
    """

    instance: Any
    path: str
    is_builtin: bool
    commands: dict[str, CommandDefinition] = field(default_factory=dict)
    cmd_handlers: dict[str, CmdHandler] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandEntry:
    """A resolved command: owning plugin name and its definition."""

    plugin: str
    definition: CommandDefinition
    legacy: bool = False


@dataclass
class PluginCommands:
    """A plugin's triggers split by registration style."""

    commands: list[str] = field(default_factory=list)
    cmd_handlers: list[str] = field(default_factory=list)


class PluginManager:
    """Manages plugin lifecycle and command lookup.

    Built-in plugins are always loaded. External plugins are loaded only
    when the store reports them as enabled.
    """

    def __init__(
        self,
        store: Database | None = None,
        *,
        builtin_dir: str | Path | None = None,
        plugins_dir: str | Path | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        if plugins_dir is None:
            from nexbot.config import Config

            plugins_dir = Config.get_plugins_path()

        self._store = store
        self._builtin_dir = Path(builtin_dir) if builtin_dir else BUILTIN_DIR
        self._plugins_dir = Path(plugins_dir)
        self._notifier = notifier
        self._client: Any = None

        self._plugins: dict[str, LoadedPlugin] = {}
        self._commands: dict[str, CommandEntry] = {}
        self._aliases: dict[str, str] = {}

        if store is not None:
            self._aliases.update(store.get_all_aliases())

    @property
    def plugins(self) -> dict[str, Any]:
        """Snapshot of currently loaded plugins."""
        return {name: loaded.instance for name, loaded in self._plugins.items()}

    @property
    def plugins_dir(self) -> Path:
        return self._plugins_dir

    @property
    def client(self) -> Any:
        return self._client

    def set_client(self, client: Any) -> None:
        """Attach the transport client used by lifecycle and message hooks."""
        self._client = client

    def is_builtin(self, name: str) -> bool:
        loaded = self._plugins.get(name)
        return loaded is not None and loaded.is_builtin

    # -- Loading --------------------------------------------------------------

    async def load_builtins(self) -> list[str]:
        """Load every plugin file in the built-in directory.

        A file that fails to import or register is logged and skipped.

        Returns:
            Names of the plugins registered by this call.
        """
        loaded = []
        for path in self._scan(self._builtin_dir):
            try:
                plugin = self.import_plugin(path, is_builtin=True)
                await self.register_plugin(plugin, str(path), is_external=False)
            except Exception:
                logger.error(
                    "Failed to load built-in plugin: %s", path.name, exc_info=True
                )
                await self._notify(f"❌ Plugin load failed: `{path.name}`")
                continue
            loaded.append(plugin.meta.name)

        logger.info("Loaded %d built-in plugins", len(loaded))
        return loaded

    async def load_externals(self) -> list[str]:
        """Load external plugin files that the store marks as enabled.

        Files on disk whose plugin is not enabled stay dormant.

        Returns:
            Names of the plugins registered by this call.
        """
        loaded = []
        for path in self._scan(self._plugins_dir):
            try:
                plugin = self.import_plugin(path)
                name = plugin.meta.name
                if self._store is None or not self._store.is_plugin_enabled(name):
                    self._cleanup_module(self._module_name(path, is_builtin=False))
                    logger.debug("External plugin not enabled, skipping: %s", name)
                    continue
                await self.register_plugin(plugin, str(path), is_external=True)
            except Exception:
                logger.error(
                    "Failed to load external plugin: %s", path.name, exc_info=True
                )
                await self._notify(f"❌ Plugin load failed: `{path.name}`")
                continue
            loaded.append(name)

        logger.info(
            "Loaded %d external plugins from %s", len(loaded), self._plugins_dir
        )
        return loaded

    def import_plugin(self, path: str | Path, is_builtin: bool = False) -> Any:
        """Import a plugin source file and return its plugin instance.

        Any previous copy of the module is dropped from ``sys.modules``
        first, so the file is always executed fresh.

        Raises:
            PluginLoadError: If the module exposes no plugin.
            Exception: Whatever the module raises while executing.
        """
        path = Path(path)
        module_name = self._module_name(path, is_builtin)
        self._cleanup_module(module_name)
        importlib.invalidate_caches()

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Cannot import plugin file: {path}")

        mod = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = mod
        try:
            spec.loader.exec_module(mod)
            return self._extract_plugin(mod)
        except Exception:
            self._cleanup_module(module_name)
            raise

    # -- Registration ---------------------------------------------------------

    async def register_plugin(
        self, plugin: Any, path: str, is_external: bool = False
    ) -> None:
        """Register a plugin and index its commands.

        A plugin already registered under the same name is unregistered
        first. ``on_init`` errors propagate to the caller and leave the
        plugin unregistered.
        """
        name = plugin.meta.name

        if name in self._plugins:
            await self.unregister_plugin(name)

        on_init = getattr(plugin, "on_init", None)
        if on_init is not None and self._client is not None:
            await on_init(self._client)

        register_commands = getattr(plugin, "register_commands", None)
        register_cmd_handlers = getattr(plugin, "register_cmd_handlers", None)
        commands = dict(register_commands()) if register_commands else {}
        cmd_handlers = dict(register_cmd_handlers()) if register_cmd_handlers else {}

        for cmd, definition in commands.items():
            entry = CommandEntry(plugin=name, definition=definition)
            self._commands[cmd] = entry
            for alias in definition.aliases:
                self._commands[alias] = entry

        for cmd, handler in cmd_handlers.items():
            self._commands[cmd] = CommandEntry(
                plugin=name,
                definition=self._adapt_cmd_handler(cmd, handler),
                legacy=True,
            )

        self._plugins[name] = LoadedPlugin(
            instance=plugin,
            path=str(path),
            is_builtin=not is_external,
            commands=commands,
            cmd_handlers=cmd_handlers,
        )

        version = plugin.meta.version or "1.0.0"
        if is_external and self._store is not None:
            self._store.save_plugin(name, version)

        logger.info(
            "Plugin registered: %s v%s (%s)",
            name,
            version,
            "external" if is_external else "built-in",
        )

    async def unregister_plugin(self, name: str) -> None:
        """Unregister a plugin by name. No-op if it is not registered.

        Runs ``on_unload`` and removes every command and alias key owned
        by the plugin before dropping the registry entry.
        """
        loaded = self._plugins.get(name)
        if loaded is None:
            return

        on_unload = getattr(loaded.instance, "on_unload", None)
        if on_unload is not None:
            try:
                await on_unload()
            except Exception:
                logger.warning(
                    "Error during on_unload for plugin %s", name, exc_info=True
                )

        owned = [key for key, entry in self._commands.items() if entry.plugin == name]
        for key in owned:
            del self._commands[key]

        del self._plugins[name]
        logger.info("Plugin unregistered: %s", name)

    async def shutdown(self) -> None:
        """Unregister every plugin, most recently registered first."""
        for name in reversed(list(self._plugins)):
            await self.unregister_plugin(name)

    # -- Lookup ---------------------------------------------------------------

    def get_command(self, name: str) -> CommandEntry | None:
        """Resolve a command name.

        Order: persisted alias (exact, then case-insensitive), then the
        command index (exact, then case-insensitive).
        """
        target = self._aliases.get(name)
        if target is None:
            lowered = name.lower()
            for alias, command in self._aliases.items():
                if alias.lower() == lowered:
                    target = command
                    break
        if target is not None:
            name = target

        entry = self._commands.get(name)
        if entry is not None:
            return entry

        lowered = name.lower()
        for key, entry in self._commands.items():
            if key.lower() == lowered:
                return entry
        return None

    def get_all_commands(self) -> dict[str, CommandDefinition]:
        """Canonical command names mapped to definitions, declared aliases excluded."""
        return {
            cmd: entry.definition
            for cmd, entry in self._commands.items()
            if cmd not in entry.definition.aliases
        }

    def get_plugin(self, name: str) -> Any | None:
        loaded = self._plugins.get(name)
        if loaded is not None:
            return loaded.instance

        lowered = name.lower()
        for key, loaded in self._plugins.items():
            if key.lower() == lowered:
                return loaded.instance
        return None

    def get_all_plugins(self) -> list[Any]:
        return [loaded.instance for loaded in self._plugins.values()]

    def is_cmd_handler_command(self, name: str) -> bool:
        """True if the command was registered through ``register_cmd_handlers``."""
        entry = self.get_command(name)
        return entry is not None and entry.legacy

    def get_plugin_commands(self, name: str) -> PluginCommands:
        loaded = self._plugins.get(name)
        if loaded is None:
            return PluginCommands()
        return PluginCommands(
            commands=list(loaded.commands),
            cmd_handlers=list(loaded.cmd_handlers),
        )

    # -- Dispatch -------------------------------------------------------------

    async def handle_message(self, message: Any) -> None:
        """Pass a non-command message to every plugin's ``on_message``.

        Handler exceptions are logged and skipped (do not stop the fan-out).
        """
        if self._client is None or message is None:
            return

        for name, loaded in list(self._plugins.items()):
            on_message = getattr(loaded.instance, "on_message", None)
            if on_message is None:
                continue
            try:
                await on_message(message, self._client)
            except Exception:
                logger.error(
                    "Message handler error: plugin=%s", name, exc_info=True
                )

    # -- Aliases --------------------------------------------------------------

    def set_alias(self, alias: str, command: str) -> None:
        self._aliases[alias] = command
        if self._store is not None:
            self._store.set_alias(alias, command)

    def remove_alias(self, alias: str) -> None:
        self._aliases.pop(alias, None)
        if self._store is not None:
            self._store.remove_alias(alias)

    def get_aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    # -- Reload ---------------------------------------------------------------

    async def reload_plugin(self, name: str) -> bool:
        """Reload a plugin from its source file.

        The plugin is unregistered, its file re-imported and the result
        registered again with the same built-in/external flag.

        Returns:
            False if the plugin is not loaded or the reload failed.
        """
        loaded = self._plugins.get(name)
        if loaded is None:
            return False

        await self.unregister_plugin(name)

        try:
            plugin = self.import_plugin(loaded.path, is_builtin=loaded.is_builtin)
            await self.register_plugin(
                plugin, loaded.path, is_external=not loaded.is_builtin
            )
        except Exception:
            logger.error("Plugin reload failed: %s", name, exc_info=True)
            await self._notify(f"❌ Plugin reload failed: `{name}`")
            return False

        await self._notify(f"🔄 Plugin reloaded: `{name}` v{plugin.meta.version}")
        logger.info("Plugin reloaded: %s", name)
        return True

    async def reload_all(self) -> dict[str, bool]:
        """Reload every loaded plugin, one at a time.

        Only one summary notification is sent, not one per plugin.
        """
        saved_notifier = self._notifier
        self._notifier = None
        results: dict[str, bool] = {}
        try:
            for name in list(self._plugins):
                results[name] = await self.reload_plugin(name)
        finally:
            self._notifier = saved_notifier

        failed = [name for name, ok in results.items() if not ok]
        if failed:
            await self._notify(
                f"❌ Reload failed for: {', '.join(f'`{n}`' for n in failed)}"
            )
        else:
            await self._notify(f"🔄 Reloaded {len(results)} plugins")
        return results

    # -- Notifications --------------------------------------------------------

    async def notify_startup_summary(self) -> None:
        """Send a summary of all loaded plugins."""
        if not self._plugins:
            await self._notify("📦 No plugins loaded.")
            return

        lines = ["📦 Plugin startup summary:"]
        for name, loaded in self._plugins.items():
            kind = "built-in" if loaded.is_builtin else "external"
            lines.append(
                f"  - `{name}` v{loaded.instance.meta.version} ({kind})"
            )
        await self._notify("\n".join(lines))

    async def _notify(self, message: str) -> None:
        """Send a notification if a notifier is configured."""
        if self._notifier is None:
            return
        try:
            await self._notifier(message)
        except Exception:
            logger.warning(
                "Failed to send plugin notification: %s",
                message,
                exc_info=True,
            )

    # -- Helpers --------------------------------------------------------------

    @staticmethod
    def _adapt_cmd_handler(cmd: str, handler: CmdHandler) -> CommandDefinition:
        """Wrap a legacy ``handler(message, *args)`` as a CommandDefinition."""

        async def forward(message: Any, args: list[str], ctx: Any) -> None:
            await handler(message, *args)

        return CommandDefinition(description=f"{cmd} command", handler=forward)

    @staticmethod
    def _scan(directory: Path) -> list[Path]:
        if not directory.is_dir():
            return []
        return sorted(
            path
            for path in directory.glob("*.py")
            if not path.name.startswith("_")
        )

    @staticmethod
    def _module_name(path: Path, is_builtin: bool) -> str:
        path = Path(path)
        if is_builtin:
            return f"{_BUILTIN_PACKAGE}.{path.stem}"
        return f"{_EXTERNAL_PREFIX}{path.stem}"

    @classmethod
    def _extract_plugin(cls, mod: Any) -> Any:
        """Return the module's ``plugin`` object, or an instance of its
        single Plugin subclass.
        """
        exported = getattr(mod, "plugin", None)
        if exported is not None and not isinstance(exported, type):
            return exported

        plugin_cls = cls._find_plugin_class(mod)
        if plugin_cls is None:
            raise PluginLoadError(f"No plugin found in module '{mod.__name__}'")
        return plugin_cls()

    @staticmethod
    def _find_plugin_class(mod: Any) -> type[Plugin] | None:
        """Find the single Plugin subclass defined in a module.

        Raises TypeError if multiple are found.
        """
        candidates = [
            obj
            for obj in vars(mod).values()
            if (
                isinstance(obj, type)
                and issubclass(obj, Plugin)
                and obj is not Plugin
                and obj.__module__ == mod.__name__
            )
        ]
        if len(candidates) > 1:
            names = [c.__name__ for c in candidates]
            raise TypeError(
                f"Module contains multiple Plugin subclasses: {names}. "
                f"Each module must define exactly one."
            )
        return candidates[0] if candidates else None

    @staticmethod
    def _cleanup_module(module_name: str) -> None:
        """Remove a module and its submodules from sys.modules."""
        to_remove = [
            key
            for key in sys.modules
            if key == module_name or key.startswith(module_name + ".")
        ]
        for key in to_remove:
            del sys.modules[key]
