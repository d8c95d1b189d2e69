"""Plugin base class and command definitions.

Plugins are self-describing units of functionality. Each plugin declares
its identity via PluginMeta and exposes commands in one or both of two
shapes:

  - ``register_commands()``: declarative CommandDefinition mapping.
  - ``register_cmd_handlers()``: legacy raw handlers called as
    ``handler(message, *args)``, without a CommandContext.

Lifecycle hooks are optional and looked up by name, so a plugin only
defines the ones it needs:

  - ``async on_init(client)``: once, at registration.
  - ``async on_message(message, client)``: for every non-command message.
  - ``async on_unload()``: once, at unregistration, reload or shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from nexbot.core.context import CommandContext


class PluginLoadError(Exception):
    """A plugin source file could not be turned into a plugin instance."""


@dataclass(frozen=True)
class PluginMeta:
    """Immutable plugin identity.

    ``name`` is the registry key and the unit of enable/disable/reload.
    The rest is advisory.
    """

    name: str
    version: str = "1.0.0"
    description: str = ""
    author: str = ""


CommandHandler = Callable[[Any, list[str], "CommandContext"], Awaitable[None]]
CmdHandler = Callable[..., Awaitable[None]]


@dataclass
class CommandDefinition:
    """A declarative command.

    ``sudo`` is advisory: dispatch authorizes against the owner only.
    """

    description: str
    handler: CommandHandler
    aliases: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    sudo: bool = False


class Plugin:
    """Base class for plugins.

    Subclasses set ``meta`` as a class attribute and override
    ``register_commands()`` and/or ``register_cmd_handlers()``.
    A plugin exposing nothing is legal and simply inert.
    """

    meta: PluginMeta

    def register_commands(self) -> dict[str, CommandDefinition]:
        """Return a mapping of command name -> CommandDefinition."""
        return {}

    def register_cmd_handlers(self) -> dict[str, CmdHandler]:
        """Return a mapping of command name -> legacy handler.

        Each handler signature: ``async (message, *args) -> None``
        """
        return {}
