"""Shell command execution.

Disabled unless ENABLE_SHELL_EXEC is set. Commands run through
``bash -c`` (``cmd /c`` on Windows) with a timeout and truncated output.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any

from nexbot.config import Config
from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.utils.formatting import bold, code, pre

logger = logging.getLogger(__name__)

DANGEROUS_COMMANDS = (
    "rm -rf /",
    "rm -rf /*",
    "> /dev/sda",
    "mkfs",
    "dd if=/dev/zero",
    ":(){ :|:& };:",
)


@dataclass
class ShellResult:
    returncode: int
    stdout: str
    stderr: str


def is_dangerous(command: str) -> bool:
    return any(pattern in command for pattern in DANGEROUS_COMMANDS)


async def run_shell(command: str, timeout: float) -> ShellResult:
    """Run ``command`` in a shell.

    Raises:
        TimeoutError: If the command does not finish within ``timeout`` seconds.
    """
    if sys.platform == "win32":
        argv = ["cmd", "/c", command]
    else:
        argv = ["bash", "-c", command]

    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise TimeoutError(f"Command timed out after {timeout}s")

    return ShellResult(
        returncode=proc.returncode or 0,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class ExecPlugin(Plugin):
    meta = PluginMeta(
        name="exec",
        version="1.0.0",
        description="Shell command execution",
        author="NexBot",
    )

    def register_commands(self) -> dict[str, CommandDefinition]:
        return {
            "exec": CommandDefinition(
                description="Run a shell command",
                handler=self.run_command,
                aliases=["shell", "sh", "cmd"],
                examples=["exec ls -la", "exec pwd"],
                sudo=True,
            ),
        }

    async def run_command(self, message: Any, args: list[str], ctx: Any) -> None:
        if not Config.shell.enabled:
            await ctx.reply("🚫 Shell execution is disabled")
            return

        command = " ".join(args).strip()
        if not command:
            await ctx.reply("❓ Please provide a command")
            return

        if is_dangerous(command):
            logger.warning("Blocked dangerous command: %s", command)
            await ctx.reply("⚠️ Dangerous command blocked")
            return

        await ctx.reply_html(f"🔄 Running: {code(command)}")

        try:
            result = await run_shell(command, Config.shell.timeout_sec)
        except (OSError, TimeoutError) as e:
            await ctx.reply(f"❌ Execution failed: {e}")
            return

        output = result.stdout or "(no output)"
        if result.stderr:
            output += "\n\n[stderr]\n" + result.stderr
        if len(output) > Config.shell.max_output:
            output = output[: Config.shell.max_output] + "\n... (output truncated)"

        text = bold("💻 Result") + "\n\n"
        text += bold("⌨️ Command:") + " " + code(command) + "\n"
        text += bold("🔢 Exit code:") + f" {result.returncode}\n\n"
        text += pre(output)
        await ctx.reply_html(text)
