"""Tests for core/command_handler.py: prefix parsing, auth, rate limit, dispatch."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from nexbot.core.command_handler import CommandHandler
from nexbot.core.context import CommandContext
from nexbot.core.plugin import CommandDefinition, Plugin, PluginMeta
from nexbot.core.plugin_manager import PluginManager
from nexbot.utils.health import HealthChecker, MemoryUsage
from nexbot.utils.rate_limiter import RateLimiter

OWNER = 42


def make_message(text="", sender_id=OWNER, chat_id=100, msg_id=7):
    return SimpleNamespace(
        message=text,
        sender_id=sender_id,
        chat_id=chat_id,
        id=msg_id,
        is_private=True,
        is_group=False,
        is_channel=False,
    )


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class CommandPlugin(Plugin):
    """Exposes one command whose handler is a mock."""

    def __init__(self, name, command, aliases=None):
        self.meta = PluginMeta(name=name)
        self.command = command
        self.aliases = aliases or []
        self.handler = AsyncMock()

    def register_commands(self):
        return {
            self.command: CommandDefinition(
                description=f"{self.command} test",
                handler=self.handler,
                aliases=self.aliases,
            )
        }


class ObserverPlugin(Plugin):
    def __init__(self, name):
        self.meta = PluginMeta(name=name)
        self.on_message = AsyncMock()


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(max_requests=3, window=60, block_duration=300, clock=clock)


@pytest.fixture
def health():
    return HealthChecker(memory_probe=lambda: MemoryUsage(100, 1000, 10.0))


@pytest.fixture
def manager(client, tmp_path):
    pm = PluginManager(builtin_dir=tmp_path / "b", plugins_dir=tmp_path / "p")
    pm.set_client(client)
    return pm


@pytest.fixture
def handler(client, manager, rate_limiter, health):
    return CommandHandler(
        client, manager, rate_limiter, health, prefix=".", owner_id=OWNER
    )


class TestCommandDispatch:
    async def test_command_without_args(self, handler, manager):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        message = make_message(".ping")
        await handler.handle_message(message)

        plugin.handler.assert_awaited_once()
        msg, args, ctx = plugin.handler.await_args[0]
        assert msg is message
        assert args == []
        assert isinstance(ctx, CommandContext)
        assert ctx.is_sudo is True
        assert ctx.chat_id == 100

    async def test_arguments_split_on_whitespace(self, handler, manager):
        plugin = CommandPlugin("echoer", "say")
        await manager.register_plugin(plugin, "echoer.py")

        await handler.handle_message(make_message(".say   hello  world "))
        assert plugin.handler.await_args[0][1] == ["hello", "world"]

    async def test_command_name_lowercased(self, handler, manager, health):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        await handler.handle_message(make_message(".PING"))
        plugin.handler.assert_awaited_once()
        assert health.command_count == 1
        assert health.command_errors == 0

    async def test_declared_alias(self, handler, manager):
        plugin = CommandPlugin("helper", "help", aliases=["h"])
        await manager.register_plugin(plugin, "helper.py")

        await handler.handle_message(make_message(".h ping"))
        assert plugin.handler.await_args[0][1] == ["ping"]

    async def test_persisted_alias(self, handler, manager):
        plugin = CommandPlugin("weather", "weather")
        await manager.register_plugin(plugin, "weather.py")
        manager.set_alias("w", "weather")

        await handler.handle_message(make_message(".w Paris"))
        assert plugin.handler.await_args[0][1] == ["Paris"]

    async def test_legacy_handler_receives_spread_args(self, handler, manager):
        class Legacy(Plugin):
            meta = PluginMeta(name="legacy")

            def __init__(self):
                self.raw = AsyncMock()

            def register_cmd_handlers(self):
                return {"old": self.raw}

        plugin = Legacy()
        await manager.register_plugin(plugin, "legacy.py")

        message = make_message(".old a b")
        await handler.handle_message(message)
        plugin.raw.assert_awaited_once_with(message, "a", "b")

    async def test_dev_prefix(self, client, manager, rate_limiter, health):
        handler = CommandHandler(
            client, manager, rate_limiter, health, prefix="!", owner_id=OWNER
        )
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        await handler.handle_message(make_message(".ping"))
        plugin.handler.assert_not_awaited()
        await handler.handle_message(make_message("!ping"))
        plugin.handler.assert_awaited_once()


class TestSilentCases:
    async def test_unknown_command_is_silent(self, handler, client):
        await handler.handle_message(make_message(".nothing here"))
        client.send_message.assert_not_awaited()

    async def test_bare_prefix_is_ignored(self, handler, client):
        await handler.handle_message(make_message(".   "))
        client.send_message.assert_not_awaited()

    async def test_empty_text_is_ignored(self, handler, manager, health):
        observer = ObserverPlugin("watcher")
        await manager.register_plugin(observer, "watcher.py")

        await handler.handle_message(make_message(""))
        await handler.handle_message(make_message(None))
        await handler.handle_message(None)
        observer.on_message.assert_not_awaited()
        assert health.message_count == 0

    async def test_non_owner_is_silent(self, handler, manager, client, health):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        await handler.handle_message(make_message(".ping", sender_id=999))
        plugin.handler.assert_not_awaited()
        client.send_message.assert_not_awaited()
        assert health.command_count == 0

    async def test_unparseable_sender_logs_warning(self, handler, manager, caplog):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        with caplog.at_level(logging.WARNING):
            await handler.handle_message(make_message(".ping", sender_id=None))
        plugin.handler.assert_not_awaited()
        assert "Cannot parse sender id" in caplog.text

    async def test_string_sender_id_is_accepted(self, handler, manager):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        await handler.handle_message(make_message(".ping", sender_id="42"))
        plugin.handler.assert_awaited_once()


class TestPassiveMessages:
    async def test_non_command_goes_to_every_observer(self, handler, manager, client, health):
        a = ObserverPlugin("a")
        b = ObserverPlugin("b")
        await manager.register_plugin(a, "a.py")
        await manager.register_plugin(b, "b.py")

        message = make_message("hi there")
        await handler.handle_message(message)

        a.on_message.assert_awaited_once_with(message, client)
        b.on_message.assert_awaited_once_with(message, client)
        client.send_message.assert_not_awaited()
        assert health.message_count == 1
        assert health.message_errors == 0

    async def test_command_is_not_observed(self, handler, manager):
        observer = ObserverPlugin("watcher")
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(observer, "watcher.py")
        await manager.register_plugin(plugin, "pinger.py")

        await handler.handle_message(make_message(".ping"))
        observer.on_message.assert_not_awaited()


class TestRateLimit:
    async def test_fourth_call_in_window_is_rejected(self, handler, manager, client, health):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        for i in range(4):
            await handler.handle_message(make_message(".ping", msg_id=10 + i))

        assert plugin.handler.await_count == 3
        client.send_message.assert_awaited_once()
        args, kwargs = client.send_message.await_args
        assert args[0] == 100
        assert args[1] == "⏱️ Too many requests, retry in 300 seconds"
        assert kwargs["reply_to"] == 13
        assert health.command_errors == 1

    async def test_limit_is_per_command(self, handler, manager):
        ping = CommandPlugin("pinger", "ping")
        echo = CommandPlugin("echoer", "say")
        await manager.register_plugin(ping, "pinger.py")
        await manager.register_plugin(echo, "echoer.py")

        for _ in range(4):
            await handler.handle_message(make_message(".ping"))
        await handler.handle_message(make_message(".say hi"))
        echo.handler.assert_awaited_once()

    async def test_allowed_again_after_block(self, handler, manager, clock):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        for _ in range(4):
            await handler.handle_message(make_message(".ping"))
        clock.now += 301
        await handler.handle_message(make_message(".ping"))
        assert plugin.handler.await_count == 4


class TestErrors:
    async def test_handler_error_is_reported(self, handler, manager, client, health):
        plugin = CommandPlugin("crasher", "crash")
        plugin.handler.side_effect = RuntimeError("boom")
        await manager.register_plugin(plugin, "crasher.py")

        await handler.handle_message(make_message(".crash"))

        client.send_message.assert_awaited_once_with(
            100, "❌ Command execution error: boom"
        )
        assert health.command_errors == 1

    async def test_handler_stays_usable_after_error(self, handler, manager):
        crasher = CommandPlugin("crasher", "crash")
        crasher.handler.side_effect = RuntimeError("boom")
        ping = CommandPlugin("pinger", "ping")
        await manager.register_plugin(crasher, "crasher.py")
        await manager.register_plugin(ping, "pinger.py")

        await handler.handle_message(make_message(".crash"))
        await handler.handle_message(make_message(".ping"))
        ping.handler.assert_awaited_once()

    async def test_error_notice_failure_is_logged(self, handler, manager, client, caplog):
        plugin = CommandPlugin("crasher", "crash")
        plugin.handler.side_effect = RuntimeError("boom")
        await manager.register_plugin(plugin, "crasher.py")
        client.send_message.side_effect = ConnectionError("offline")

        with caplog.at_level(logging.ERROR):
            await handler.handle_message(make_message(".crash"))
        assert "Failed to send error notice" in caplog.text


class TestEventSubscription:
    def test_start_registers_new_message_handler(self, handler, client):
        client.add_event_handler = MagicMock()
        handler.start()
        callback, event = client.add_event_handler.call_args[0]
        assert callback == handler._on_new_message
        assert type(event).__name__ == "NewMessage"

    async def test_event_wrapper_unpacks_message(self, handler, manager):
        plugin = CommandPlugin("pinger", "ping")
        await manager.register_plugin(plugin, "pinger.py")

        await handler._on_new_message(SimpleNamespace(message=make_message(".ping")))
        plugin.handler.assert_awaited_once()
