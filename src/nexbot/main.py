"""NexBot 메인

앱 초기화와 진입점만 담당합니다.
"""

import asyncio
import logging
import signal
import sys

from nexbot import __version__
from nexbot.client import ClientManager
from nexbot.config import Config, ConfigurationError
from nexbot.core.command_handler import CommandHandler
from nexbot.core.plugin_manager import PluginManager
from nexbot.database import Database
from nexbot.logging_config import setup_logging
from nexbot.runtime import Runtime, set_runtime
from nexbot.utils.cache import Cache
from nexbot.utils.health import HealthChecker
from nexbot.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _parse_chat(value: str):
    """숫자 문자열이면 int로, 아니면 그대로 (예: "me", "@channel")"""
    try:
        return int(value)
    except ValueError:
        return value


def _handle_loop_exception(loop, context) -> None:
    """처리되지 않은 비동기 예외는 로그만 남기고 계속 실행"""
    exc = context.get("exception")
    logger.error(
        f"처리되지 않은 예외: {context.get('message', '')}",
        exc_info=exc,
    )


class Application:
    """클라이언트, 저장소, 플러그인 매니저, 명령어 핸들러를 묶어 실행합니다."""

    def __init__(self):
        self.client_manager = ClientManager()
        self.database: Database | None = None
        self.plugin_manager: PluginManager | None = None
        self.command_handler: CommandHandler | None = None
        self.rate_limiter = RateLimiter(
            max_requests=Config.rate_limit.max_requests,
            window=Config.rate_limit.window_sec,
            block_duration=Config.rate_limit.block_sec,
        )
        self.cache = Cache()
        self.health = HealthChecker()

    def _build_notifier(self, client):
        """NOTIFY_CHAT이 설정된 경우 플러그인 알림을 해당 채팅으로 전송"""
        if not Config.telegram.notify_chat:
            return None
        chat = _parse_chat(Config.telegram.notify_chat)

        async def notify(text: str) -> None:
            await client.send_message(chat, text)

        return notify

    async def start(self):
        logger.info(f"🚀 {Config.bot_name} v{__version__} 시작 중...")
        logger.info(f"환경: {'development' if Config.dev_mode else 'production'}")

        self.database = Database(Config.get_db_path())
        client = await self.client_manager.create_client()

        owner_id = Config.telegram.owner_id
        if not owner_id:
            me = await client.get_me()
            owner_id = me.id
            logger.info(f"OWNER_ID 미설정: 로그인 계정({owner_id})을 소유자로 사용합니다")

        self.plugin_manager = PluginManager(
            self.database,
            plugins_dir=Config.get_plugins_path(),
            notifier=self._build_notifier(client),
        )
        self.plugin_manager.set_client(client)

        prefix = Config.get_active_prefix()
        set_runtime(Runtime(
            plugin_manager=self.plugin_manager,
            database=self.database,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
            health=self.health,
            prefix=prefix,
        ))

        await self.plugin_manager.load_builtins()
        await self.plugin_manager.load_externals()

        self.command_handler = CommandHandler(
            client,
            self.plugin_manager,
            self.rate_limiter,
            self.health,
            prefix=prefix,
            owner_id=owner_id,
        )
        self.command_handler.start()

        self.health.start_monitoring(Config.health.interval_sec)
        self.rate_limiter.start()
        self.cache.start()

        await self.plugin_manager.notify_startup_summary()
        logger.info(f"✅ {Config.bot_name} 시작 완료 (명령어 접두사: {prefix})")
        return client

    async def shutdown(self):
        """종료 처리: 모니터링 중지 → 플러그인 언로드 → 연결 종료 → DB 닫기"""
        logger.info("종료 중...")
        self.health.stop_monitoring()
        self.rate_limiter.stop()
        self.cache.stop()

        if self.plugin_manager is not None:
            try:
                await self.plugin_manager.shutdown()
            except Exception as e:
                logger.warning(f"플러그인 종료 중 오류 (무시): {e}")

        await self.client_manager.disconnect()

        if self.database is not None:
            self.database.close()
        set_runtime(None)


def _install_signal_handlers(loop, stop_event: asyncio.Event) -> None:
    """SIGINT/SIGTERM 수신 시 stop_event 설정"""

    def _on_signal(signum, frame=None):
        sig_name = signal.Signals(signum).name
        logger.info(f"시그널 수신: {sig_name}")
        loop.call_soon_threadsafe(stop_event.set)

    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            # Windows: 이벤트 루프 시그널 핸들러 미지원
            signal.signal(sig, _on_signal)


async def run() -> None:
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    app = Application()
    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    try:
        client = await app.start()
        stop_task = asyncio.ensure_future(stop_event.wait())
        await asyncio.wait(
            [stop_task, client.disconnected],
            return_when=asyncio.FIRST_COMPLETED,
        )
        stop_task.cancel()
    finally:
        await app.shutdown()


def main() -> None:
    setup_logging()

    try:
        Config.validate()
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        logger.error("TELEGRAM_API_ID, TELEGRAM_API_HASH는 https://my.telegram.org/apps 에서 발급받으세요")
        sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("시작 실패")
        sys.exit(1)


if __name__ == "__main__":
    main()
