"""Telegram 클라이언트 관리

Telethon 클라이언트 생성, 로그인, 세션 저장을 담당합니다.
세션 문자열은 TELEGRAM_SESSION 환경변수를 우선 사용하고,
없으면 세션 파일(data/session.txt)에서 읽습니다.
"""

import getpass
import logging
from pathlib import Path

from telethon import TelegramClient
from telethon.sessions import StringSession

from nexbot.config import Config

logger = logging.getLogger(__name__)


def load_session_string(session_file: Path) -> str:
    """환경변수 또는 세션 파일에서 세션 문자열을 읽습니다."""
    if Config.telegram.session:
        return Config.telegram.session

    if session_file.exists():
        try:
            session = session_file.read_text(encoding="utf-8").strip()
            logger.info("세션 파일에서 세션을 불러왔습니다")
            return session
        except OSError as e:
            logger.warning(f"세션 파일 읽기 실패: {e}")
    return ""


def save_session_string(session_file: Path, session: str) -> None:
    """세션 문자열을 파일에 저장합니다."""
    try:
        session_file.parent.mkdir(parents=True, exist_ok=True)
        session_file.write_text(session, encoding="utf-8")
        logger.info(f"세션을 저장했습니다: {session_file}")
    except OSError as e:
        logger.error(f"세션 파일 저장 실패: {e}")


class ClientManager:
    """TelegramClient 생성과 종료를 관리합니다."""

    def __init__(self, session_file: str | None = None):
        self.session_file = Path(session_file or Config.get_session_file())
        self.client: TelegramClient | None = None

    async def create_client(self) -> TelegramClient:
        """클라이언트를 연결하고, 인증되지 않았으면 대화형 로그인을 진행합니다."""
        session = StringSession(load_session_string(self.session_file))
        client = TelegramClient(
            session,
            Config.telegram.api_id,
            Config.telegram.api_hash,
            connection_retries=Config.telegram.connection_retries,
            system_version=f"{Config.bot_name}/1.0",
        )
        await client.connect()

        if await client.is_user_authorized():
            logger.info("Telegram에 로그인되어 있습니다")
        else:
            logger.info("로그인이 필요합니다. 안내에 따라 입력하세요")
            await client.start(
                phone=lambda: input("전화번호 (국가 코드 포함, 예: +82...): "),
                password=lambda: getpass.getpass("2단계 인증 비밀번호: "),
                code_callback=lambda: input("인증 코드: "),
            )
            save_session_string(self.session_file, client.session.save())
            logger.info("로그인 성공")

        self.client = client
        return client

    def get_client(self) -> TelegramClient:
        if self.client is None:
            raise RuntimeError("Telegram 클라이언트가 아직 초기화되지 않았습니다")
        return self.client

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.disconnect()
            logger.info("Telegram 연결을 종료했습니다")
