"""설정 관리

카테고리별로 구분된 설정을 관리합니다.
- 경로 설정: get_*() 메서드 (cwd 기준 계산 필요)
- 그 외 설정: @dataclass 하위 그룹 (모듈 로드 시 평가)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_REGISTRY_URL = (
    "https://raw.githubusercontent.com/nexbot/plugins/main/registry.json"
)


class ConfigurationError(Exception):
    """설정 오류 예외

    필수 환경변수 누락 등 설정 관련 오류 시 발생합니다.
    """

    def __init__(self, missing_vars: List[str]):
        self.missing_vars = missing_vars
        message = f"필수 환경변수가 설정되지 않았습니다: {', '.join(missing_vars)}"
        super().__init__(message)


def _get_path(env_var: str, default_subdir: str) -> str:
    """환경변수가 없으면 현재 경로 하위 폴더 반환"""
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    return str(Path.cwd() / default_subdir)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """문자열을 bool로 변환"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _parse_int(value: str | None, default: int) -> int:
    """문자열을 int로 변환 (변환 실패 시 기본값)"""
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class TelegramConfig:
    """Telegram 연결 설정"""

    api_id: int = _parse_int(os.getenv("TELEGRAM_API_ID"), 0)
    api_hash: str = os.getenv("TELEGRAM_API_HASH", "")
    session: str = os.getenv("TELEGRAM_SESSION", "")
    # 명령을 실행할 수 있는 유일한 사용자
    owner_id: int = _parse_int(os.getenv("OWNER_ID"), 0)
    # 플러그인 알림을 보낼 채팅 (비어 있으면 알림 비활성화)
    notify_chat: str = os.getenv("NOTIFY_CHAT", "")
    connection_retries: int = _parse_int(os.getenv("TELEGRAM_CONNECTION_RETRIES"), 5)


@dataclass
class CommandConfig:
    """명령어 파싱 설정"""

    prefix: str = os.getenv("CMD_PREFIX", ".")
    dev_prefix: str = "!"


@dataclass
class RateLimitConfig:
    """명령어 속도 제한 설정"""

    max_requests: int = _parse_int(os.getenv("RATE_LIMIT_MAX_REQUESTS"), 10)
    window_sec: int = _parse_int(os.getenv("RATE_LIMIT_WINDOW_SEC"), 60)
    block_sec: int = _parse_int(os.getenv("RATE_LIMIT_BLOCK_SEC"), 300)


@dataclass
class ShellConfig:
    """exec 플러그인 설정"""

    enabled: bool = _parse_bool(os.getenv("ENABLE_SHELL_EXEC"), False)
    timeout_sec: int = _parse_int(os.getenv("SHELL_TIMEOUT"), 30)
    max_output: int = _parse_int(os.getenv("MAX_OUTPUT_LENGTH"), 4000)


@dataclass
class HealthConfig:
    """헬스 체크 설정"""

    interval_sec: int = _parse_int(os.getenv("HEALTH_CHECK_INTERVAL"), 60)


@dataclass
class RegistryConfig:
    """플러그인 저장소 설정 (nexbot-pm CLI)"""

    url: str = os.getenv("PLUGIN_REGISTRY_URL", DEFAULT_REGISTRY_URL)


class Config:
    """애플리케이션 설정

    설정 접근 방식:
    - 경로 관련: get_*() 메서드 (런타임에 cwd 기준 계산)
    - 그 외: 하위 설정 그룹 (모듈 로드 시 평가)
    """

    debug: bool = _parse_bool(os.getenv("DEBUG"), False)
    dev_mode: bool = os.getenv("NEXBOT_ENV", "production") == "development"
    bot_name: str = os.getenv("BOT_NAME", "NexBot")

    telegram = TelegramConfig()
    command = CommandConfig()
    rate_limit = RateLimitConfig()
    shell = ShellConfig()
    health = HealthConfig()
    registry = RegistryConfig()

    # ========================================
    # 경로 설정 (런타임에 cwd 기준 계산)
    # ========================================
    @staticmethod
    def get_db_path() -> str:
        """SQLite 데이터베이스 경로"""
        return _get_path("DB_PATH", "data/nexbot.db")

    @staticmethod
    def get_plugins_path() -> str:
        """외부 플러그인 디렉토리"""
        return _get_path("PLUGINS_DIR", "plugins")

    @staticmethod
    def get_log_path() -> str:
        """로그 경로"""
        return _get_path("LOG_PATH", "logs")

    @staticmethod
    def get_session_file() -> str:
        """Telegram 세션 문자열 저장 파일"""
        return _get_path("SESSION_FILE", "data/session.txt")

    @classmethod
    def get_active_prefix(cls) -> str:
        """현재 모드의 명령어 접두사"""
        return cls.command.dev_prefix if cls.dev_mode else cls.command.prefix

    # ========================================
    # 검증
    # ========================================
    @classmethod
    def validate(cls) -> None:
        """필수 환경변수 검증

        필수 환경변수가 누락된 경우 ConfigurationError를 발생시킵니다.

        Raises:
            ConfigurationError: 필수 환경변수 누락 시
        """
        missing = []
        if not cls.telegram.api_id:
            missing.append("TELEGRAM_API_ID")
        if not cls.telegram.api_hash:
            missing.append("TELEGRAM_API_HASH")

        if missing:
            raise ConfigurationError(missing)
