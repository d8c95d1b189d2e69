"""로깅 설정 모듈

로깅 레벨 가이드라인
==================

logger.exception() / logger.error(..., exc_info=True)
    - 스택 트레이스가 필요한 예상치 못한 오류
    - 예: 명령어 실행 오류, 플러그인 초기화 실패

logger.error()
    - 예상된 오류이거나 스택 트레이스가 불필요한 경우
    - 예: "세션 파일 저장 실패: {e}", 헬스 체크 실패

logger.warning()
    - 복구 가능한 경고 상황
    - 예: 속도 제한 차단, 발신자 ID 파싱 실패

logger.info()
    - 주요 상태 변경, 작업 시작/완료
    - 예: 플러그인 등록/해제, 클라이언트 연결

logger.debug()
    - 명령어 단위의 상세 정보
"""

import logging
from datetime import datetime
from pathlib import Path

from nexbot.config import Config

# Telethon 네트워크 계층의 반복 로그
_NOISY_LOGGERS = (
    "telethon.network.connection.connection",
    "telethon.network.mtprotosender",
    "telethon.client.updates",
    "telethon.extensions.messagepacker",
)


def setup_logging() -> logging.Logger:
    """로깅 설정 및 로거 반환"""
    log_dir = Path(Config.get_log_path())
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"bot_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=logging.DEBUG if Config.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    # DEBUG 모드에서도 Telethon 내부 로그는 WARNING 이상만 출력
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("nexbot")
