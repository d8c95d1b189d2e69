"""주기 실행 타이머

threading.Timer를 연쇄적으로 사용하여 interval_sec 간격으로 callback을 실행합니다.
callback에서 예외가 발생해도 로그만 남기고 다음 실행을 예약합니다.
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """daemon 스레드에서 interval_sec 간격으로 callback을 실행하는 타이머"""

    def __init__(self, interval_sec: float, callback: Callable[[], None], name: str = ""):
        self.interval_sec = interval_sec
        self.callback = callback
        self.name = name or getattr(callback, "__qualname__", "periodic")

        self._timer: threading.Timer | None = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """타이머를 시작합니다."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule_next()
        logger.debug(f"주기 작업 시작: {self.name} ({self.interval_sec}초 간격)")

    def stop(self) -> None:
        """타이머를 중지합니다."""
        with self._lock:
            self._running = False
            if self._timer:
                self._timer.cancel()
                self._timer = None
        logger.debug(f"주기 작업 중지: {self.name}")

    def _schedule_next(self) -> None:
        if not self._running:
            return
        self._timer = threading.Timer(self.interval_sec, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.callback()
        except Exception as e:
            logger.error(f"주기 작업 실패 ({self.name}): {e}")
        finally:
            with self._lock:
                self._schedule_next()
