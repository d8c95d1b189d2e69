"""Pytest 설정"""

import os
import sys
from pathlib import Path

import pytest

# 테스트 환경 변수 설정
os.environ.setdefault("TELEGRAM_API_ID", "12345")
os.environ.setdefault("TELEGRAM_API_HASH", "test-hash")
os.environ.setdefault("OWNER_ID", "42")

# src 경로 추가
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture(autouse=True)
def _cleanup_plugin_modules():
    """테스트가 불러온 플러그인 모듈을 sys.modules에서 정리"""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        if name.startswith("nexbot_ext_") or name.startswith("nexbot.plugins.tp_"):
            del sys.modules[name]
