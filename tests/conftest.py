from __future__ import annotations

import sys
from pathlib import Path

import pytest

# 确保项目根目录在 sys.path 中，便于在 pytest 下稳定导入 `app`、`engine` 等包。
PROJECT_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT_STR = str(PROJECT_ROOT)
if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

from engine.configs.settings import settings  # noqa: E402


@pytest.fixture(autouse=True)
def _restore_settings():
    """每个用例结束后把全局设置恢复为类默认值，避免用例之间通过 settings 互相影响。"""
    yield
    for key in list(vars(settings)):
        if key.isupper():
            delattr(settings, key)
    settings.reset_to_defaults()
