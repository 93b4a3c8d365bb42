from __future__ import annotations

from datetime import datetime
from typing import Any

_settings = None  # 延迟导入 settings，避免循环依赖


def _now() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _get_settings():
    """
    延迟获取全局设置实例。

    这样可以避免在导入阶段形成 `settings ↔ logger` 的循环依赖。
    """
    global _settings
    if _settings is None:
        from engine.configs.settings import settings as _settings_instance

        _settings = _settings_instance
    return _settings


def _emit(level_tag: str, message: str, args: tuple) -> None:
    if args:
        print(f"[{level_tag} { _now() }] " + message.format(*args))
    else:
        print(f"[{level_tag} { _now() }] {message}")


def is_info_enabled() -> bool:
    """info 级日志是否会输出（任一详细开关打开即输出）。"""
    settings = _get_settings()
    return bool(
        getattr(settings, "NODE_IMPL_LOG_VERBOSE", False)
        or getattr(settings, "FLOATING_ORIGIN_VERBOSE", False)
    )


def log_info(message: str, *args: Any) -> None:
    """信息日志。由 settings.NODE_IMPL_LOG_VERBOSE / FLOATING_ORIGIN_VERBOSE 控制是否输出。"""
    if is_info_enabled():
        _emit("INFO", message, args)


def log_warn(message: str, *args: Any) -> None:
    """警告日志。始终输出。"""
    _emit("WARN", message, args)


def log_error(message: str, *args: Any) -> None:
    """错误日志。始终输出。"""
    _emit("ERR ", message, args)
