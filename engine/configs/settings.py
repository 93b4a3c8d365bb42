"""全局设置模块 - 控制浮动原点场景图的行为和调试选项

这个模块提供了一个集中的配置系统，用于控制导航器、缩放策略与手势控制器的行为。
支持从配置文件加载和保存设置。

使用方法：
    from engine.configs.settings import settings
    from engine.utils.logging.logger import log_info

    if settings.FLOATING_ORIGIN_VERBOSE:
        log_info("调试信息")

    # 保存设置
    settings.save()

    # 加载设置
    settings.load()
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from engine.utils.logging.logger import log_info, log_warn

DEFAULT_USER_SETTINGS_RELATIVE_PATH = Path("app/runtime/cache/user_settings.json")


class Settings:
    """全局设置类

    所有设置项都是类属性，可以直接访问和修改。
    """

    # ========== 调试选项 ==========

    # 通用实现层日志：控制 `engine.utils.logging.logger.log_info` 是否输出
    # 默认 False（关闭），生产环境下仅保留 warn/error
    NODE_IMPL_LOG_VERBOSE: bool = False

    # 浮动原点导航详细日志（参考节点切换、视口补偿等，[浮动原点] 标签）
    # 默认 False，避免每次滚轮缩放都刷屏
    FLOATING_ORIGIN_VERBOSE: bool = False

    # ========== 浮动原点导航 ==========

    # 每帧可见节点枚举的默认上限（BFS 在达到该数量后停止）
    # 该值直接决定渲染器每帧的遍历开销，设为较小值可保持帧耗时稳定
    FLOATING_ORIGIN_MAX_VISIBLE_NODES: int = 40

    # 放大时的候选节点选择策略：
    # True：评估所有后继节点，取“覆盖屏幕”的候选中屏幕位置最接近画布中心者（默认）
    # False：只评估“首选后继”（优先上一次的目标节点，否则取插入顺序第一条边）
    FLOATING_ORIGIN_CENTER_TIE_BREAK: bool = True

    # 滚轮每一档（angleDelta 120）的缩放倍率
    FLOATING_ORIGIN_WHEEL_FACTOR_PER_STEP: float = 1.15

    # 节点负载未提供尺寸时，缩放策略使用的默认节点边长（本地坐标单位）
    FLOATING_ORIGIN_DEFAULT_NODE_SIZE: float = 100.0

    # 配置文件路径（相对于workspace）
    _config_file: Optional[Path] = None

    def __repr__(self) -> str:
        """返回所有设置的字符串表示"""
        settings_dict = {
            key: value for key, value in self.__class__.__dict__.items()
            if not key.startswith('_') and key.isupper()
        }
        return f"Settings({settings_dict})"

    @classmethod
    def set_config_path(cls, workspace_path: Path):
        """设置配置文件路径

        Args:
            workspace_path: 工作空间根目录
        """
        config_file = workspace_path / DEFAULT_USER_SETTINGS_RELATIVE_PATH

        log_info(
            "[BOOT][Settings] set_config_path: workspace_path={} -> config_file={}",
            workspace_path,
            config_file,
        )
        cls._config_file = config_file

    def _get_all_settings(self) -> Dict[str, Any]:
        """获取所有设置项的字典

        注意：从实例获取属性，以支持实例属性覆盖类属性的情况
        """
        return {
            key: getattr(self, key)
            for key in dir(self.__class__)
            if not key.startswith('_') and key.isupper()
        }

    def save(self) -> bool:
        """保存设置到配置文件

        Returns:
            是否保存成功
        """
        if self.__class__._config_file is None:
            log_warn("⚠️  警告：配置文件路径未设置，无法保存设置")
            return False

        settings_dict = self._get_all_settings()

        # 确保目录存在
        self.__class__._config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.__class__._config_file, 'w', encoding='utf-8') as file:
            json.dump(settings_dict, file, indent=2, ensure_ascii=False)

        return True

    def load(self) -> bool:
        """从配置文件加载设置

        Returns:
            是否加载成功
        """
        config_file = self.__class__._config_file
        if config_file is None:
            log_info("[BOOT][Settings] load: _config_file 未设置，跳过加载，使用类默认值")
            return False

        if not config_file.exists():
            log_info("[BOOT][Settings] load: 配置文件不存在（{}），跳过加载，使用类默认值", config_file)
            return False

        log_info("[BOOT][Settings] load: 准备从 {} 加载配置", config_file)
        with open(config_file, 'r', encoding='utf-8') as file:
            settings_dict = json.load(file)

        # 应用加载的设置到实例（未知键忽略，便于旧配置文件兼容）
        applied_count = 0
        for key, value in settings_dict.items():
            if hasattr(self.__class__, key) and key.isupper():
                setattr(self, key, value)
                applied_count += 1

        log_info("[BOOT][Settings] load: 配置加载完成，共应用 {} 个键", applied_count)
        return True

    @classmethod
    def reset_to_defaults(cls):
        """重置所有设置为默认值"""
        cls.NODE_IMPL_LOG_VERBOSE = False
        cls.FLOATING_ORIGIN_VERBOSE = False
        cls.FLOATING_ORIGIN_MAX_VISIBLE_NODES = 40
        cls.FLOATING_ORIGIN_CENTER_TIE_BREAK = True
        cls.FLOATING_ORIGIN_WHEEL_FACTOR_PER_STEP = 1.15
        cls.FLOATING_ORIGIN_DEFAULT_NODE_SIZE = 100.0
        log_info("✅ 已重置所有设置为默认值")

    @classmethod
    def enable_debug_mode(cls):
        """启用所有调试选项（用于开发调试）"""
        cls.NODE_IMPL_LOG_VERBOSE = True
        cls.FLOATING_ORIGIN_VERBOSE = True
        log_info("🔧 已启用调试模式：所有详细日志已打开")

    @classmethod
    def disable_debug_mode(cls):
        """禁用所有调试选项（恢复默认）"""
        cls.NODE_IMPL_LOG_VERBOSE = False
        cls.FLOATING_ORIGIN_VERBOSE = False
        log_info("✅ 已禁用调试模式：恢复默认设置")


# 全局设置实例
settings = Settings()
