"""浮动原点视图交互控制器

把滚轮/拖拽输入翻译为导航器的 zoom_at_point / pan 调用，不涉及任何绘制。

交互约定：
- 滚轮：以光标为中心缩放，每一档（angleDelta 120）倍率为 settings.FLOATING_ORIGIN_WHEEL_FACTOR_PER_STEP；
  已知画布尺寸时，光标坐标会先换算为以画布中心为原点的坐标（与 get_node_screen_position 一致）
- 右键/中键拖拽：平移画布（平移从不切换参考节点）
- 缩放导致参考节点切换时，回调 on_reference_changed(old_id, new_id)
"""
from __future__ import annotations

from typing import Callable, Optional, Tuple

from PyQt6 import QtCore, QtGui

from app.ui.graph.floating_origin.navigator import FloatingOriginNavigator, ZoomPolicy
from engine.configs.settings import settings
from engine.utils.logging.logger import log_info

WHEEL_DELTA_PER_STEP = 120.0

_PAN_BUTTONS = (QtCore.Qt.MouseButton.RightButton, QtCore.Qt.MouseButton.MiddleButton)


class FloatingOriginGestureController:
    """浮动原点视图交互控制器

    画布尺寸与缩放策略保存在控制器上；未设置画布尺寸或策略时只缩放，不切换参考节点。
    """

    def __init__(
        self,
        navigator: FloatingOriginNavigator,
        canvas_size: Optional[Tuple[float, float]] = None,
        zoom_in_policy: Optional[ZoomPolicy] = None,
        zoom_out_policy: Optional[ZoomPolicy] = None,
        base_factor_per_step: Optional[float] = None,
        on_reference_changed: Optional[Callable[[str, str], None]] = None,
    ):
        self.navigator = navigator
        self.canvas_size = canvas_size
        self.zoom_in_policy = zoom_in_policy
        self.zoom_out_policy = zoom_out_policy
        self.base_factor_per_step = base_factor_per_step
        self.on_reference_changed = on_reference_changed
        # 拖拽平移状态
        self._panning = False
        self._last_pan_pos: Optional[Tuple[float, float]] = None

    @property
    def is_panning(self) -> bool:
        return self._panning

    def set_canvas_size(self, width: float, height: float) -> None:
        self.canvas_size = (float(width), float(height))

    def zoom_factor_for_delta(self, angle_delta_y: float) -> float:
        base = self.base_factor_per_step
        if base is None:
            base = settings.FLOATING_ORIGIN_WHEEL_FACTOR_PER_STEP
        return float(base) ** (float(angle_delta_y) / WHEEL_DELTA_PER_STEP)

    # -------- 数值接口 --------
    def wheel(self, x: float, y: float, angle_delta_y: float) -> bool:
        """以 (x, y) 为中心按滚轮增量缩放。

        Returns:
            参考节点是否发生变化
        """
        if angle_delta_y == 0:
            return False

        factor = self.zoom_factor_for_delta(angle_delta_y)
        previous_reference = self.navigator.reference_node_id
        if self.canvas_size is not None:
            width, height = self.canvas_size
            # 视口变换以画布中心为原点：光标坐标先换算到中心坐标系
            center_x, center_y = float(x) - width / 2, float(y) - height / 2
        else:
            width, height = None, None
            center_x, center_y = float(x), float(y)
        changed = self.navigator.zoom_at_point(
            center_x,
            center_y,
            factor,
            width,
            height,
            self.zoom_in_policy,
            self.zoom_out_policy,
        )
        if changed:
            new_reference = self.navigator.reference_node_id
            log_info("[浮动原点] 滚轮缩放触发参考节点切换: {} -> {}", previous_reference, new_reference)
            if self.on_reference_changed is not None:
                self.on_reference_changed(previous_reference, new_reference)
        return changed

    def begin_pan(self, x: float, y: float) -> None:
        self._panning = True
        self._last_pan_pos = (float(x), float(y))

    def drag_to(self, x: float, y: float) -> bool:
        """拖拽平移到 (x, y)；未处于平移状态时返回 False。"""
        if not self._panning or self._last_pan_pos is None:
            return False
        last_x, last_y = self._last_pan_pos
        self.navigator.pan(float(x) - last_x, float(y) - last_y)
        self._last_pan_pos = (float(x), float(y))
        return True

    def end_pan(self) -> bool:
        if not self._panning:
            return False
        self._panning = False
        self._last_pan_pos = None
        return True

    # -------- Qt 事件适配 --------
    def handle_wheel(self, event: QtGui.QWheelEvent) -> bool:
        """处理滚轮事件（缩放）

        Returns:
            True 表示事件已处理
        """
        position = event.position()
        self.wheel(position.x(), position.y(), event.angleDelta().y())
        event.accept()
        return True

    def handle_mouse_press(self, event: QtGui.QMouseEvent) -> bool:
        """右键/中键按下：开始平移。

        Returns:
            True 表示事件已处理并应拦截
        """
        if event.button() in _PAN_BUTTONS:
            position = event.position()
            self.begin_pan(position.x(), position.y())
            return True
        return False

    def handle_mouse_move(self, event: QtGui.QMouseEvent) -> bool:
        position = event.position()
        return self.drag_to(position.x(), position.y())

    def handle_mouse_release(self, event: QtGui.QMouseEvent) -> bool:
        if event.button() in _PAN_BUTTONS:
            return self.end_pan()
        return False
