from __future__ import annotations

# 浮动原点场景图：参考节点导航、切换策略与手势控制拆分到子模块。
from app.ui.graph.floating_origin.navigator import (
    FloatingOriginNavigator,
    NodeCullingCallback,
    ScreenPoint,
    VisibleNode,
    ZoomPolicy,
)
from app.ui.graph.floating_origin.zoom_policies import (
    choose_closest_to_center,
    make_covers_screen_policy,
    make_uncovers_screen_policy,
    node_screen_rect,
    payload_size,
)
from app.ui.graph.floating_origin.gesture_controller import FloatingOriginGestureController

__all__ = [
    "FloatingOriginNavigator",
    "FloatingOriginGestureController",
    "NodeCullingCallback",
    "ScreenPoint",
    "VisibleNode",
    "ZoomPolicy",
    "choose_closest_to_center",
    "make_covers_screen_policy",
    "make_uncovers_screen_policy",
    "node_screen_rect",
    "payload_size",
]
