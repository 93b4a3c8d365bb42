"""参考节点切换策略

导航器本身对“像素阈值”没有任何判断，只提供几何查询；是否切换参考节点由调用方提供的策略回调决定：

    policy(navigator, canvas_width, canvas_height, candidate_node_id) -> bool

策略回调同步执行，禁止在回调中修改导航器状态。

本模块提供最常用的一组策略：
- 放大：候选节点在屏幕上的包围盒已完全覆盖画布（“候选节点占满屏幕”）
- 缩小：当前参考节点的包围盒已不再覆盖画布（“参考节点缩到屏幕以内”）
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, Tuple

from engine.configs.settings import settings
from engine.graph.models.transform_graph import GraphNode

if TYPE_CHECKING:
    from app.ui.graph.floating_origin.navigator import FloatingOriginNavigator, ZoomPolicy

# 屏幕矩形：(left, top, right, bottom)，画布左上角为原点
ScreenRect = Tuple[float, float, float, float]
SizeGetter = Callable[[GraphNode], Tuple[float, float]]


def payload_size(node: GraphNode) -> Tuple[float, float]:
    """从节点负载中读取本地尺寸 (width, height)。

    支持：{"width": w, "height": h}、{"size": s}、带 width/height 属性的对象、(w, h) 二元组；
    都没有时使用 settings.FLOATING_ORIGIN_DEFAULT_NODE_SIZE。
    """
    data: Any = node.data
    default_size = float(settings.FLOATING_ORIGIN_DEFAULT_NODE_SIZE)

    if isinstance(data, dict):
        if "width" in data or "height" in data:
            return float(data.get("width", default_size)), float(data.get("height", default_size))
        if "size" in data:
            size = float(data["size"])
            return size, size
    elif isinstance(data, (tuple, list)) and len(data) == 2:
        return float(data[0]), float(data[1])
    elif data is not None and hasattr(data, "width") and hasattr(data, "height"):
        return float(data.width), float(data.height)

    return default_size, default_size


def node_screen_rect(
    navigator: "FloatingOriginNavigator",
    node_id: str,
    canvas_width: float,
    canvas_height: float,
    size: Optional[Tuple[float, float]] = None,
) -> Optional[ScreenRect]:
    """节点本地矩形（以节点原点为中心）映射到画布后的轴对齐包围盒；不可达返回 None。"""
    node = navigator.graph.get_node(node_id)
    if node is None:
        return None
    width, height = payload_size(node) if size is None else size
    half_width = width / 2
    half_height = height / 2

    corners = []
    for local_x, local_y in (
        (-half_width, -half_height),
        (half_width, -half_height),
        (half_width, half_height),
        (-half_width, half_height),
    ):
        point = navigator.map_to_screen(node_id, local_x, local_y, canvas_width, canvas_height)
        if point is None:
            return None
        corners.append(point)

    xs = [point.x for point in corners]
    ys = [point.y for point in corners]
    return min(xs), min(ys), max(xs), max(ys)


def rect_covers_canvas(rect: ScreenRect, canvas_width: float, canvas_height: float, margin: float = 0.0) -> bool:
    left, top, right, bottom = rect
    return (
        left <= -margin
        and top <= -margin
        and right >= canvas_width + margin
        and bottom >= canvas_height + margin
    )


def make_covers_screen_policy(size_of: SizeGetter = payload_size, margin: float = 0.0) -> "ZoomPolicy":
    """放大策略：候选节点的屏幕包围盒覆盖整个画布（可要求额外 margin 像素）时切换。"""

    def should_zoom_in(navigator, canvas_width, canvas_height, candidate_id) -> bool:
        node = navigator.graph.get_node(candidate_id)
        if node is None:
            return False
        rect = node_screen_rect(navigator, candidate_id, canvas_width, canvas_height, size_of(node))
        return rect is not None and rect_covers_canvas(rect, canvas_width, canvas_height, margin)

    return should_zoom_in


def make_uncovers_screen_policy(size_of: SizeGetter = payload_size, margin: float = 0.0) -> "ZoomPolicy":
    """缩小策略：当前参考节点的屏幕包围盒不再覆盖画布时，切换到候选前驱。"""

    def should_zoom_out(navigator, canvas_width, canvas_height, prev_id) -> bool:
        reference_id = navigator.reference_node_id
        rect = node_screen_rect(
            navigator, reference_id, canvas_width, canvas_height, size_of(navigator.reference_node)
        )
        if rect is None:
            return False
        return not rect_covers_canvas(rect, canvas_width, canvas_height, margin)

    return should_zoom_out


def choose_closest_to_center(
    navigator: "FloatingOriginNavigator",
    candidates: Iterable[str],
    canvas_width: float,
    canvas_height: float,
) -> Optional[str]:
    """在候选中选屏幕位置最接近画布中心者。

    距离相同时优先上一次的目标节点（连续性），再按候选的输入顺序；不可达的候选排在最后。
    """
    candidate_list: Sequence[str] = list(candidates)
    if not candidate_list:
        return None

    center_x = canvas_width / 2
    center_y = canvas_height / 2
    last_target = navigator.last_target_node_id

    def sort_key(indexed: Tuple[int, str]):
        index, candidate_id = indexed
        position = navigator.get_node_screen_position(candidate_id, canvas_width, canvas_height)
        if position is None:
            distance = math.inf
        else:
            distance = math.hypot(position.x - center_x, position.y - center_y)
        return distance, 0 if candidate_id == last_target else 1, index

    _, best_id = min(enumerate(candidate_list), key=sort_key)
    return best_id
