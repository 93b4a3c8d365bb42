"""浮动原点导航器

在可无限缩放（且可能带环）的场景图中，不存在数值上稳定的全局坐标系。导航器始终把某一个节点当作
坐标原点（参考节点），所有渲染位置都相对它计算；缩放越过某个节点后，切换参考节点并补偿视口变换，
使屏幕上看到的画面完全不变，从而避免深度缩放时的浮点精度丢失。

状态：
- reference_node_id：当前参考节点，必须存在于图中（赋值不存在的ID抛 UnknownNodeError）
- viewport_transform：所有缩放/平移手势的累积结果，无规范形式要求
- last_target_node_id：连续性提示，前进/后退时优先沿用户上一次的方向

参考节点切换是同步且原子的：要么完整生效，要么完全不改变状态。
“找不到路径/无法移动”属于常规情况，以 None/False 返回，不抛异常。
"""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, List, Mapping, Optional, Tuple, TypeVar

from PyQt6 import QtGui

from app.ui.graph.floating_origin import affine
from app.ui.graph.floating_origin.zoom_policies import choose_closest_to_center
from engine.configs.settings import settings
from engine.graph.models.transform_graph import (
    GraphNode,
    TransformEdge,
    TransformGraph,
    UnknownNodeError,
)
from engine.utils.logging.logger import log_info, log_warn

T = TypeVar("T")

# (navigator, canvas_width, canvas_height, candidate_node_id) -> bool；不得修改导航器状态
ZoomPolicy = Callable[["FloatingOriginNavigator", float, float, str], bool]
# (node_id, accumulated_transform, viewport_transform) -> bool；返回 True 表示剔除该节点及其子树
NodeCullingCallback = Callable[[str, QtGui.QTransform, QtGui.QTransform], bool]


@dataclass(frozen=True)
class VisibleNode(Generic[T]):
    node_id: str
    node: GraphNode[T]
    transform: QtGui.QTransform


@dataclass(frozen=True)
class ScreenPoint:
    x: float
    y: float


class FloatingOriginNavigator(Generic[T]):
    """绑定到一张 TransformGraph 的参考系导航器。

    多个导航器可以共享同一张图（例如多个视口），各自的参考节点/视口状态互相独立。
    """

    def __init__(self, graph: TransformGraph[T], initial_reference_node_id: Optional[str] = None) -> None:
        self._graph = graph
        self._reference_node_id = self._resolve_node_id(initial_reference_node_id)
        self._viewport_transform = affine.identity()
        self._last_target_node_id: Optional[str] = None

    # -------- 访问器 --------
    @property
    def graph(self) -> TransformGraph[T]:
        return self._graph

    @property
    def nodes(self) -> Mapping[str, GraphNode[T]]:
        return self._graph.nodes

    @property
    def edges(self) -> Dict[str, List[TransformEdge]]:
        return self._graph.edges

    @property
    def reference_node_id(self) -> str:
        return self._reference_node_id

    @property
    def reference_node(self) -> GraphNode[T]:
        return self._graph.nodes[self._reference_node_id]

    @property
    def viewport_transform(self) -> QtGui.QTransform:
        return affine.copy(self._viewport_transform)

    @property
    def last_target_node_id(self) -> Optional[str]:
        return self._last_target_node_id

    def set_reference_node(self, node_id: str) -> None:
        """直接指定参考节点（不做视口补偿）。节点不存在时抛 UnknownNodeError。"""
        if not self._graph.has_node(node_id):
            raise UnknownNodeError(node_id)
        self._reference_node_id = node_id

    def set_viewport_transform(self, transform: QtGui.QTransform) -> None:
        """不做校验，供调用方恢复保存的视图状态。"""
        self._viewport_transform = affine.copy(transform)

    def set_target_node(self, node_id: str) -> None:
        """设置连续性提示；未知节点忽略。"""
        if self._graph.has_node(node_id):
            self._last_target_node_id = node_id

    # -------- 邻居与候选 --------
    def get_next_node_ids(self, node_id: Optional[str] = None) -> List[str]:
        return self._graph.nodes_from(self._reference_node_id if node_id is None else node_id)

    def get_prev_node_ids(self, node_id: Optional[str] = None) -> List[str]:
        return self._graph.nodes_into(self._reference_node_id if node_id is None else node_id)

    def get_best_next_node_id(self, node_id: Optional[str] = None) -> Optional[str]:
        """放大时的首选后继：优先上一次的目标节点，否则取插入顺序第一条出边。"""
        return self._prefer_last_target(self.get_next_node_ids(node_id))

    def get_best_prev_node_id(self, node_id: Optional[str] = None) -> Optional[str]:
        """缩小时的首选前驱：优先上一次的目标节点，否则取第一个前驱。"""
        return self._prefer_last_target(self.get_prev_node_ids(node_id))

    def _prefer_last_target(self, candidates: List[str]) -> Optional[str]:
        if not candidates:
            return None
        if self._last_target_node_id is not None and self._last_target_node_id in candidates:
            return self._last_target_node_id
        return candidates[0]

    # -------- 变换查询 --------
    def get_accumulated_transform(self, target_id: str) -> Optional[QtGui.QTransform]:
        """参考节点 -> target 的累积变换（BFS 最短边路径，首次发现者胜出）；不可达返回 None。"""
        if target_id == self._reference_node_id:
            return affine.identity()
        if not self._graph.has_node(target_id):
            return None

        visited = {self._reference_node_id}
        queue = deque([(self._reference_node_id, affine.identity())])
        while queue:
            node_id, transform = queue.popleft()
            for edge in self._graph.edges_from(node_id):
                accumulated = affine.compose(transform, edge.transform)
                if edge.target == target_id:
                    return accumulated
                if edge.target not in visited:
                    visited.add(edge.target)
                    queue.append((edge.target, accumulated))
        return None

    def get_node_screen_transform(self, node_id: str) -> Optional[QtGui.QTransform]:
        """viewport ∘ accumulated(node)：节点本地坐标 -> 以画布中心为原点的屏幕坐标。"""
        accumulated = self.get_accumulated_transform(node_id)
        if accumulated is None:
            return None
        return affine.compose(self._viewport_transform, accumulated)

    def get_node_screen_position(
        self, node_id: str, canvas_width: float, canvas_height: float
    ) -> Optional[ScreenPoint]:
        """节点原点在画布上的位置（节点总是绘制在自身本地坐标的中心，画布整体以中心为原点）。"""
        screen_transform = self.get_node_screen_transform(node_id)
        if screen_transform is None:
            return None
        offset_x, offset_y = affine.translation_of(screen_transform)
        return ScreenPoint(canvas_width / 2 + offset_x, canvas_height / 2 + offset_y)

    def map_to_screen(
        self, node_id: str, x: float, y: float, canvas_width: float, canvas_height: float
    ) -> Optional[ScreenPoint]:
        """把某节点本地坐标系中的点映射到画布坐标。"""
        screen_transform = self.get_node_screen_transform(node_id)
        if screen_transform is None:
            return None
        mapped_x, mapped_y = affine.map_point(screen_transform, x, y)
        return ScreenPoint(canvas_width / 2 + mapped_x, canvas_height / 2 + mapped_y)

    # -------- 可见节点枚举 --------
    def get_visible_nodes_with_transforms(
        self,
        max_count: Optional[int] = None,
        should_cull: Optional[NodeCullingCallback] = None,
    ) -> Iterator[VisibleNode[T]]:
        """按 BFS 顺序惰性产出 (node_id, node, transform)，参考节点总是第一个且为单位变换。

        每次调用都从当前参考节点重新开始；最多产出 max_count 个节点。带环的图中同一节点可沿不同路径
        重复出现（这正是递归场景的绘制方式），终止性由 max_count 保证。
        """
        limit = settings.FLOATING_ORIGIN_MAX_VISIBLE_NODES if max_count is None else int(max_count)
        if limit <= 0:
            return

        reference_id = self._reference_node_id
        reference_node = self._graph.get_node(reference_id)
        if reference_node is None:
            return
        viewport = affine.copy(self._viewport_transform)

        yield VisibleNode(reference_id, reference_node, affine.identity())
        yielded_count = 1

        queue = deque(self._expand(reference_id, affine.identity(), viewport, should_cull))
        while queue and yielded_count < limit:
            node_id, transform = queue.popleft()
            node = self._graph.get_node(node_id)
            if node is None:
                continue
            yield VisibleNode(node_id, node, transform)
            yielded_count += 1
            queue.extend(self._expand(node_id, transform, viewport, should_cull))

    def _expand(
        self,
        node_id: str,
        transform: QtGui.QTransform,
        viewport: QtGui.QTransform,
        should_cull: Optional[NodeCullingCallback],
    ) -> List[Tuple[str, QtGui.QTransform]]:
        children: List[Tuple[str, QtGui.QTransform]] = []
        for edge in self._graph.edges_from(node_id):
            child_transform = affine.compose(transform, edge.transform)
            if should_cull is not None and should_cull(edge.target, child_transform, viewport):
                continue
            children.append((edge.target, child_transform))
        return children

    def get_visible_node_ids(self, max_count: Optional[int] = None) -> List[str]:
        return [visible.node_id for visible in self.get_visible_nodes_with_transforms(max_count)]

    # -------- 手势 --------
    def zoom_at_point(
        self,
        center_x: float,
        center_y: float,
        zoom_factor: float,
        canvas_width: Optional[float] = None,
        canvas_height: Optional[float] = None,
        zoom_in_policy: Optional[ZoomPolicy] = None,
        zoom_out_policy: Optional[ZoomPolicy] = None,
    ) -> bool:
        """以 (center_x, center_y) 为中心缩放视口；提供画布尺寸与策略时检查是否切换参考节点。

        Returns:
            参考节点是否因此发生变化
        """
        self._viewport_transform = affine.compose(
            affine.scale_about_point(center_x, center_y, zoom_factor),
            self._viewport_transform,
        )

        if (
            canvas_width is not None
            and canvas_height is not None
            and (zoom_in_policy is not None or zoom_out_policy is not None)
        ):
            return self.check_and_update_reference_node(
                zoom_factor < 1,
                canvas_width,
                canvas_height,
                zoom_in_policy,
                zoom_out_policy,
            )
        return False

    def pan(self, dx: float, dy: float) -> None:
        """平移视口；平移从不切换参考节点。"""
        self._viewport_transform = affine.compose(affine.translation(dx, dy), self._viewport_transform)

    def check_and_update_reference_node(
        self,
        is_zooming_out: bool,
        canvas_width: float,
        canvas_height: float,
        zoom_in_policy: Optional[ZoomPolicy] = None,
        zoom_out_policy: Optional[ZoomPolicy] = None,
    ) -> bool:
        if is_zooming_out:
            if zoom_out_policy is None:
                return False
            prev_id = self.get_best_prev_node_id()
            if prev_id is not None and zoom_out_policy(self, canvas_width, canvas_height, prev_id):
                return self.move_reference_backward(prev_id)
            return False

        if zoom_in_policy is None:
            return False
        next_id = self._choose_zoom_in_candidate(canvas_width, canvas_height, zoom_in_policy)
        if next_id is None:
            return False
        return self.move_reference_forward(next_id)

    def _choose_zoom_in_candidate(
        self, canvas_width: float, canvas_height: float, zoom_in_policy: ZoomPolicy
    ) -> Optional[str]:
        if not settings.FLOATING_ORIGIN_CENTER_TIE_BREAK:
            next_id = self.get_best_next_node_id()
            if next_id is not None and zoom_in_policy(self, canvas_width, canvas_height, next_id):
                return next_id
            return None

        qualifying = [
            candidate_id
            for candidate_id in self.get_next_node_ids()
            if zoom_in_policy(self, canvas_width, canvas_height, candidate_id)
        ]
        if len(qualifying) <= 1:
            return qualifying[0] if qualifying else None

        return choose_closest_to_center(self, qualifying, canvas_width, canvas_height)

    # -------- 参考节点切换 --------
    def move_reference_forward(self, target_id: Optional[str] = None) -> bool:
        """放大方向：参考节点移到一个直接后继，视口补偿为 viewport∘E，使画面保持不变。"""
        previous_id = self._reference_node_id
        next_id = self.get_best_next_node_id() if target_id is None else target_id
        if next_id is None:
            return False

        # 直接用边的变换（对自环同样正确，此时 BFS 累积变换会退化为单位矩阵）
        edge = self._graph.edge_between(previous_id, next_id)
        if edge is None:
            return False

        new_viewport = affine.compose(self._viewport_transform, edge.transform)

        self._reference_node_id = next_id
        self._viewport_transform = new_viewport
        self._last_target_node_id = previous_id
        log_info("[浮动原点] 参考节点前进: {} -> {}", previous_id, next_id)
        return True

    def move_reference_backward(self, target_id: Optional[str] = None) -> bool:
        """缩小方向：参考节点移到一个直接前驱，视口补偿为 viewport∘E⁻¹，使画面保持不变。"""
        departed_id = self._reference_node_id
        prev_id = self.get_best_prev_node_id() if target_id is None else target_id
        if prev_id is None:
            return False

        edge = self._graph.edge_between(prev_id, departed_id)
        if edge is None:
            return False

        inverse = affine.invert(edge.transform)
        if inverse is None:
            log_warn("[浮动原点] 边 {} -> {} 的变换不可逆，无法后退参考节点", prev_id, departed_id)
            return False

        new_viewport = affine.compose(self._viewport_transform, inverse)

        self._reference_node_id = prev_id
        self._viewport_transform = new_viewport
        self._last_target_node_id = departed_id
        log_info("[浮动原点] 参考节点后退: {} -> {}", departed_id, prev_id)
        return True

    def reset_view(self, node_id: Optional[str] = None) -> None:
        """重置参考节点（默认第一个节点）与视口，并清空连续性提示。"""
        self._reference_node_id = self._resolve_node_id(node_id)
        self._viewport_transform = affine.identity()
        self._last_target_node_id = None

    def _resolve_node_id(self, node_id: Optional[str]) -> str:
        if node_id is None:
            node_id = self._graph.first_node_id()
            if node_id is None:
                raise UnknownNodeError("<空图>")
        if not self._graph.has_node(node_id):
            raise UnknownNodeError(node_id)
        return node_id

    def __repr__(self) -> str:
        scale = math.hypot(self._viewport_transform.m11(), self._viewport_transform.m12())
        return (
            f"FloatingOriginNavigator(reference={self._reference_node_id!r}, "
            f"scale={scale:.4g}, last_target={self._last_target_node_id!r})"
        )
