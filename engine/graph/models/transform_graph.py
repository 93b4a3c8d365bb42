"""带变换标注的有向多重图（浮动原点场景图的数据层）

节点只携带不透明负载；每条边携带一个二维仿射变换，表示“把目标节点本地坐标映射到源节点本地坐标”
（渲染时从源走向目标，按 父∘子 的顺序组合）。

本模块位于引擎层，不依赖 PyQt6：边上的 transform 对图存储来说是不透明值，
只有导航器（`app.ui.graph.floating_origin.navigator`）会对其做组合/求逆。

构造策略：严格校验。任何引用了未知节点的边都会在构造（或 add_edge）时抛出 InvalidGraphError，
遍历阶段因此无需再处理“悬空边”。
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, Iterator, List, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


class InvalidGraphError(ValueError):
    """图结构不合法（边引用了不存在的节点、节点ID重复、映射键与ID不一致等）"""


class UnknownNodeError(LookupError):
    """引用了图中不存在的节点ID"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f'节点 "{node_id}" 不存在')


@dataclass(frozen=True)
class GraphNode(Generic[T]):
    id: str
    data: T = None


@dataclass(frozen=True)
class TransformEdge:
    source: str
    target: str
    transform: Any  # 仿射变换：目标本地坐标 -> 源本地坐标（通常为 QtGui.QTransform）
    id: str = field(default="", compare=False)


NodesInput = Union[Iterable[Any], Mapping[str, Any]]
EdgesInput = Union[Iterable[Any], Mapping[str, Any]]


class TransformGraph(Generic[T]):
    """节点 + 带变换的有向边；按源节点索引出边，并维护按目标节点的反向索引。"""

    def __init__(self, nodes: Optional[NodesInput] = None, edges: Optional[EdgesInput] = None) -> None:
        self._nodes: Dict[str, GraphNode[T]] = {}
        self._outgoing: Dict[str, List[TransformEdge]] = {}
        self._incoming: Dict[str, List[TransformEdge]] = {}
        self._edges_by_id: Dict[str, TransformEdge] = {}
        self._next_edge_index = 1
        # 结构版本号：任何增删节点/边都会递增，供调用方做缓存失效
        self._revision: int = 0

        for node in _normalize_nodes(nodes):
            self.add_node(node.id, node.data)
        for edge in _normalize_edges(edges):
            self._insert_edge(edge)

    @classmethod
    def add_from(cls, nodes: Optional[NodesInput], edges: Optional[EdgesInput]) -> "TransformGraph[T]":
        """从列表或映射形式的节点/边集合构造图（两种形式归一到同一索引）。"""
        return cls(nodes, edges)

    # -------- 只读访问 --------
    @property
    def nodes(self) -> Mapping[str, GraphNode[T]]:
        """节点ID -> 节点（只读视图；增删节点必须经过 add_node / remove_node）"""
        return MappingProxyType(self._nodes)

    @property
    def edges(self) -> Dict[str, List[TransformEdge]]:
        """源节点ID -> 出边列表（返回副本，修改不会影响图本身）"""
        return {source_id: list(edge_list) for source_id, edge_list in self._outgoing.items() if edge_list}

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges_by_id)

    @property
    def revision(self) -> int:
        return self._revision

    def node_ids(self) -> List[str]:
        return list(self._nodes.keys())

    def first_node_id(self) -> Optional[str]:
        for node_id in self._nodes:
            return node_id
        return None

    def get_node(self, node_id: str) -> Optional[GraphNode[T]]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def all_edges(self) -> List[TransformEdge]:
        return list(self._edges_by_id.values())

    # -------- 邻接查询 --------
    def edges_from(self, node_id: str) -> List[TransformEdge]:
        return list(self._outgoing.get(node_id, ()))

    def edges_into(self, target_id: str) -> List[TransformEdge]:
        return list(self._incoming.get(target_id, ()))

    def edges_between(self, source_id: str, target_id: str) -> List[TransformEdge]:
        return [edge for edge in self._outgoing.get(source_id, ()) if edge.target == target_id]

    def edge_between(self, source_id: str, target_id: str) -> Optional[TransformEdge]:
        """返回 source -> target 的第一条边（多条时按插入顺序取第一条）。"""
        for edge in self._outgoing.get(source_id, ()):
            if edge.target == target_id:
                return edge
        return None

    def has_edge_between(self, source_id: str, target_id: str) -> bool:
        return self.edge_between(source_id, target_id) is not None

    def nodes_from(self, source_id: str) -> List[str]:
        return _dedupe(edge.target for edge in self._outgoing.get(source_id, ()))

    def nodes_into(self, target_id: str) -> List[str]:
        """指向 target 的源节点列表：去重，每个源只出现一次，按首次出现顺序。"""
        return _dedupe(edge.source for edge in self._incoming.get(target_id, ()))

    def breadth_first(self, start_id: str) -> Iterator[str]:
        """从 start 出发的广度优先遍历（每个节点只访问一次）。"""
        if start_id not in self._nodes:
            return
        visited = {start_id}
        queue = deque([start_id])
        while queue:
            node_id = queue.popleft()
            yield node_id
            for next_id in self.nodes_from(node_id):
                if next_id not in visited:
                    visited.add(next_id)
                    queue.append(next_id)

    # -------- 结构修改（导航器从不调用） --------
    def add_node(self, node_id: str, data: Optional[T] = None) -> GraphNode[T]:
        if node_id in self._nodes:
            raise InvalidGraphError(f'节点ID重复: "{node_id}"')
        node = GraphNode(id=node_id, data=data)
        self._nodes[node_id] = node
        self._revision += 1
        return node

    def add_edge(self, source_id: str, target_id: str, transform: Any, edge_id: str = "") -> TransformEdge:
        return self._insert_edge(TransformEdge(source=source_id, target=target_id, transform=transform, id=edge_id))

    def remove_edge(self, edge_id: str) -> bool:
        edge = self._edges_by_id.pop(edge_id, None)
        if edge is None:
            return False
        # 按 ID 删除：同一对节点间可能存在变换相等的多条边
        self._outgoing[edge.source] = [item for item in self._outgoing[edge.source] if item.id != edge_id]
        self._incoming[edge.target] = [item for item in self._incoming[edge.target] if item.id != edge_id]
        self._revision += 1
        return True

    def remove_node(self, node_id: str) -> bool:
        """删除节点及其所有相连的边。"""
        if node_id not in self._nodes:
            return False
        connected_ids = [
            edge.id for edge in self._edges_by_id.values() if edge.source == node_id or edge.target == node_id
        ]
        for edge_id in connected_ids:
            self.remove_edge(edge_id)
        self._outgoing.pop(node_id, None)
        self._incoming.pop(node_id, None)
        del self._nodes[node_id]
        self._revision += 1
        return True

    def _insert_edge(self, edge: TransformEdge) -> TransformEdge:
        missing = [endpoint for endpoint in (edge.source, edge.target) if endpoint not in self._nodes]
        if missing:
            raise InvalidGraphError(
                f"边 {edge.source} -> {edge.target} 引用了不存在的节点: {', '.join(missing)}"
            )
        if not edge.id:
            edge = TransformEdge(source=edge.source, target=edge.target, transform=edge.transform, id=self._gen_edge_id())
        elif edge.id in self._edges_by_id:
            raise InvalidGraphError(f'边ID重复: "{edge.id}"')

        self._outgoing.setdefault(edge.source, []).append(edge)
        self._incoming.setdefault(edge.target, []).append(edge)
        self._edges_by_id[edge.id] = edge
        self._revision += 1
        return edge

    def _gen_edge_id(self) -> str:
        while True:
            edge_id = f"edge_{self._next_edge_index}"
            self._next_edge_index += 1
            if edge_id not in self._edges_by_id:
                return edge_id

    def __repr__(self) -> str:
        return f"TransformGraph(nodes={self.node_count}, edges={self.edge_count})"


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _coerce_node(item: Any) -> GraphNode:
    if isinstance(item, GraphNode):
        return item
    if isinstance(item, Mapping):
        if "id" not in item:
            raise InvalidGraphError(f"节点缺少 id 字段: {item!r}")
        return GraphNode(id=str(item["id"]), data=item.get("data"))
    if isinstance(item, tuple) and len(item) == 2:
        return GraphNode(id=str(item[0]), data=item[1])
    raise InvalidGraphError(f"无法识别的节点描述: {item!r}")


def _normalize_nodes(nodes: Optional[NodesInput]) -> List[GraphNode]:
    if nodes is None:
        return []
    if isinstance(nodes, Mapping):
        result: List[GraphNode] = []
        for key, item in nodes.items():
            if isinstance(item, GraphNode) or (isinstance(item, Mapping) and "id" in item):
                node = _coerce_node(item)
                if node.id != key:
                    raise InvalidGraphError(f'节点映射键 "{key}" 与节点ID "{node.id}" 不一致')
            else:
                # 映射值直接是负载
                node = GraphNode(id=str(key), data=item)
            result.append(node)
        return result
    return [_coerce_node(item) for item in nodes]


def _coerce_edge(item: Any, source_hint: Optional[str] = None) -> TransformEdge:
    if isinstance(item, TransformEdge):
        edge = item
    elif isinstance(item, Mapping):
        if "target" not in item or "transform" not in item:
            raise InvalidGraphError(f"边缺少 target/transform 字段: {item!r}")
        source = item.get("source", source_hint)
        if source is None:
            raise InvalidGraphError(f"边缺少 source 字段: {item!r}")
        edge = TransformEdge(
            source=str(source),
            target=str(item["target"]),
            transform=item["transform"],
            id=str(item.get("id") or ""),
        )
    else:
        raise InvalidGraphError(f"无法识别的边描述: {item!r}")

    if source_hint is not None and edge.source != source_hint:
        raise InvalidGraphError(f'边映射键 "{source_hint}" 与边的源节点 "{edge.source}" 不一致')
    return edge


def _normalize_edges(edges: Optional[EdgesInput]) -> List[TransformEdge]:
    if edges is None:
        return []
    if isinstance(edges, Mapping):
        result: List[TransformEdge] = []
        for source_id, edge_items in edges.items():
            # 兼容旧格式：映射值可以是单条边
            if isinstance(edge_items, (TransformEdge, Mapping)):
                edge_items = [edge_items]
            for item in edge_items:
                result.append(_coerce_edge(item, source_hint=str(source_id)))
        return result
    return [_coerce_edge(item) for item in edges]
