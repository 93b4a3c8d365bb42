from __future__ import annotations

import pytest

from app.ui.graph.floating_origin import affine
from app.ui.graph.floating_origin.navigator import FloatingOriginNavigator
from engine.configs.settings import settings
from engine.graph.models.transform_graph import TransformEdge, TransformGraph, UnknownNodeError

TOLERANCE = 1e-9


def _abc_graph() -> TransformGraph:
    return TransformGraph(
        nodes=[("A", None), ("B", None), ("C", None)],
        edges=[
            TransformEdge("A", "B", affine.translation(100, 0)),
            TransformEdge("B", "C", affine.translation(0, 100)),
        ],
    )


def _zoom_cycle_graph() -> TransformGraph:
    """A -> B -> A，每条边都缩小一半并带一点偏移：无限缩放的环。"""
    shrink_ab = affine.compose(affine.translation(20, -10), affine.scaling(0.5))
    shrink_ba = affine.compose(affine.translation(-5, 15), affine.rotation(30), affine.scaling(0.5))
    return TransformGraph(
        nodes=[("A", {"size": 400}), ("B", {"size": 400})],
        edges=[TransformEdge("A", "B", shrink_ab), TransformEdge("B", "A", shrink_ba)],
    )


def _assert_point_close(left, right) -> None:
    assert left is not None and right is not None
    assert left.x == pytest.approx(right.x, abs=TOLERANCE)
    assert left.y == pytest.approx(right.y, abs=TOLERANCE)


def test_accumulated_transform_for_concrete_scenario() -> None:
    navigator = FloatingOriginNavigator(_abc_graph(), "A")

    assert affine.is_close(navigator.get_accumulated_transform("C"), affine.translation(100, 100))
    before = navigator.get_node_screen_position("C", 800, 600)
    assert (before.x, before.y) == pytest.approx((500.0, 400.0))

    assert navigator.move_reference_forward() is True
    assert navigator.reference_node_id == "B"
    assert affine.is_close(navigator.get_accumulated_transform("C"), affine.translation(0, 100))
    _assert_point_close(navigator.get_node_screen_position("C", 800, 600), before)


def test_zoom_at_point_composes_scale_about_pointer() -> None:
    navigator = FloatingOriginNavigator(_abc_graph())

    changed = navigator.zoom_at_point(400, 300, 2.0)

    expected = affine.compose(affine.translation(400, 300), affine.scaling(2), affine.translation(-400, -300))
    assert changed is False
    assert affine.is_close(navigator.viewport_transform, expected)
    assert affine.components(navigator.viewport_transform) == pytest.approx((2, 0, 0, 2, -400, -300))


def test_zoom_factor_one_is_identity_and_pan_translates() -> None:
    navigator = FloatingOriginNavigator(_abc_graph())
    navigator.pan(10, -5)
    navigator.zoom_at_point(123, 456, 1.0)
    assert affine.is_close(navigator.viewport_transform, affine.translation(10, -5))

    navigator.zoom_at_point(0, 0, 3.0)
    navigator.pan(1, 2)
    assert affine.components(navigator.viewport_transform) == pytest.approx((3, 0, 0, 3, 31, -13))


def test_identity_path_for_reference_node() -> None:
    navigator = FloatingOriginNavigator(_zoom_cycle_graph(), "B")
    navigator.zoom_at_point(10, 10, 7.0)
    assert affine.is_close(navigator.get_accumulated_transform("B"), affine.identity())


def test_disconnected_target_returns_none_without_raising() -> None:
    graph = TransformGraph(
        nodes=[("A", None), ("B", None), ("island", None)],
        edges=[TransformEdge("A", "B", affine.translation(1, 1))],
    )
    navigator = FloatingOriginNavigator(graph, "B")

    assert navigator.get_accumulated_transform("A") is None
    assert navigator.get_accumulated_transform("island") is None
    assert navigator.get_accumulated_transform("not-a-node") is None
    assert navigator.get_node_screen_position("island", 800, 600) is None
    assert navigator.move_reference_forward() is False
    assert navigator.move_reference_forward("island") is False
    assert navigator.move_reference_backward("island") is False
    assert navigator.reference_node_id == "B"


def test_visible_nodes_on_cycle_terminate_with_exact_count() -> None:
    navigator = FloatingOriginNavigator(_zoom_cycle_graph(), "A")

    visible = list(navigator.get_visible_nodes_with_transforms(7))

    assert [item.node_id for item in visible] == ["A", "B", "A", "B", "A", "B", "A"]
    assert affine.is_close(visible[0].transform, affine.identity())
    edge_ab = navigator.graph.edge_between("A", "B").transform
    edge_ba = navigator.graph.edge_between("B", "A").transform
    assert affine.is_close(visible[2].transform, affine.compose(edge_ab, edge_ba))


def test_visible_nodes_respect_frontier_and_are_restartable() -> None:
    navigator = FloatingOriginNavigator(_abc_graph(), "A")

    first = navigator.get_visible_node_ids(40)
    second = navigator.get_visible_node_ids(40)
    assert first == second == ["A", "B", "C"]
    assert navigator.get_visible_node_ids(2) == ["A", "B"]
    assert navigator.get_visible_node_ids(0) == []

    navigator.move_reference_forward()
    assert navigator.get_visible_node_ids() == ["B", "C"]


def test_visible_nodes_default_limit_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setattr(settings, "FLOATING_ORIGIN_MAX_VISIBLE_NODES", 3)
    navigator = FloatingOriginNavigator(_zoom_cycle_graph())
    assert len(list(navigator.get_visible_nodes_with_transforms())) == 3


def test_culling_callback_prunes_subtree() -> None:
    navigator = FloatingOriginNavigator(_abc_graph(), "A")
    seen = []

    def cull_b(node_id, transform, viewport):
        seen.append(node_id)
        return node_id == "B"

    assert [item.node_id for item in navigator.get_visible_nodes_with_transforms(10, cull_b)] == ["A"]
    assert seen == ["B"]


def test_forward_then_backward_round_trip_restores_state() -> None:
    navigator = FloatingOriginNavigator(_zoom_cycle_graph(), "A")
    navigator.zoom_at_point(320, 200, 3.5)
    navigator.pan(-40, 25)
    viewport_before = navigator.viewport_transform

    assert navigator.move_reference_forward() is True
    assert navigator.reference_node_id == "B"
    assert navigator.last_target_node_id == "A"
    assert navigator.move_reference_backward() is True

    assert navigator.reference_node_id == "A"
    assert navigator.last_target_node_id == "B"
    assert affine.is_close(navigator.viewport_transform, viewport_before)


def test_backward_then_forward_round_trip_restores_state() -> None:
    navigator = FloatingOriginNavigator(_abc_graph(), "C")
    navigator.zoom_at_point(10, 20, 0.25)
    viewport_before = navigator.viewport_transform

    assert navigator.move_reference_backward() is True
    assert navigator.reference_node_id == "B"
    assert navigator.move_reference_forward() is True
    assert navigator.reference_node_id == "C"
    assert affine.is_close(navigator.viewport_transform, viewport_before)


def _zoom_tree_graph() -> TransformGraph:
    """R -> A -> {B, X}，B -> C：每个节点到根只有一条路径，任意节点的屏幕位置都可比较。"""
    return TransformGraph(
        nodes=[("R", None), ("A", None), ("B", None), ("X", None), ("C", None)],
        edges=[
            TransformEdge("R", "A", affine.compose(affine.translation(40, 30), affine.scaling(0.5))),
            TransformEdge("A", "B", affine.compose(affine.translation(-12, 8), affine.rotation(45), affine.scaling(0.25))),
            TransformEdge("A", "X", affine.translation(90, -60)),
            TransformEdge("B", "C", affine.compose(affine.translation(3, 3), affine.scaling(0.1))),
        ],
    )


def test_visual_continuity_through_gestures_and_transitions() -> None:
    navigator = FloatingOriginNavigator(_zoom_tree_graph(), "R")
    node_ids = navigator.graph.node_ids()
    steps = [
        ("zoom", (100, 80, 2.5)),
        ("forward", "A"),
        ("pan", (13, -7)),
        ("zoom", (400, 300, 1.7)),
        ("forward", "B"),
        ("zoom", (420, 310, 30.0)),
        ("forward", "C"),
        ("backward", "B"),
        ("zoom", (50, 60, 0.6)),
        ("backward", "A"),
        ("backward", "R"),
        ("forward", "A"),
    ]

    for action, args in steps:
        if action == "zoom":
            navigator.zoom_at_point(*args)
            continue
        if action == "pan":
            navigator.pan(*args)
            continue

        before = {node_id: navigator.get_node_screen_position(node_id, 800, 600) for node_id in node_ids}
        moved = navigator.move_reference_forward() if action == "forward" else navigator.move_reference_backward()
        assert moved is True
        assert navigator.reference_node_id == args

        after = {node_id: navigator.get_node_screen_position(node_id, 800, 600) for node_id in node_ids}
        compared = [node_id for node_id in node_ids if before[node_id] is not None and after[node_id] is not None]
        assert navigator.reference_node_id in compared
        for node_id in compared:
            _assert_point_close(after[node_id], before[node_id])


def test_self_loop_transition_keeps_screen_appearance() -> None:
    graph = TransformGraph(
        nodes=[("fractal", {"size": 200})],
        edges=[TransformEdge("fractal", "fractal", affine.compose(affine.translation(30, 0), affine.scaling(0.5)))],
    )
    navigator = FloatingOriginNavigator(graph)
    navigator.zoom_at_point(400, 300, 2.0)
    viewport_before = navigator.viewport_transform
    corner_before = navigator.map_to_screen("fractal", 50, 50, 800, 600)
    inner_before = affine.map_point(affine.compose(viewport_before, graph.edge_between("fractal", "fractal").transform), 50, 50)

    assert navigator.move_reference_forward() is True
    # 新参考帧就是原先的内层副本
    corner_after = navigator.map_to_screen("fractal", 50, 50, 800, 600)
    assert (corner_after.x - 400, corner_after.y - 300) == pytest.approx(inner_before)
    assert navigator.move_reference_backward() is True
    _assert_point_close(navigator.map_to_screen("fractal", 50, 50, 800, 600), corner_before)


def test_explicit_targets_are_validated_against_edges() -> None:
    graph = TransformGraph(
        nodes=[("root", None), ("left", None), ("right", None)],
        edges=[
            TransformEdge("root", "left", affine.translation(-100, 0)),
            TransformEdge("root", "right", affine.translation(100, 0)),
        ],
    )
    navigator = FloatingOriginNavigator(graph, "root")

    assert navigator.move_reference_forward("root") is False
    assert navigator.move_reference_forward("right") is True
    assert navigator.reference_node_id == "right"
    assert navigator.move_reference_backward("left") is False
    assert navigator.move_reference_backward("root") is True
    # 连续性：刚离开的 right 成为首选后继
    assert navigator.get_best_next_node_id() == "right"


def test_best_candidates_prefer_last_target_then_insertion_order() -> None:
    graph = TransformGraph(
        nodes=[("p1", None), ("p2", None), ("x", None), ("c1", None), ("c2", None)],
        edges=[
            TransformEdge("p1", "x", affine.identity()),
            TransformEdge("p2", "x", affine.identity()),
            TransformEdge("x", "c1", affine.identity()),
            TransformEdge("x", "c2", affine.identity()),
        ],
    )
    navigator = FloatingOriginNavigator(graph, "x")
    assert navigator.get_best_next_node_id() == "c1"
    assert navigator.get_best_prev_node_id() == "p1"

    navigator.set_target_node("c2")
    assert navigator.get_best_next_node_id() == "c2"
    navigator.set_target_node("p2")
    assert navigator.get_best_prev_node_id() == "p2"
    navigator.set_target_node("unknown")
    assert navigator.last_target_node_id == "p2"


def test_singular_edge_transform_blocks_backward_move(capsys) -> None:
    graph = TransformGraph(
        nodes=[("A", None), ("B", None)],
        edges=[TransformEdge("A", "B", affine.scaling(0.0))],
    )
    navigator = FloatingOriginNavigator(graph, "B")
    navigator.pan(5, 5)
    viewport_before = navigator.viewport_transform

    assert navigator.move_reference_backward() is False
    assert navigator.reference_node_id == "B"
    assert navigator.last_target_node_id is None
    assert affine.is_close(navigator.viewport_transform, viewport_before)
    assert "不可逆" in capsys.readouterr().out


def test_unknown_reference_node_is_rejected() -> None:
    graph = _abc_graph()
    with pytest.raises(UnknownNodeError):
        FloatingOriginNavigator(graph, "Z")

    navigator = FloatingOriginNavigator(graph)
    assert navigator.reference_node_id == "A"
    with pytest.raises(UnknownNodeError) as exc_info:
        navigator.set_reference_node("Z")
    assert exc_info.value.node_id == "Z"
    with pytest.raises(UnknownNodeError):
        navigator.reset_view("Z")
    with pytest.raises(UnknownNodeError):
        FloatingOriginNavigator(TransformGraph())

    navigator.set_reference_node("C")
    assert navigator.reference_node.id == "C"


def test_reset_view_restores_identity_and_clears_hint() -> None:
    navigator = FloatingOriginNavigator(_abc_graph())
    navigator.zoom_at_point(1, 2, 5.0)
    navigator.move_reference_forward()

    navigator.reset_view()
    assert navigator.reference_node_id == "A"
    assert affine.is_close(navigator.viewport_transform, affine.identity())
    assert navigator.last_target_node_id is None

    navigator.reset_view("C")
    assert navigator.reference_node_id == "C"


def test_viewport_setter_and_getter_copy_values() -> None:
    navigator = FloatingOriginNavigator(_abc_graph())
    saved = affine.translation(7, 8)
    navigator.set_viewport_transform(saved)
    saved.translate(100, 100)
    assert affine.is_close(navigator.viewport_transform, affine.translation(7, 8))

    exposed = navigator.viewport_transform
    exposed.scale(3, 3)
    assert affine.is_close(navigator.viewport_transform, affine.translation(7, 8))


def test_graph_accessors_cannot_remove_the_reference_node() -> None:
    navigator = FloatingOriginNavigator(_abc_graph(), "A")

    with pytest.raises(TypeError):
        del navigator.nodes["A"]
    navigator.edges["A"].clear()

    assert navigator.reference_node.id == "A"
    assert [edge.target for edge in navigator.graph.edges_from("A")] == ["B"]
    assert navigator.move_reference_forward("B") is True


def test_navigators_sharing_a_graph_are_independent() -> None:
    graph = _zoom_cycle_graph()
    first = FloatingOriginNavigator(graph, "A")
    second = FloatingOriginNavigator(graph, "A")

    first.zoom_at_point(0, 0, 4.0)
    first.move_reference_forward()

    assert second.reference_node_id == "A"
    assert affine.is_close(second.viewport_transform, affine.identity())
    assert graph.node_count == 2 and graph.edge_count == 2


def test_verbose_setting_logs_transitions(monkeypatch, capsys) -> None:
    navigator = FloatingOriginNavigator(_abc_graph())

    navigator.move_reference_forward()
    assert capsys.readouterr().out == ""

    monkeypatch.setattr(settings, "FLOATING_ORIGIN_VERBOSE", True)
    navigator.move_reference_forward()
    captured = capsys.readouterr().out
    assert "[浮动原点]" in captured
    assert "B -> C" in captured
