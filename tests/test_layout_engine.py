"""Tests for the full canvas layout pipeline."""

import pytest

from canvas_layout.components import compute_components
from canvas_layout.errors import EmptyDocumentError, OracleError
from canvas_layout.layout_engine import (
    LayoutEngineConfig,
    layout_canvas,
    make_oracle,
    set_edge_anchors,
)
from canvas_layout.models import CanvasDoc, CanvasEdge, CanvasNode, Direction, Side
from canvas_layout.oracle import ElkjsOracle, LayeredOracle
from canvas_layout.packing import component_bounds, find_group_overlaps


def _node(nid: str, x: float = 0, y: float = 0, w: float = 100, h: float = 50) -> CanvasNode:
    return CanvasNode(id=nid, x=x, y=y, width=w, height=h)


def _group(gid: str, x: float, y: float, w: float, h: float) -> CanvasNode:
    return CanvasNode(id=gid, type="group", x=x, y=y, width=w, height=h)


def _edge(src: str, tgt: str) -> CanvasEdge:
    return CanvasEdge(id=f"{src}-{tgt}", from_node=src, to_node=tgt)


class BrokenOracle:
    def layout(self, graph: dict) -> dict:
        return {"children": 42}


class RaisingOracle:
    def layout(self, graph: dict) -> dict:
        raise TimeoutError("no answer")


class InfiniteOracle:
    """Places the first node and sends the rest off to infinity."""

    def layout(self, graph: dict) -> dict:
        children = [
            {**c, "x": 0 if i == 0 else float("inf"), "y": 0}
            for i, c in enumerate(graph["children"])
        ]
        return {**graph, "children": children}


def _scenario() -> CanvasDoc:
    return CanvasDoc(
        nodes=[
            _node("N1", 0, 0, 100, 50),
            _node("N2", 300, 0, 100, 50),
            _group("G", -20, -20, 440, 90),
        ],
        edges=[CanvasEdge(id="e1", from_node="N1", to_node="N2")],
    )


# ===================================================================
# Concrete scenarios
# ===================================================================

class TestGroupedPair:
    def test_right(self) -> None:
        doc = _scenario()
        report = layout_canvas(doc, Direction.RIGHT)
        nodes = doc.node_map()

        assert (nodes["N1"].x, nodes["N1"].y) == (100, 100)
        assert (nodes["N2"].x, nodes["N2"].y) == (340, 100)
        g = nodes["G"]
        assert (g.x, g.y, g.width, g.height) == (-100, -100, 740, 450)

        edge = doc.edges[0]
        assert edge.from_side is Side.RIGHT
        assert edge.to_side is Side.LEFT

        assert report.nodes_moved == 2
        assert report.groups_resized == 1
        assert report.components == 1
        assert report.component_offsets == {}
        assert report.edges_anchored == 1

    def test_down(self) -> None:
        doc = _scenario()
        layout_canvas(doc, Direction.DOWN)
        nodes = doc.node_map()
        assert nodes["N1"].x == nodes["N2"].x == 100
        assert nodes["N1"].y == 100
        assert nodes["N2"].y == 100 + 50 + 140
        assert doc.edges[0].from_side is Side.BOTTOM
        assert doc.edges[0].to_side is Side.TOP

    def test_group_wraps_members(self) -> None:
        doc = _scenario()
        layout_canvas(doc, Direction.RIGHT)
        nodes = doc.node_map()
        g = nodes["G"].bounds
        for nid in ("N1", "N2"):
            n = nodes[nid].bounds
            assert n.x - g.x >= 200
            assert g.contains(n)


class TestDisconnectedPairs:
    def _doc(self) -> CanvasDoc:
        return CanvasDoc(
            nodes=[_node("A"), _node("B", 400, 0), _node("C", 0, 400), _node("D", 400, 400)],
            edges=[_edge("A", "B"), _edge("C", "D")],
        )

    @pytest.mark.parametrize("direction", [Direction.RIGHT, Direction.DOWN])
    def test_packed_with_gap(self, direction: Direction) -> None:
        doc = self._doc()
        layout_canvas(doc, direction)
        comp = compute_components(doc)
        assert comp["A"] == comp["B"] != comp["C"] == comp["D"]

        boxes = sorted(component_bounds(doc, comp).values(),
                       key=lambda r: r.x if direction is Direction.RIGHT else r.y)
        assert len(boxes) == 2
        first, second = boxes
        if direction is Direction.RIGHT:
            assert second.x - first.right == 180
        else:
            assert second.y - first.bottom == 180

    def test_internal_offsets_preserved(self) -> None:
        reference = self._doc()
        # Layout without packing gives the unpacked relative geometry.
        layout_canvas(reference, Direction.RIGHT, config=LayoutEngineConfig(component_gap=0))
        ref = reference.node_map()

        doc = self._doc()
        layout_canvas(doc, Direction.RIGHT)
        nodes = doc.node_map()
        for a, b in (("A", "B"), ("C", "D")):
            assert nodes[b].x - nodes[a].x == ref[b].x - ref[a].x
            assert nodes[b].y - nodes[a].y == ref[b].y - ref[a].y

    def test_exact_positions(self) -> None:
        doc = self._doc()
        report = layout_canvas(doc, Direction.RIGHT)
        nodes = doc.node_map()
        assert (nodes["A"].x, nodes["A"].y) == (100, 100)
        assert (nodes["B"].x, nodes["B"].y) == (340, 100)
        assert (nodes["C"].x, nodes["C"].y) == (620, 255)
        assert (nodes["D"].x, nodes["D"].y) == (860, 255)
        assert report.component_offsets == {0: 0, 1: 520}


def test_unconnected_nodes_are_chained() -> None:
    doc = CanvasDoc(nodes=[_node("a"), _node("b"), _node("c")])
    layout_canvas(doc, Direction.RIGHT)
    xs = [n.x for n in doc.nodes]
    assert xs == sorted(xs)
    assert len(set(xs)) == 3


def test_groups_pushed_apart() -> None:
    doc = CanvasDoc(
        nodes=[
            _node("A", 0, 0), _node("B", 300, 0),
            _group("GA", -10, -10, 120, 70), _group("GB", 290, -10, 120, 70),
        ],
        edges=[_edge("A", "B")],
    )
    report = layout_canvas(doc, Direction.RIGHT)
    assert report.overlap_shifts >= 1
    assert find_group_overlaps(doc, gap=24) == []


def test_nested_group_pushed_past_parent() -> None:
    doc = CanvasDoc(
        nodes=[
            _group("outer", -50, -50, 700, 300),
            _group("inner", -20, -20, 200, 120),
            _node("a", 0, 0), _node("b", 400, 0),
        ],
        edges=[_edge("a", "b")],
    )
    report = layout_canvas(doc, Direction.RIGHT)
    nodes = doc.node_map()
    outer, inner = nodes["outer"], nodes["inner"]
    assert report.overlap_shifts == 1
    assert report.components == 2
    assert outer.bounds.contains(nodes["a"].bounds)
    assert outer.bounds.contains(nodes["b"].bounds)
    assert inner.x >= outer.x + outer.width + 24
    assert find_group_overlaps(doc, gap=24) == []


def test_only_groups() -> None:
    doc = CanvasDoc(nodes=[_group("g", 10, 10, 50, 50)])
    report = layout_canvas(doc, Direction.RIGHT)
    assert report.nodes_moved == 0
    assert (doc.nodes[0].x, doc.nodes[0].y) == (10, 10)


# ===================================================================
# Directions without packing
# ===================================================================

def test_left_skips_packing() -> None:
    doc = CanvasDoc(
        nodes=[_node("A"), _node("B"), _node("C"), _node("D")],
        edges=[_edge("A", "B"), _edge("C", "D")],
    )
    report = layout_canvas(doc, Direction.LEFT)
    nodes = doc.node_map()
    assert report.components == 0
    assert report.component_offsets == {}
    assert nodes["A"].x > nodes["B"].x
    assert doc.edges[0].from_side is Side.LEFT
    assert doc.edges[0].to_side is Side.RIGHT


def test_up_sets_anchors() -> None:
    doc = _scenario()
    layout_canvas(doc, Direction.UP)
    assert doc.edges[0].from_side is Side.TOP
    assert doc.edges[0].to_side is Side.BOTTOM


# ===================================================================
# Errors
# ===================================================================

def test_empty_document() -> None:
    with pytest.raises(EmptyDocumentError):
        layout_canvas(CanvasDoc(), Direction.RIGHT)


@pytest.mark.parametrize("oracle", [BrokenOracle(), RaisingOracle(), InfiniteOracle()])
def test_oracle_failure_commits_nothing(oracle) -> None:
    doc = _scenario()
    before = doc.to_dict()
    with pytest.raises(OracleError):
        layout_canvas(doc, Direction.RIGHT, oracle=oracle)
    assert doc.to_dict() == before


# ===================================================================
# Edge anchors
# ===================================================================

def test_edge_anchors_skip_dangling_edges() -> None:
    doc = CanvasDoc(
        nodes=[_node("a"), _node("b")],
        edges=[_edge("a", "b"), _edge("a", "ghost")],
    )
    assert set_edge_anchors(doc, Direction.RIGHT) == 1
    assert doc.edges[1].from_side is None
    assert doc.edges[1].to_side is None


def test_edge_anchors_include_group_endpoints() -> None:
    doc = CanvasDoc(nodes=[_node("a"), _group("g", 0, 0, 10, 10)], edges=[_edge("a", "g")])
    set_edge_anchors(doc, Direction.DOWN)
    assert doc.edges[0].from_side is Side.BOTTOM


# ===================================================================
# Oracle factory
# ===================================================================

def test_make_oracle() -> None:
    assert isinstance(make_oracle(), LayeredOracle)
    assert isinstance(make_oracle("ELKJS"), ElkjsOracle)
    with pytest.raises(ValueError):
        make_oracle("graphviz")
