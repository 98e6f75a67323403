"""
Layout oracle adapter.

The layered placement itself is delegated to an oracle that speaks the ELK
JSON graph format: a root graph with ``layoutOptions``, ``children`` (nodes
with width/height) and ``edges`` (``sources``/``targets``). The oracle
returns the same graph with ``x``/``y`` filled in on the children.

Two oracles are provided:
- ``LayeredOracle`` — an in-process Sugiyama-style layered layout
- ``ElkjsOracle``   — elkjs running under Node.js in a subprocess

Groups never reach the oracle. Their rectangles are rebuilt afterwards from
the group snapshot.
"""

from __future__ import annotations

import json
import logging
import math
import os
import shutil
import subprocess
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Protocol

from canvas_layout.errors import OracleError
from canvas_layout.models import CanvasDoc, Direction

logger = logging.getLogger(__name__)

Position = tuple[float, float, float, float]  # x, y, width, height


class LayoutOracle(Protocol):
    """Anything that can lay out an ELK JSON graph."""

    def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        ...


# ---------------------------------------------------------------------------
# Oracle input
# ---------------------------------------------------------------------------

def build_oracle_graph(
    doc: CanvasDoc,
    direction: Direction,
    min_size: float = 10,
    node_spacing: float = 105,
    layer_spacing: float = 140,
) -> dict[str, Any]:
    """Build the group-free ELK graph for *doc*.

    Only edges between two plain nodes are kept. When there are at least
    two nodes and no such edges, consecutive nodes are chained with
    synthetic ``__v_<i>`` edges so the result still reads in *direction*.
    """
    nodes = doc.plain_nodes()
    node_ids = {n.id for n in nodes}

    edges: list[dict[str, Any]] = [
        {"id": e.id, "sources": [e.from_node], "targets": [e.to_node]}
        for e in doc.edges
        if e.from_node in node_ids and e.to_node in node_ids
    ]
    children: list[dict[str, Any]] = [
        {"id": n.id, "width": max(n.width, min_size), "height": max(n.height, min_size)}
        for n in nodes
    ]

    if not edges and len(children) > 1:
        logger.debug("No edges between %d nodes, chaining them in document order",
                     len(children))
        for i in range(len(children) - 1):
            edges.append({
                "id": f"__v_{i}",
                "sources": [children[i]["id"]],
                "targets": [children[i + 1]["id"]],
            })

    return {
        "id": "root",
        "layoutOptions": {
            "elk.algorithm": "layered",
            "elk.direction": direction.value,
            "elk.layered.writingMode": direction.writing_mode,
            "elk.layered.edgeRouting": "ORTHOGONAL",
            "elk.spacing.nodeNode": _fmt(node_spacing),
            "elk.layered.spacing.nodeNodeBetweenLayers": _fmt(layer_spacing),
        },
        "children": children,
        "edges": edges,
    }


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


# ---------------------------------------------------------------------------
# Oracle output
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def extract_positions(result: Any) -> dict[str, Position]:
    """Read node positions from a laid-out ELK graph.

    Children without numeric ``x``/``y`` are skipped; the caller leaves those
    nodes where they were.

    Raises:
        OracleError: if *result* is not a graph with a list of children, or a
            child carries a non-finite coordinate.
    """
    if not isinstance(result, dict):
        raise OracleError(
            f"Layout oracle returned {type(result).__name__}, expected a graph object."
        )
    children = result.get("children", [])
    if not isinstance(children, list):
        raise OracleError("Layout oracle returned a graph whose 'children' is not a list.")

    positions: dict[str, Position] = {}
    for child in children:
        if not isinstance(child, dict) or "id" not in child:
            continue
        x, y = child.get("x"), child.get("y")
        if not (_is_number(x) and _is_number(y)):
            continue
        if not (math.isfinite(x) and math.isfinite(y)):
            raise OracleError(
                f"Layout oracle returned a non-finite position for node '{child['id']}'."
            )
        w = child.get("width", 10)
        h = child.get("height", 10)
        positions[str(child["id"])] = (
            float(x), float(y),
            float(w) if _is_finite_number(w) else 10.0,
            float(h) if _is_finite_number(h) else 10.0,
        )
    return positions


def rebase_positions(positions: dict[str, Position], offset: float = 100) -> dict[str, Position]:
    """Translate all positions so the smallest x and y both equal *offset*."""
    if not positions:
        return {}
    min_x = min(p[0] for p in positions.values())
    min_y = min(p[1] for p in positions.values())
    dx = offset - min_x
    dy = offset - min_y
    return {
        nid: (x + dx, y + dy, w, h)
        for nid, (x, y, w, h) in positions.items()
    }


def apply_oracle_layout(
    doc: CanvasDoc,
    direction: Direction,
    oracle: LayoutOracle,
    min_size: float = 10,
    origin_offset: float = 100,
    node_spacing: float = 105,
    layer_spacing: float = 140,
) -> int:
    """Lay out the plain nodes of *doc* with *oracle* and write back x/y.

    Every position is computed and validated before the first node is
    written, so an oracle failure leaves the document untouched. Groups are
    not modified.

    Returns:
        Number of plain nodes moved.

    Raises:
        OracleError: if the oracle raises or returns malformed data.
    """
    graph = build_oracle_graph(doc, direction, min_size, node_spacing, layer_spacing)
    if not graph["children"]:
        logger.debug("No plain nodes to lay out")
        return 0

    try:
        result = oracle.layout(graph)
    except OracleError:
        raise
    except Exception as exc:
        raise OracleError(f"Layout oracle failed: {exc}") from exc

    sent = {c["id"] for c in graph["children"]}
    positions = {
        nid: pos for nid, pos in extract_positions(result).items() if nid in sent
    }
    positions = rebase_positions(positions, origin_offset)

    placed: dict[str, tuple[int, int]] = {}
    for node in doc.plain_nodes():
        pos = positions.get(node.id)
        if pos is None:
            logger.debug("Oracle returned no position for node '%s', leaving it in place",
                         node.id)
            continue
        placed[node.id] = (round(pos[0]), round(pos[1]))

    for node in doc.plain_nodes():
        if node.id in placed:
            node.x, node.y = placed[node.id]
    moved = len(placed)
    logger.debug("Oracle placed %d of %d node(s)", moved, len(graph["children"]))
    return moved


# ---------------------------------------------------------------------------
# In-process layered oracle
# ---------------------------------------------------------------------------

@dataclass
class _Node:
    """Internal node representation for the layered layout."""
    id: str
    width: float
    height: float
    rank: int = 0       # Layer assignment
    order: float = 0    # Position within layer
    x: float = 0
    y: float = 0
    is_virtual: bool = False  # Virtual nodes for long edges


class LayeredOracle:
    """Sugiyama-style layered layout over an ELK JSON graph.

    Steps:
    1. Cycle removal (reverse back-edges)
    2. Layer assignment (longest path)
    3. Virtual node insertion for long edges
    4. Crossing minimization (barycenter heuristic, multi-pass)
    5. Coordinate assignment

    Honours ``elk.direction``, ``elk.spacing.nodeNode`` and
    ``elk.layered.spacing.nodeNodeBetweenLayers``. Deterministic for a
    given input.
    """

    def __init__(self, barycenter_iterations: int = 4, padding: float = 12) -> None:
        self.barycenter_iterations = barycenter_iterations
        self.padding = padding

    def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        options = graph.get("layoutOptions") or {}
        direction = Direction(str(options.get("elk.direction", "RIGHT")).upper())
        node_spacing = float(options.get("elk.spacing.nodeNode", 20))
        layer_spacing = float(options.get("elk.layered.spacing.nodeNodeBetweenLayers", 20))

        children = graph.get("children") or []
        nodes: dict[str, _Node] = {}
        for c in children:
            nodes[c["id"]] = _Node(
                id=c["id"],
                width=float(c.get("width", 0)),
                height=float(c.get("height", 0)),
            )
        real_ids = list(nodes)

        adj: dict[str, list[str]] = defaultdict(list)
        for e in graph.get("edges") or []:
            for src in e.get("sources", []):
                for tgt in e.get("targets", []):
                    if src in nodes and tgt in nodes and src != tgt:
                        adj[src].append(tgt)

        # --- Step 1: Cycle removal ---
        dag_edges = _acyclic_edges(real_ids, adj)
        effective_adj: dict[str, list[str]] = defaultdict(list)
        for src, tgt in dag_edges:
            effective_adj[src].append(tgt)

        # --- Step 2: Layer assignment ---
        ranks = _longest_path_ranks(real_ids, dag_edges)
        for nid, rank in ranks.items():
            nodes[nid].rank = rank

        # --- Step 3: Virtual nodes for long edges ---
        expanded: list[tuple[str, str]] = []
        virtual_count = 0
        for src in real_ids:
            for tgt in effective_adj.get(src, []):
                prev = src
                for r in range(ranks[src] + 1, ranks[tgt]):
                    vname = f"__virtual_{virtual_count}"
                    virtual_count += 1
                    nodes[vname] = _Node(id=vname, width=0, height=0,
                                         rank=r, is_virtual=True)
                    expanded.append((prev, vname))
                    prev = vname
                expanded.append((prev, tgt))

        # --- Step 4: Crossing minimization ---
        by_rank: dict[int, list[str]] = defaultdict(list)
        for nid, node in nodes.items():
            by_rank[node.rank].append(nid)

        exp_adj: dict[str, list[str]] = defaultdict(list)
        exp_rev: dict[str, list[str]] = defaultdict(list)
        for s, t in expanded:
            exp_adj[s].append(t)
            exp_rev[t].append(s)

        max_rank = max(by_rank.keys()) if by_rank else 0
        for rank_nodes in by_rank.values():
            for i, nid in enumerate(rank_nodes):
                nodes[nid].order = float(i)

        for _ in range(self.barycenter_iterations):
            for r in range(1, max_rank + 1):
                _barycenter_sort(by_rank[r], nodes, exp_rev)
            for r in range(max_rank - 1, -1, -1):
                _barycenter_sort(by_rank[r], nodes, exp_adj)

        # --- Step 5: Coordinate assignment ---
        _assign_coordinates(by_rank, nodes, direction, node_spacing,
                            layer_spacing, self.padding)

        laid_out = dict(graph)
        laid_out["children"] = [
            {**c, "x": nodes[c["id"]].x, "y": nodes[c["id"]].y}
            for c in children
        ]
        return laid_out


def _acyclic_edges(
    ids: list[str],
    adj: dict[str, list[str]],
) -> list[tuple[str, str]]:
    """Edge list of *adj* with every DFS back-edge turned around."""
    on_path: set[str] = set()
    finished: set[str] = set()
    back: set[tuple[str, str]] = set()

    for start in ids:
        if start in finished:
            continue
        on_path.add(start)
        path: list[tuple[str, Iterator[str]]] = [(start, iter(adj.get(start, [])))]
        while path:
            u, targets = path[-1]
            v = next(targets, None)
            if v is None:
                path.pop()
                on_path.discard(u)
                finished.add(u)
            elif v in on_path:
                back.add((u, v))
            elif v not in finished:
                on_path.add(v)
                path.append((v, iter(adj.get(v, []))))

    return [
        (tgt, src) if (src, tgt) in back else (src, tgt)
        for src in ids
        for tgt in adj.get(src, [])
    ]


def _longest_path_ranks(ids: list[str], edges: list[tuple[str, str]]) -> dict[str, int]:
    """Rank each node by its longest distance from a source of the DAG *edges*."""
    indegree = {n: 0 for n in ids}
    out: dict[str, list[str]] = defaultdict(list)
    for src, tgt in edges:
        out[src].append(tgt)
        indegree[tgt] += 1

    ranks = {n: 0 for n in ids}
    ready = deque(n for n in ids if indegree[n] == 0)
    while ready:
        u = ready.popleft()
        for v in out[u]:
            ranks[v] = max(ranks[v], ranks[u] + 1)
            indegree[v] -= 1
            if indegree[v] == 0:
                ready.append(v)
    return ranks


def _barycenter_sort(
    rank_nodes: list[str],
    nodes: dict[str, _Node],
    neighbor_adj: dict[str, list[str]],
) -> None:
    """Sort nodes in a rank by barycenter of their neighbors."""
    barycenters: dict[str, float] = {}
    for nid in rank_nodes:
        orders = [nodes[n].order for n in neighbor_adj.get(nid, []) if n in nodes]
        if orders:
            barycenters[nid] = sum(orders) / len(orders)
        else:
            barycenters[nid] = nodes[nid].order

    rank_nodes.sort(key=lambda n: barycenters[n])
    for i, nid in enumerate(rank_nodes):
        nodes[nid].order = float(i)


def _assign_coordinates(
    by_rank: dict[int, list[str]],
    nodes: dict[str, _Node],
    direction: Direction,
    node_spacing: float,
    layer_spacing: float,
    padding: float,
) -> None:
    """Assign x, y from rank (primary axis) and order (secondary axis).

    Ranks are centered against the longest rank on the secondary axis.
    Virtual nodes take no space.
    """
    horizontal = direction.primary_axis == "x"

    def along(node: _Node) -> float:
        return node.width if horizontal else node.height

    def across(node: _Node) -> float:
        return node.height if horizontal else node.width

    rank_extent: dict[int, float] = {}
    rank_span: dict[int, float] = {}
    for rank, rank_nodes in by_rank.items():
        real = [nodes[n] for n in rank_nodes if not nodes[n].is_virtual]
        rank_extent[rank] = max((along(n) for n in real), default=0)
        span = sum(across(n) for n in real)
        rank_span[rank] = span + max(len(real) - 1, 0) * node_spacing
    max_span = max(rank_span.values(), default=0)

    reverse = direction in (Direction.LEFT, Direction.UP)
    rank_offsets: dict[int, float] = {}
    cumulative = padding
    for r in sorted(by_rank.keys(), reverse=reverse):
        rank_offsets[r] = cumulative
        cumulative += rank_extent[r] + layer_spacing

    for rank, rank_nodes in by_rank.items():
        cursor = padding + (max_span - rank_span[rank]) / 2
        primary = rank_offsets[rank]
        for nid in rank_nodes:
            node = nodes[nid]
            if horizontal:
                node.x, node.y = primary, cursor
            else:
                node.x, node.y = cursor, primary
            if not node.is_virtual:
                cursor += across(node) + node_spacing


# ---------------------------------------------------------------------------
# elkjs oracle
# ---------------------------------------------------------------------------

_ELKJS_SCRIPT = r"""
const ELK = require('elkjs/lib/elk.bundled.js');
let data = '';
process.stdin.setEncoding('utf8');
process.stdin.on('data', (chunk) => { data += chunk; });
process.stdin.on('end', () => {
  new ELK().layout(JSON.parse(data))
    .then((g) => process.stdout.write(JSON.stringify(g)))
    .catch((err) => { process.stderr.write(String(err)); process.exit(1); });
});
"""


class ElkjsOracle:
    """Run elkjs under Node.js, one process per layout call.

    Requires ``node`` on PATH and the ``elkjs`` package resolvable from
    *module_path* (exported as ``NODE_PATH``). There is no timeout unless
    one is given.
    """

    def __init__(
        self,
        node_binary: str = "node",
        module_path: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.node_binary = node_binary
        self.module_path = module_path
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.node_binary) is not None

    def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        env = dict(os.environ)
        if self.module_path:
            env["NODE_PATH"] = self.module_path
        try:
            proc = subprocess.run(
                [self.node_binary, "-e", _ELKJS_SCRIPT],
                input=json.dumps(graph),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
                env=env,
            )
        except FileNotFoundError as exc:
            raise OracleError(f"Node.js executable '{self.node_binary}' not found.") from exc
        except subprocess.TimeoutExpired as exc:
            raise OracleError(f"elkjs did not finish within {self.timeout}s.") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit code {exc.returncode}"
            raise OracleError(f"elkjs layout failed: {detail}") from exc

        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            raise OracleError("elkjs returned invalid JSON.") from exc
