"""
Layout pipeline for canvas documents.

Runs, in order:
1. Group hierarchy snapshot (original geometry)
2. Layered layout of plain nodes through the oracle, rebased to a positive origin
3. Group bounds reconstruction, deepest groups first
4. Connected components
5. Group overlap resolution within each component
6. Component packing along the primary axis
7. Edge anchor sides

Stages 4-6 run for RIGHT and DOWN only.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from canvas_layout.components import compute_components
from canvas_layout.errors import EmptyDocumentError
from canvas_layout.hierarchy import resize_groups_from_snapshot, snapshot_groups
from canvas_layout.models import CanvasDoc, Direction
from canvas_layout.oracle import (
    ElkjsOracle,
    LayeredOracle,
    LayoutOracle,
    apply_oracle_layout,
)
from canvas_layout.packing import pack_components, resolve_group_overlaps

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class LayoutEngineConfig:
    """Configuration for the canvas layout pipeline."""
    # Oracle input
    min_node_size: float = 10        # Floor for node width/height sent to the oracle
    node_spacing: float = 105        # Space between nodes in the same layer
    layer_spacing: float = 140       # Space between layers

    # Rebase
    origin_offset: float = 100       # Top-left corner of the laid-out nodes

    # Groups
    group_padding: float = 200
    group_min_width: float = 120
    group_min_height: float = 60

    # Overlaps / packing
    overlap_gap: float = 24
    overlap_iterations: int = 4
    component_gap: float = 180


@dataclass
class LayoutReport:
    """Summary of one layout run."""
    direction: str
    nodes_moved: int = 0
    groups_resized: int = 0
    overlap_shifts: int = 0
    components: int = 0
    component_offsets: dict[int, float] = field(default_factory=dict)
    edges_anchored: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ORACLES = ("layered", "elkjs")


def make_oracle(name: str = "layered") -> LayoutOracle:
    """Build a layout oracle by name (``layered`` or ``elkjs``)."""
    key = name.strip().lower()
    if key == "layered":
        return LayeredOracle()
    if key == "elkjs":
        return ElkjsOracle()
    raise ValueError(f"Unknown layout oracle '{name}'. Use one of: {', '.join(ORACLES)}.")


# ---------------------------------------------------------------------------
# Edge anchors
# ---------------------------------------------------------------------------

def set_edge_anchors(doc: CanvasDoc, direction: Direction) -> int:
    """Attach every edge on the sides implied by *direction*.

    Edges whose endpoints are not both in the document are left alone.

    Returns:
        Number of edges updated.
    """
    from_side, to_side = direction.edge_sides
    ids = {n.id for n in doc.nodes}
    count = 0
    for e in doc.edges:
        if e.from_node not in ids or e.to_node not in ids:
            continue
        e.from_side = from_side
        e.to_side = to_side
        count += 1
    return count


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def layout_canvas(
    doc: CanvasDoc,
    direction: Direction,
    oracle: LayoutOracle | None = None,
    config: LayoutEngineConfig | None = None,
) -> LayoutReport:
    """Lay out *doc* in place in the given direction.

    The document is only modified once the oracle has returned; an empty
    document or an oracle failure leaves it untouched.

    Args:
        doc: Canvas document, mutated in place.
        direction: Layout direction.
        oracle: Layout oracle; defaults to ``LayeredOracle``.
        config: Pipeline constants.

    Returns:
        A ``LayoutReport`` describing what changed.

    Raises:
        EmptyDocumentError: if the document has no nodes.
        OracleError: if the layout oracle fails.
    """
    cfg = config or LayoutEngineConfig()
    if not doc.nodes:
        raise EmptyDocumentError()
    oracle = oracle or LayeredOracle()
    report = LayoutReport(direction=direction.value)

    snap = snapshot_groups(doc)

    report.nodes_moved = apply_oracle_layout(
        doc, direction, oracle,
        min_size=cfg.min_node_size,
        origin_offset=cfg.origin_offset,
        node_spacing=cfg.node_spacing,
        layer_spacing=cfg.layer_spacing,
    )

    report.groups_resized = resize_groups_from_snapshot(
        doc, snap,
        pad=cfg.group_padding,
        min_w=cfg.group_min_width,
        min_h=cfg.group_min_height,
    )

    if direction.packs:
        comp = compute_components(doc)
        report.overlap_shifts = resolve_group_overlaps(
            doc, comp, direction,
            gap=cfg.overlap_gap,
            iterations=cfg.overlap_iterations,
        )
        # Groups may have left their members behind; regroup before packing.
        comp = compute_components(doc)
        report.components = len(set(comp.values()))
        report.component_offsets = pack_components(
            doc, comp, direction, gap=cfg.component_gap,
        )
    else:
        logger.info("Skipping overlap resolution and packing for direction %s",
                    direction.value)

    report.edges_anchored = set_edge_anchors(doc, direction)

    logger.debug("Layout %s finished: %s", direction.value, report)
    return report
