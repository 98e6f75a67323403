"""
Group hierarchy: snapshot membership from original geometry, then rebuild
group rectangles around their members after the plain nodes have moved.

Membership is frozen at snapshot time. Once the oracle has moved the plain
nodes, geometric containment no longer says anything useful, so groups are
resized from the snapshot alone.
"""

from __future__ import annotations

import logging
from typing import Optional

from canvas_layout.models import CanvasDoc, CanvasNode, GroupSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def _group_contains(outer: CanvasNode, inner: CanvasNode) -> bool:
    """Strict group-in-group containment.

    Two groups with identical rectangles contain each other geometrically;
    the one with the smaller id is then taken as the outer group.
    """
    if outer.id == inner.id:
        return False
    if not outer.bounds.contains(inner.bounds):
        return False
    if inner.bounds.contains(outer.bounds):
        return outer.id < inner.id
    return True


def snapshot_groups(doc: CanvasDoc) -> GroupSnapshot:
    """Capture which nodes and groups each group contains, and group depths.

    The parent of a group is the containing group with the smallest area
    (equal areas resolved towards the greatest id). Depth is 0 for top-level
    groups and parent depth + 1 otherwise.
    """
    groups = doc.groups()
    plain = doc.plain_nodes()

    child_nodes: dict[str, list[str]] = {g.id: [] for g in groups}
    child_groups: dict[str, list[str]] = {g.id: [] for g in groups}

    for g in groups:
        gb = g.bounds
        for n in plain:
            if gb.contains(n.bounds):
                child_nodes[g.id].append(n.id)
        for h in groups:
            if _group_contains(g, h):
                child_groups[g.id].append(h.id)

    parent: dict[str, Optional[str]] = {}
    for g in groups:
        best: Optional[CanvasNode] = None
        for p in groups:
            if not _group_contains(p, g):
                continue
            if best is None:
                best = p
                continue
            p_area, best_area = p.bounds.area, best.bounds.area
            if p_area < best_area or (p_area == best_area and p.id > best.id):
                best = p
        parent[g.id] = best.id if best else None

    depth: dict[str, int] = {}

    def depth_of(gid: str) -> int:
        if gid in depth:
            return depth[gid]
        p = parent[gid]
        d = depth_of(p) + 1 if p else 0
        depth[gid] = d
        return d

    for g in groups:
        depth_of(g.id)

    logger.debug("Snapshotted %d group(s), max depth %d",
                 len(groups), max(depth.values(), default=-1))
    return GroupSnapshot(
        child_nodes=child_nodes,
        child_groups=child_groups,
        depth=depth,
        parent=parent,
    )


# ---------------------------------------------------------------------------
# Bounds reconstruction
# ---------------------------------------------------------------------------

def resize_group(
    nodes: dict[str, CanvasNode],
    snap: GroupSnapshot,
    group_id: str,
    pad: float = 200,
    min_w: float = 120,
    min_h: float = 60,
) -> bool:
    """Fit one group around the current rectangles of its snapshot members.

    Returns False (group untouched) when the group has no members left.
    """
    group = nodes.get(group_id)
    if group is None:
        return False

    members = snap.child_nodes.get(group_id, []) + snap.child_groups.get(group_id, [])
    rects = [nodes[m].bounds for m in members if m in nodes]
    if not rects:
        return False

    min_x = min(r.x for r in rects) - pad
    min_y = min(r.y for r in rects) - pad
    max_x = max(r.right for r in rects) + pad
    max_y = max(r.bottom for r in rects) + pad

    group.x = round(min_x)
    group.y = round(min_y)
    group.width = max(min_w, round(max_x - min_x))
    group.height = max(min_h, round(max_y - min_y))
    return True


def resize_groups_from_snapshot(
    doc: CanvasDoc,
    snap: GroupSnapshot,
    pad: float = 200,
    min_w: float = 120,
    min_h: float = 60,
) -> int:
    """Recompute every group rectangle, deepest groups first.

    Child groups are resized before the groups that contain them, so a
    parent always wraps the already-updated rectangles of its children.

    Returns:
        Number of groups resized.
    """
    nodes = doc.node_map()
    order = sorted(snap.depth, key=lambda gid: snap.depth[gid], reverse=True)

    resized = 0
    for gid in order:
        if resize_group(nodes, snap, gid, pad, min_w, min_h):
            resized += 1
    logger.debug("Resized %d of %d group(s)", resized, len(order))
    return resized
