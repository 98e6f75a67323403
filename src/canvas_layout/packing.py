"""
Overlap resolution between groups and packing of connected components.

Both passes work along the primary axis of the layout direction (x for
RIGHT, y for DOWN) and only ever move things forward along it.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from canvas_layout.models import CanvasDoc, Direction, Rect

logger = logging.getLogger(__name__)


def _check_direction(direction: Direction) -> None:
    if not direction.packs:
        raise ValueError(f"Direction {direction.value} is not supported for packing.")


# ---------------------------------------------------------------------------
# Group overlap resolution
# ---------------------------------------------------------------------------

def collect_group_rects(doc: CanvasDoc, comp: dict[str, int]) -> list[Rect]:
    """One working rectangle per group, tagged with its component id."""
    return [
        Rect(id=g.id, x=g.x, y=g.y, w=g.width, h=g.height, comp=comp.get(g.id, -1))
        for g in doc.groups()
    ]


def rects_overlap(a: Rect, b: Rect, gap: float = 16) -> bool:
    """True if *a* and *b* are closer than *gap* on both axes."""
    return not (
        a.right + gap <= b.x
        or b.right + gap <= a.x
        or a.bottom + gap <= b.y
        or b.bottom + gap <= a.y
    )


def resolve_group_overlaps(
    doc: CanvasDoc,
    comp: dict[str, int],
    direction: Direction,
    gap: float = 24,
    iterations: int = 4,
) -> int:
    """Push overlapping groups apart within each component.

    Each iteration sorts a component's groups by their leading edge and, for
    every adjacent pair that overlaps, moves the later group forward just
    far enough to clear the earlier one plus *gap*. A group lying inside
    another counts as overlapping and is pushed out too. This is a
    forward-only sweep with a fixed budget; some overlap can survive it.

    Returns:
        Number of shifts applied.
    """
    _check_direction(direction)
    rects = collect_group_rects(doc, comp)
    if not rects:
        return 0

    horizontal = direction.primary_axis == "x"
    by_comp: dict[int, list[Rect]] = defaultdict(list)
    for r in rects:
        by_comp[r.comp].append(r)

    shifts = 0
    for members in by_comp.values():
        for _ in range(iterations):
            members.sort(key=lambda r: r.x if horizontal else r.y)
            for prev, cur in zip(members, members[1:]):
                if not rects_overlap(prev, cur, gap):
                    continue
                if horizontal:
                    cur.x += prev.right + gap - cur.x
                else:
                    cur.y += prev.bottom + gap - cur.y
                shifts += 1

    by_id = {r.id: r for r in rects}
    for g in doc.groups():
        r = by_id[g.id]
        g.x = round(r.x)
        g.y = round(r.y)
        g.width = round(r.w)
        g.height = round(r.h)

    logger.debug("Applied %d group shift(s) across %d component(s)", shifts, len(by_comp))
    return shifts


def find_group_overlaps(doc: CanvasDoc, gap: float = 0) -> list[tuple[str, str]]:
    """All pairs of groups whose rectangles overlap (closer than *gap*)."""
    groups = doc.groups()
    overlaps: list[tuple[str, str]] = []
    for i in range(len(groups)):
        for j in range(i + 1, len(groups)):
            a, b = groups[i], groups[j]
            if a.bounds.intersects(b.bounds, gap):
                overlaps.append((a.id, b.id))
    return overlaps


# ---------------------------------------------------------------------------
# Component packing
# ---------------------------------------------------------------------------

def component_bounds(doc: CanvasDoc, comp: dict[str, int]) -> dict[int, Rect]:
    """Combined bounding box of every component, over plain nodes and groups."""
    boxes: dict[int, list[float]] = {}
    for n in doc.nodes:
        k = comp.get(n.id, -1)
        right, bottom = n.x + n.width, n.y + n.height
        box = boxes.get(k)
        if box is None:
            boxes[k] = [n.x, n.y, right, bottom]
            continue
        box[0] = min(box[0], n.x)
        box[1] = min(box[1], n.y)
        box[2] = max(box[2], right)
        box[3] = max(box[3], bottom)
    return {
        k: Rect(id=str(k), x=x0, y=y0, w=x1 - x0, h=y1 - y0, comp=k)
        for k, (x0, y0, x1, y1) in boxes.items()
    }


def pack_components(
    doc: CanvasDoc,
    comp: dict[str, int],
    direction: Direction,
    gap: float = 180,
) -> dict[int, float]:
    """Chain components along the primary axis, *gap* apart.

    The component with the smallest leading edge stays put. Each following
    one is translated so its leading edge sits *gap* past the trailing edge
    of the previous one. All members of a component move together.

    Returns:
        Mapping of component id -> translation applied on the primary axis.
    """
    _check_direction(direction)
    horizontal = direction.primary_axis == "x"
    comps = sorted(
        component_bounds(doc, comp).values(),
        key=lambda r: r.x if horizontal else r.y,
    )
    if len(comps) <= 1:
        return {}

    offsets: dict[int, float] = {}
    cursor = comps[0].x if horizontal else comps[0].y
    for i, c in enumerate(comps):
        lead = c.x if horizontal else c.y
        target = lead if i == 0 else cursor + gap
        offsets[c.comp] = target - lead
        cursor = target + (c.w if horizontal else c.h)

    for n in doc.nodes:
        delta = offsets.get(comp.get(n.id, -1), 0)
        if not delta:
            continue
        if horizontal:
            n.x += delta
        else:
            n.y += delta

    logger.debug("Packed %d component(s) with gap %s", len(comps), gap)
    return offsets
