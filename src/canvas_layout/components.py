"""
Connected components of a canvas.

Plain nodes are partitioned by edge adjacency with a union-find over their
enumeration indices. Groups are then attached to the component holding most
of the plain nodes they currently contain.
"""

from __future__ import annotations

import logging
from collections import Counter

from canvas_layout.models import CanvasDoc

logger = logging.getLogger(__name__)


class UnionFind:
    """Disjoint sets over the indices ``0..size-1``."""

    def __init__(self, size: int) -> None:
        self.parent: list[int] = list(range(size))

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, i: int, j: int) -> None:
        """Merge the sets of *i* and *j*; *i*'s root becomes the new root."""
        ri, rj = self.find(i), self.find(j)
        if ri != rj:
            self.parent[rj] = ri


def compute_components(doc: CanvasDoc) -> dict[str, int]:
    """Map every node id (plain or group) to a component id.

    Plain-node components are numbered densely from 0 in order of first
    appearance. Each group takes the component held by the plurality of the
    plain nodes inside its current rectangle (ties go to the component seen
    first), or a fresh id of its own when it contains none.
    """
    plain = doc.plain_nodes()
    index = {n.id: i for i, n in enumerate(plain)}
    uf = UnionFind(len(plain))

    for e in doc.edges:
        a, b = index.get(e.from_node), index.get(e.to_node)
        if a is not None and b is not None:
            uf.union(a, b)

    renumber: dict[int, int] = {}
    comp: dict[str, int] = {}
    for n in plain:
        root = uf.find(index[n.id])
        if root not in renumber:
            renumber[root] = len(renumber)
        comp[n.id] = renumber[root]

    next_id = len(renumber)
    for g in doc.groups():
        gb = g.bounds
        inside = [comp[n.id] for n in plain if gb.contains(n.bounds)]
        if not inside:
            comp[g.id] = next_id
            next_id += 1
            continue
        comp[g.id] = Counter(inside).most_common(1)[0][0]

    logger.debug("Found %d component(s) over %d node(s)", next_id, len(doc.nodes))
    return comp
