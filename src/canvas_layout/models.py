"""
Core model classes for JSON Canvas documents.

Provides a typed API over the ``.canvas`` JSON layout (``nodes[]`` and
``edges[]``) together with the geometry helpers and derived structures the
layout pipeline works on.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(Enum):
    """Attachment side of an edge endpoint."""
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


class Direction(Enum):
    """Layout direction (the way edges flow)."""
    RIGHT = "RIGHT"
    DOWN = "DOWN"
    LEFT = "LEFT"
    UP = "UP"

    @property
    def writing_mode(self) -> str:
        return _WRITING_MODES[self]

    @property
    def edge_sides(self) -> tuple[Side, Side]:
        """(source side, target side) for edges laid out in this direction."""
        return _EDGE_SIDES[self]

    @property
    def primary_axis(self) -> str:
        return "x" if self in (Direction.RIGHT, Direction.LEFT) else "y"

    @property
    def packs(self) -> bool:
        """Whether overlap resolution and component packing support this direction."""
        return self in (Direction.RIGHT, Direction.DOWN)


_WRITING_MODES = {
    Direction.RIGHT: "LR",
    Direction.DOWN: "TB",
    Direction.LEFT: "RL",
    Direction.UP: "BT",
}

_EDGE_SIDES = {
    Direction.RIGHT: (Side.RIGHT, Side.LEFT),
    Direction.DOWN: (Side.BOTTOM, Side.TOP),
    Direction.LEFT: (Side.LEFT, Side.RIGHT),
    Direction.UP: (Side.TOP, Side.BOTTOM),
}

GROUP_TYPE = "group"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass
class NodeBounds:
    """Axis-aligned bounding box for a node."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + max(self.width, 0)

    @property
    def bottom(self) -> float:
        return self.y + max(self.height, 0)

    @property
    def area(self) -> float:
        return max(self.width, 0) * max(self.height, 0)

    def contains(self, other: NodeBounds) -> bool:
        """Check if *other* lies fully inside this box (boundaries inclusive).

        Negative sizes are clamped to zero on both sides.
        """
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersects(self, other: NodeBounds, margin: float = 0) -> bool:
        """Check if two bounding boxes overlap (with optional margin)."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

_NODE_KEYS = ("id", "type", "x", "y", "width", "height")
_EDGE_KEYS = ("id", "fromNode", "toNode", "fromSide", "toSide", "label")


@dataclass
class CanvasNode:
    """A canvas node — text, file, link, group or any other kind."""
    id: str
    type: str = "text"
    x: float = 0
    y: float = 0
    width: float = 250
    height: float = 60
    # Every other JSON Canvas attribute (text, file, url, label, color, ...)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return self.type == GROUP_TYPE

    @property
    def bounds(self) -> NodeBounds:
        return NodeBounds(self.x, self.y, self.width, self.height)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanvasNode:
        return cls(
            id=str(data["id"]),
            type=data.get("type", "text"),
            x=data.get("x", 0),
            y=data.get("y", 0),
            width=data.get("width", 0),
            height=data.get("height", 0),
            extra={k: v for k, v in data.items() if k not in _NODE_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }
        out.update(self.extra)
        return out


@dataclass
class CanvasEdge:
    """A directed connection between two canvas nodes."""
    id: str
    from_node: str
    to_node: str
    from_side: Optional[Side] = None
    to_side: Optional[Side] = None
    label: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanvasEdge:
        from_side = data.get("fromSide")
        to_side = data.get("toSide")
        return cls(
            id=str(data["id"]),
            from_node=str(data["fromNode"]),
            to_node=str(data["toNode"]),
            from_side=Side(from_side) if from_side else None,
            to_side=Side(to_side) if to_side else None,
            label=data.get("label"),
            extra={k: v for k, v in data.items() if k not in _EDGE_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "fromNode": self.from_node,
            "toNode": self.to_node,
        }
        if self.from_side:
            out["fromSide"] = self.from_side.value
        if self.to_side:
            out["toSide"] = self.to_side.value
        if self.label is not None:
            out["label"] = self.label
        out.update(self.extra)
        return out


@dataclass
class CanvasDoc:
    """A parsed ``.canvas`` document: an unordered set of nodes and edges."""
    nodes: list[CanvasNode] = field(default_factory=list)
    edges: list[CanvasEdge] = field(default_factory=list)

    def node_map(self) -> dict[str, CanvasNode]:
        return {n.id: n for n in self.nodes}

    def groups(self) -> list[CanvasNode]:
        return [n for n in self.nodes if n.is_group]

    def plain_nodes(self) -> list[CanvasNode]:
        return [n for n in self.nodes if not n.is_group]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanvasDoc:
        return cls(
            nodes=[CanvasNode.from_dict(n) for n in data.get("nodes") or []],
            edges=[CanvasEdge.from_dict(e) for e in data.get("edges") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_json(cls, text: str) -> CanvasDoc:
        return cls.from_dict(json.loads(text))

    def to_json(self, pretty: bool = True) -> str:
        return json.dumps(self.to_dict(), indent=2 if pretty else None)


# ---------------------------------------------------------------------------
# Derived structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GroupSnapshot:
    """Group membership and nesting captured from pre-layout geometry."""
    child_nodes: dict[str, list[str]]   # group id -> plain node ids
    child_groups: dict[str, list[str]]  # group id -> group ids
    depth: dict[str, int]               # group id -> nesting depth (0 = top)
    parent: dict[str, Optional[str]]    # group id -> smallest containing group


@dataclass
class Rect:
    """Working rectangle used while resolving overlaps and packing."""
    id: str
    x: float
    y: float
    w: float
    h: float
    comp: int = -1

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h
