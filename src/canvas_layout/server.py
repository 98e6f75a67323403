"""
Canvas Layout MCP Server — tidy JSON Canvas (.canvas) diagrams via Model Context Protocol.

Exposes 3 tools that let an LLM agent load a canvas, lay it out as a clean
directed diagram and write it back.

Tools:
  1. canvas   — lifecycle: load, save, import_json, get_json, list
  2. layout   — positioning: right, down, left, up
  3. inspect  — read-only: groups, components, overlaps
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from canvas_layout.components import compute_components
from canvas_layout.errors import EmptyDocumentError, LayoutError
from canvas_layout.hierarchy import snapshot_groups
from canvas_layout.layout_engine import LayoutEngineConfig, layout_canvas, make_oracle
from canvas_layout.models import CanvasDoc, Direction
from canvas_layout.packing import find_group_overlaps
from canvas_layout.validation import (
    ValidationError,
    validate_action,
    validate_canvas_dict,
    validate_direction,
    validate_file_path,
    validate_int,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_oracle,
    _CANVAS_ACTIONS,
    _INSPECT_ACTIONS,
    _LAYOUT_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: suppress routine FastMCP INFO messages that editors show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("canvas-layout-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "canvas-layout-mcp",
    instructions=(
        "MCP server for laying out JSON Canvas (.canvas) diagrams.\n\n"
        "=== ONLY 3 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. canvas(action, ...) — lifecycle: load, save, import_json, get_json, list.\n"
        "2. layout(action, ...) — lay out a loaded canvas: right, down, left, up.\n"
        "3. inspect(action, ...) — read-only: groups, components, overlaps.\n\n"
        "=== NOTES ===\n"
        "- Groups keep the members they geometrically contained before layout.\n"
        "- Unconnected parts of the canvas are packed side by side (right)\n"
        "  or stacked (down) so they never overlap.\n"
        "- left/up lay out nodes and edges but do not pack components.\n"
    ),
)


@dataclass
class _CanvasEntry:
    doc: CanvasDoc
    file_path: Optional[str] = None


# In-memory canvas registry: name -> entry
# Guarded by _canvases_lock; layouts are serialised by _layout_lock.
_canvases: dict[str, _CanvasEntry] = {}
_canvases_lock = threading.Lock()
_layout_lock = threading.Lock()


def _register(name: str, data: Any, file_path: Optional[str] = None) -> CanvasDoc:
    validate_canvas_dict(data)
    doc = CanvasDoc.from_dict(data)
    with _canvases_lock:
        _canvases[name] = _CanvasEntry(doc=doc, file_path=file_path)
    return doc


def _loaded_message(name: str, doc: CanvasDoc) -> str:
    return (f"Loaded '{name}' with {len(doc.nodes)} node(s) "
            f"({len(doc.groups())} group(s)) and {len(doc.edges)} edge(s).")


# ===================================================================
# TOOL 1: canvas (lifecycle)
# ===================================================================

@mcp.tool()
def canvas(
    action: str,
    name: str = "",
    file_path: str = "",
    json_content: str = "",
) -> str:
    """Canvas lifecycle management.

    Actions:
      load        — Load a .canvas file from disk. Params: name, file_path.
      save        — Save a canvas to a .canvas file. Params: name, file_path
                    (defaults to the path it was loaded from).
      import_json — Import canvas JSON from a string. Params: name, json_content.
      get_json    — Get the JSON of a canvas. Params: name.
      list        — List all in-memory canvases. No params needed.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "canvas", _CANVAS_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result: list[dict[str, Any]] = []
        for n, entry in _canvases.items():
            result.append({
                "name": n,
                "nodes": len(entry.doc.nodes),
                "groups": len(entry.doc.groups()),
                "edges": len(entry.doc.edges),
                "file_path": entry.file_path,
            })
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "load":
        try:
            file_path = validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        if not path.exists():
            return f"Error: file '{file_path}' not found."
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            doc = _register(name, data, str(path))
        except json.JSONDecodeError as exc:
            return f"Error: '{file_path}' is not valid JSON ({exc.msg})."
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return _loaded_message(name, doc)

    elif action == "import_json":
        try:
            validate_non_empty_string(json_content, "json_content")
            doc = _register(name, json.loads(json_content))
        except json.JSONDecodeError as exc:
            return f"Error: 'json_content' is not valid JSON ({exc.msg})."
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return _loaded_message(name, doc)

    entry = _canvases.get(name)
    if not entry:
        return f"Error: canvas '{name}' not found."

    if action == "save":
        target = file_path.strip() or entry.file_path
        if not target:
            return "Error: 'file_path' is required for canvases that were not loaded from disk."
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(entry.doc.to_json(), encoding="utf-8")
        entry.file_path = str(path)
        return f"Canvas saved to {path.resolve()}"

    # get_json
    return entry.doc.to_json()


# ===================================================================
# TOOL 2: layout (positioning)
# ===================================================================

@mcp.tool()
def layout(
    action: str,
    canvas_name: str = "",
    oracle: str = "layered",
    write_back: bool = False,
    node_spacing: float = 105,
    layer_spacing: float = 140,
    group_padding: float = 200,
    overlap_gap: float = 24,
    overlap_iterations: int = 4,
    component_gap: float = 180,
) -> str:
    """Lay out a loaded canvas as a directed diagram.

    Actions:
      right — Edges flow left to right; unconnected parts are packed side by side.
      down  — Edges flow top to bottom; unconnected parts are stacked.
      left  — Edges flow right to left (no packing).
      up    — Edges flow bottom to top (no packing).

    Args:
        action: Direction to lay out in.
        canvas_name: Name of a loaded canvas.
        oracle: Layered layout backend — 'layered' (built in) or 'elkjs'
                (needs Node.js with the elkjs package).
        write_back: Save the canvas to the file it was loaded from afterwards.
        node_spacing: Space between nodes in the same layer.
        layer_spacing: Space between layers.
        group_padding: Padding between a group and its members.
        overlap_gap: Minimum gap between groups of the same component.
        overlap_iterations: Sweeps spent pushing overlapping groups apart.
        component_gap: Gap between unconnected parts of the canvas.

    Returns:
        JSON layout report, or an error message.
    """
    try:
        action = validate_action(action, "layout", _LAYOUT_ACTIONS)
        direction = Direction(validate_direction(action))
        canvas_name = validate_non_empty_string(canvas_name, "canvas_name")
        oracle = validate_oracle(oracle)
        config = LayoutEngineConfig(
            node_spacing=validate_non_negative_number(node_spacing, "node_spacing"),
            layer_spacing=validate_non_negative_number(layer_spacing, "layer_spacing"),
            group_padding=validate_non_negative_number(group_padding, "group_padding"),
            overlap_gap=validate_non_negative_number(overlap_gap, "overlap_gap"),
            overlap_iterations=validate_int(overlap_iterations, "overlap_iterations", min_val=0),
            component_gap=validate_non_negative_number(component_gap, "component_gap"),
        )
    except ValidationError as exc:
        return f"Error: {exc.message}"

    entry = _canvases.get(canvas_name)
    if not entry:
        return f"Error: canvas '{canvas_name}' not found."

    with _layout_lock:
        try:
            report = layout_canvas(entry.doc, direction, make_oracle(oracle), config)
        except LayoutError as exc:
            logger.warning("Layout of '%s' failed: %s", canvas_name, exc.message)
            if isinstance(exc, EmptyDocumentError):
                return exc.message
            return f"Error: {exc.message}"

    result = report.to_dict()
    if write_back:
        if entry.file_path:
            Path(entry.file_path).write_text(entry.doc.to_json(), encoding="utf-8")
            result["saved_to"] = entry.file_path
        else:
            result["saved_to"] = None
            result["note"] = (
                "Canvas was not loaded from disk; use canvas(action='save', "
                "file_path=...) to write it."
            )
    return json.dumps(result, indent=2)


# ===================================================================
# TOOL 3: inspect (read-only queries)
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    canvas_name: str = "",
) -> str:
    """Read-only queries on a loaded canvas.

    Actions:
      groups     — Group membership and nesting depth from current geometry.
      components — Connected component of every node.
      overlaps   — Pairs of groups whose rectangles overlap.

    Returns:
        JSON result or error message.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        canvas_name = validate_non_empty_string(canvas_name, "canvas_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    entry = _canvases.get(canvas_name)
    if not entry:
        return f"Error: canvas '{canvas_name}' not found."
    doc = entry.doc

    if action == "groups":
        snap = snapshot_groups(doc)
        return json.dumps([
            {
                "id": gid,
                "depth": snap.depth[gid],
                "parent": snap.parent[gid],
                "nodes": snap.child_nodes[gid],
                "groups": snap.child_groups[gid],
            }
            for gid in snap.depth
        ], indent=2)

    elif action == "components":
        return json.dumps(compute_components(doc), indent=2)

    # overlaps
    return json.dumps([list(pair) for pair in find_group_overlaps(doc)], indent=2)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
