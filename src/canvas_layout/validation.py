"""
Input validation for canvas layout MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from LLM callers, and a structural check for JSON
Canvas documents before they are parsed.
"""

from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate a number >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_file_path(value: Any, field_name: str) -> str:
    """Validate that a file path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty file path string.")
    return value.strip()


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_VALID_DIRECTIONS = {"RIGHT", "DOWN", "LEFT", "UP"}
_VALID_ORACLES = {"LAYERED", "ELKJS"}
_VALID_SIDES = {"left", "right", "top", "bottom"}

_CANVAS_ACTIONS = {"LOAD", "SAVE", "IMPORT_JSON", "GET_JSON", "LIST"}
_LAYOUT_ACTIONS = {"RIGHT", "DOWN", "LEFT", "UP"}
_INSPECT_ACTIONS = {"GROUPS", "COMPONENTS", "OVERLAPS"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_direction(value: Any) -> str:
    """Validate a layout direction (RIGHT, DOWN, LEFT, UP)."""
    return validate_enum(value, "direction", _VALID_DIRECTIONS)


def validate_oracle(value: Any) -> str:
    """Validate a layout oracle name (layered, elkjs)."""
    return validate_enum(value, "oracle", _VALID_ORACLES).lower()


# ---------------------------------------------------------------------------
# Canvas document validators
# ---------------------------------------------------------------------------

def validate_node_dict(n: Any, index: int) -> None:
    """Validate a single node object from a canvas ``nodes`` list."""
    if not isinstance(n, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    if not isinstance(n.get("id"), str) or not n["id"]:
        raise ValidationError(f"Node at index {index} missing required string key 'id'.")
    for key in ("x", "y", "width", "height"):
        if key not in n:
            raise ValidationError(f"Node '{n['id']}' missing required key '{key}'.")
        if not isinstance(n[key], (int, float)) or isinstance(n[key], bool):
            raise ValidationError(f"Node '{n['id']}': '{key}' must be a number.")
    if "type" in n and not isinstance(n["type"], str):
        raise ValidationError(f"Node '{n['id']}': 'type' must be a string.")


def validate_edge_dict(e: Any, index: int) -> None:
    """Validate a single edge object from a canvas ``edges`` list."""
    if not isinstance(e, dict):
        raise ValidationError(f"Edge at index {index} must be a dict/object.")
    for key in ("id", "fromNode", "toNode"):
        if not isinstance(e.get(key), str) or not e[key]:
            raise ValidationError(f"Edge at index {index} missing required string key '{key}'.")
    for key in ("fromSide", "toSide"):
        if key in e and e[key] is not None and e[key] not in _VALID_SIDES:
            raise ValidationError(
                f"Edge '{e['id']}': '{key}' must be one of {sorted(_VALID_SIDES)}, got '{e[key]}'."
            )


def validate_canvas_dict(data: Any) -> dict:
    """Validate the structure of a parsed ``.canvas`` document."""
    if not isinstance(data, dict):
        raise ValidationError(
            f"Canvas must be a JSON object, got {type(data).__name__}."
        )
    nodes = data.get("nodes", [])
    edges = data.get("edges", [])
    if not isinstance(nodes, list):
        raise ValidationError("Canvas 'nodes' must be a list.")
    if not isinstance(edges, list):
        raise ValidationError("Canvas 'edges' must be a list.")

    seen: set[str] = set()
    for i, n in enumerate(nodes):
        validate_node_dict(n, i)
        if n["id"] in seen:
            raise ValidationError(f"Duplicate node id '{n['id']}'.")
        seen.add(n["id"])
    for i, e in enumerate(edges):
        validate_edge_dict(e, i)
    return data
