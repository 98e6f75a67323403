"""Tests for input validation of tool parameters and canvas documents."""

import pytest

from canvas_layout.validation import (
    ValidationError,
    validate_action,
    validate_canvas_dict,
    validate_direction,
    validate_edge_dict,
    validate_enum,
    validate_file_path,
    validate_int,
    validate_node_dict,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_oracle,
    _LAYOUT_ACTIONS,
)


# ===================================================================
# Primitive validators
# ===================================================================

class TestPrimitives:
    def test_non_empty_string(self) -> None:
        assert validate_non_empty_string("  abc ", "f") == "abc"
        with pytest.raises(ValidationError, match="'f' must be a non-empty string"):
            validate_non_empty_string("   ", "f")
        with pytest.raises(ValidationError):
            validate_non_empty_string(3, "f")

    def test_number(self) -> None:
        assert validate_number(3, "n") == 3.0
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number("3", "n")
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number(True, "n")
        with pytest.raises(ValidationError, match=">= 1"):
            validate_number(0, "n", min_val=1)
        with pytest.raises(ValidationError, match="<= 1"):
            validate_number(2, "n", max_val=1)

    def test_non_negative_number(self) -> None:
        assert validate_non_negative_number(0, "gap") == 0
        with pytest.raises(ValidationError):
            validate_non_negative_number(-1, "gap")

    def test_int(self) -> None:
        assert validate_int(4, "i", min_val=0) == 4
        with pytest.raises(ValidationError, match="must be an integer"):
            validate_int(4.0, "i")
        with pytest.raises(ValidationError, match="must be an integer"):
            validate_int(False, "i")
        with pytest.raises(ValidationError):
            validate_int(-1, "i", min_val=0)

    def test_enum(self) -> None:
        assert validate_enum("right", "d", {"RIGHT", "DOWN"}) == "RIGHT"
        with pytest.raises(ValidationError, match="must be one of"):
            validate_enum("sideways", "d", {"RIGHT", "DOWN"})

    def test_file_path(self) -> None:
        assert validate_file_path(" /tmp/a.canvas ", "file_path") == "/tmp/a.canvas"
        with pytest.raises(ValidationError):
            validate_file_path("", "file_path")


# ===================================================================
# Domain validators
# ===================================================================

class TestDomain:
    def test_action(self) -> None:
        assert validate_action(" RIGHT ", "layout", _LAYOUT_ACTIONS) == "right"
        with pytest.raises(ValidationError, match="requires an 'action'"):
            validate_action("", "layout", _LAYOUT_ACTIONS)
        with pytest.raises(ValidationError, match="Unknown layout action 'diagonal'"):
            validate_action("diagonal", "layout", _LAYOUT_ACTIONS)

    def test_direction(self) -> None:
        assert validate_direction("down") == "DOWN"
        with pytest.raises(ValidationError):
            validate_direction("TB")

    def test_oracle(self) -> None:
        assert validate_oracle("ElkJS") == "elkjs"
        assert validate_oracle("layered") == "layered"
        with pytest.raises(ValidationError):
            validate_oracle("dot")


# ===================================================================
# Canvas validators
# ===================================================================

def _canvas() -> dict:
    return {
        "nodes": [
            {"id": "a", "type": "text", "x": 0, "y": 0, "width": 10, "height": 10},
            {"id": "g", "type": "group", "x": 0, "y": 0, "width": 10, "height": 10},
        ],
        "edges": [{"id": "e", "fromNode": "a", "toNode": "g", "fromSide": "right"}],
    }


class TestCanvas:
    def test_valid(self) -> None:
        data = _canvas()
        assert validate_canvas_dict(data) is data

    def test_empty_object_is_valid(self) -> None:
        assert validate_canvas_dict({}) == {}

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError, match="must be a JSON object"):
            validate_canvas_dict([])

    def test_nodes_not_list(self) -> None:
        with pytest.raises(ValidationError, match="'nodes' must be a list"):
            validate_canvas_dict({"nodes": {}})

    def test_duplicate_ids(self) -> None:
        data = _canvas()
        data["nodes"][1]["id"] = "a"
        with pytest.raises(ValidationError, match="Duplicate node id 'a'"):
            validate_canvas_dict(data)

    def test_node_missing_geometry(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'width'"):
            validate_node_dict({"id": "a", "x": 0, "y": 0, "height": 1}, 0)

    def test_node_non_numeric(self) -> None:
        with pytest.raises(ValidationError, match="'x' must be a number"):
            validate_node_dict({"id": "a", "x": "0", "y": 0, "width": 1, "height": 1}, 0)

    def test_node_without_id(self) -> None:
        with pytest.raises(ValidationError, match="index 3"):
            validate_node_dict({"x": 0}, 3)

    def test_edge_missing_endpoint(self) -> None:
        with pytest.raises(ValidationError, match="'toNode'"):
            validate_edge_dict({"id": "e", "fromNode": "a"}, 0)

    def test_edge_bad_side(self) -> None:
        with pytest.raises(ValidationError, match="'toSide'"):
            validate_edge_dict({"id": "e", "fromNode": "a", "toNode": "b", "toSide": "north"}, 0)
