"""
Errors raised by the canvas layout pipeline.

Only two conditions abort a layout run: an empty document and a failing
layout oracle. Both are raised before any node has been moved.
"""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for errors that abort a layout run."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmptyDocumentError(LayoutError):
    """Raised when the canvas has no nodes to lay out."""

    def __init__(self, message: str = "Canvas is empty.") -> None:
        super().__init__(message)


class OracleError(LayoutError):
    """Raised when the layout oracle fails or returns malformed data."""
