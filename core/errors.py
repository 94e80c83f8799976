"""
Error types shared by the matrix, vector and I/O layers.

Both derive from ValueError so callers that only guard against bad input keep working.
"""

from __future__ import annotations


class MalformedInput(ValueError):
    """Invalid CRS layout, array lengths or unparseable input data."""


class DimensionMismatch(ValueError):
    """Operands of a vector/matrix operation have incompatible lengths."""

    def __init__(self, op: str, expected: int, got: int) -> None:
        self.op = op
        self.expected = int(expected)
        self.got = int(got)
        super().__init__(f"{op}: length mismatch (expected {self.expected}, got {self.got})")
