"""
Plain-text readers for the CRS case files.

Each file holds whitespace-separated numbers (one per line in practice). The
dimensions file holds two integers: rows cols.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np

from core.errors import MalformedInput
from core.types import CaseInputs, CRSCaseData


def read_vector_file(path: str | Path, dtype=np.float64) -> np.ndarray:
    """Read all numbers in ``path`` into a 1D array of ``dtype``.

    Unreadable files raise OSError (FileNotFoundError, IsADirectoryError, ...);
    undecodable bytes and bad tokens raise MalformedInput.
    """
    path = Path(path)
    try:
        tokens = path.read_text(encoding="utf-8").split()
    except UnicodeDecodeError as exc:
        raise MalformedInput(f"{path}: not valid UTF-8 text ({exc.reason} at byte {exc.start})") from exc
    try:
        raw = np.array([float(tok) for tok in tokens], dtype=np.float64)
    except ValueError as exc:
        raise MalformedInput(f"{path}: unparseable number ({exc})") from exc

    if np.dtype(dtype).kind in "iu":
        if not np.all(np.isfinite(raw)) or np.any(raw != np.round(raw)):
            raise MalformedInput(f"{path}: expected integers")
    return raw.astype(dtype)


def read_dimensions(path: str | Path) -> Tuple[int, int]:
    dims = read_vector_file(path, dtype=np.int64)
    if dims.size < 2:
        raise MalformedInput(f"{path}: expected 'rows cols', got {dims.size} value(s)")
    return int(dims[0]), int(dims[1])


def read_crs_case(input_dir: str | Path, inputs: CaseInputs | None = None) -> CRSCaseData:
    """Read dimensions, values, column indices, row pointers and rhs from ``input_dir``."""
    base = Path(input_dir)
    inputs = inputs or CaseInputs()

    rows, cols = read_dimensions(base / inputs.dimensions)
    return CRSCaseData(
        rows=rows,
        cols=cols,
        values=read_vector_file(base / inputs.values, dtype=np.float64),
        column_indices=read_vector_file(base / inputs.column_indices, dtype=np.int64),
        row_pointers=read_vector_file(base / inputs.row_pointers, dtype=np.int64),
        rhs=read_vector_file(base / inputs.rhs, dtype=np.float64),
    )
