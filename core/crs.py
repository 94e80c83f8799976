"""
Compressed-row-storage (CRS) sparse matrix.

Principles:
- A matrix is validated once at construction; invalid layouts raise MalformedInput and
  no object is returned.
- Column indices inside a row may be unsorted and repeated until compress() is called.
  compress() sorts each row by column and sums duplicate (row, col) entries, so a
  matrix built from unsorted triplets multiplies exactly like its pre-summed form.
- After compress() the index/value arrays are read-only.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from scipy import sparse

from .errors import DimensionMismatch, MalformedInput
from .vector import DenseVector, FloatArray

IntArray = np.ndarray


def _as_index_array(values: Sequence[int], name: str) -> IntArray:
    """Convert to a 1D int64 array; floats are accepted only if integral."""
    try:
        arr = np.asarray(values)
    except ValueError as exc:
        raise MalformedInput(f"{name}: cannot convert to array ({exc})") from exc
    if arr.ndim != 1:
        raise MalformedInput(f"{name} must be 1D, got shape {arr.shape}")
    if arr.size == 0:
        return np.zeros(0, dtype=np.int64)
    if arr.dtype.kind in "iu":
        return arr.astype(np.int64)
    if arr.dtype.kind == "f" and np.all(np.isfinite(arr)) and np.all(arr == np.round(arr)):
        return arr.astype(np.int64)
    raise MalformedInput(f"{name} must contain integers (dtype={arr.dtype})")


def _as_value_array(values: Sequence[float], name: str) -> FloatArray:
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedInput(f"{name}: cannot convert to float array ({exc})") from exc
    if arr.ndim != 1:
        raise MalformedInput(f"{name} must be 1D, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise MalformedInput(f"{name} contains non-finite entries")
    return arr.copy()


def _as_dim(value: int, name: str) -> int:
    if isinstance(value, (bool, np.bool_)):
        raise MalformedInput(f"{name} must be a positive integer, got {value!r}")
    try:
        dim = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInput(f"{name} must be a positive integer, got {value!r}") from exc
    if dim != value or dim <= 0:
        raise MalformedInput(f"{name} must be a positive integer, got {value!r}")
    return dim


class CRSMatrix:
    """Real sparse matrix in compressed-row storage."""

    def __init__(
        self,
        rows: int,
        cols: int,
        row_pointers: Sequence[int],
        column_indices: Sequence[int],
        values: Sequence[float],
    ) -> None:
        rows = _as_dim(rows, "rows")
        cols = _as_dim(cols, "cols")
        rp = _as_index_array(row_pointers, "row_pointers")
        ci = _as_index_array(column_indices, "column_indices")
        vals = _as_value_array(values, "values")

        if rp.size != rows + 1:
            raise MalformedInput(f"row_pointers length {rp.size} != rows + 1 = {rows + 1}")
        if rp[0] != 0:
            raise MalformedInput(f"row_pointers[0] must be 0, got {rp[0]}")
        if np.any(np.diff(rp) < 0):
            bad = int(np.flatnonzero(np.diff(rp) < 0)[0])
            raise MalformedInput(
                f"row_pointers must be non-decreasing (row_pointers[{bad}]={rp[bad]} > "
                f"row_pointers[{bad + 1}]={rp[bad + 1]})"
            )
        if rp[-1] != ci.size:
            raise MalformedInput(f"row_pointers[-1]={rp[-1]} != len(column_indices)={ci.size}")
        if vals.size != ci.size:
            raise MalformedInput(f"len(values)={vals.size} != len(column_indices)={ci.size}")
        if ci.size and (ci.min() < 0 or ci.max() >= cols):
            raise MalformedInput(
                f"column_indices out of range [0, {cols}): min={ci.min()}, max={ci.max()}"
            )

        self.rows = rows
        self.cols = cols
        self.row_pointers = rp
        self.column_indices = ci
        self.values = vals
        self._row_ids = np.repeat(np.arange(rows, dtype=np.int64), np.diff(rp))
        self._compressed = False

    # ------------------------------------------------------------ builders
    @classmethod
    def build(
        cls,
        rows: int,
        cols: int,
        row_pointers: Sequence[int],
        column_indices: Sequence[int],
        values: Sequence[float],
    ) -> "CRSMatrix":
        """Validate raw CRS arrays and build an (uncompressed) matrix."""
        return cls(rows, cols, row_pointers, column_indices, values)

    @classmethod
    def from_triplets(
        cls,
        rows: int,
        cols: int,
        row_indices: Sequence[int],
        column_indices: Sequence[int],
        values: Sequence[float],
    ) -> "CRSMatrix":
        """Coordinate (row, col, value) triplets -> CRS; duplicates are kept until compress()."""
        rows = _as_dim(rows, "rows")
        ri = _as_index_array(row_indices, "row_indices")
        ci = _as_index_array(column_indices, "column_indices")
        vals = _as_value_array(values, "values")
        if not (ri.size == ci.size == vals.size):
            raise MalformedInput(
                f"triplet lengths differ: rows={ri.size}, cols={ci.size}, values={vals.size}"
            )
        if ri.size and (ri.min() < 0 or ri.max() >= rows):
            raise MalformedInput(f"row_indices out of range [0, {rows}): min={ri.min()}, max={ri.max()}")

        order = np.argsort(ri, kind="stable")
        rp = np.zeros(rows + 1, dtype=np.int64)
        np.cumsum(np.bincount(ri, minlength=rows), out=rp[1:])
        return cls(rows, cols, rp, ci[order], vals[order])

    def to_triplets(self) -> Tuple[IntArray, IntArray, FloatArray]:
        """CRS -> coordinate triplets (row_indices, column_indices, values)."""
        return self._row_ids.copy(), self.column_indices.copy(), self.values.copy()

    # ------------------------------------------------------------ compress
    def compress(self) -> "CRSMatrix":
        """Sort each row by column and sum duplicate entries. Idempotent."""
        if self._compressed:
            return self

        order = np.lexsort((self.column_indices, self._row_ids))
        r = self._row_ids[order]
        c = self.column_indices[order]
        v = self.values[order]

        if v.size:
            new_entry = np.empty(v.size, dtype=bool)
            new_entry[0] = True
            new_entry[1:] = (r[1:] != r[:-1]) | (c[1:] != c[:-1])
            starts = np.flatnonzero(new_entry)
            v = np.add.reduceat(v, starts)
            r = r[starts]
            c = c[starts]

        rp = np.zeros(self.rows + 1, dtype=np.int64)
        np.cumsum(np.bincount(r, minlength=self.rows), out=rp[1:])

        for arr in (rp, c, v, r):
            arr.flags.writeable = False
        self.row_pointers = rp
        self.column_indices = c
        self.values = v
        self._row_ids = r
        self._compressed = True
        return self

    @property
    def is_compressed(self) -> bool:
        return self._compressed

    # -------------------------------------------------------------- shape
    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def nnz(self) -> int:
        return int(self.values.size)

    def __repr__(self) -> str:
        state = "compressed" if self._compressed else "uncompressed"
        return f"CRSMatrix(shape={self.shape}, nnz={self.nnz}, {state})"

    # ------------------------------------------------------------ products
    def multiply(self, x, out: DenseVector | None = None) -> DenseVector:
        """y = A @ x in O(nnz); rows without entries give 0."""
        if not isinstance(x, DenseVector):
            x = DenseVector(x)
        if len(x) != self.cols:
            raise DimensionMismatch("multiply", self.cols, len(x))

        prod = self.values * x.data[self.column_indices]
        y = np.bincount(self._row_ids, weights=prod, minlength=self.rows)

        if out is None:
            return DenseVector(y)
        if len(out) != self.rows:
            raise DimensionMismatch("multiply(out)", self.rows, len(out))
        out.data[:] = y
        return out

    def __matmul__(self, x) -> DenseVector:
        return self.multiply(x)

    # ---------------------------------------------------------- exporters
    def to_dense(self) -> FloatArray:
        """Dense copy (debugging / small tests only); duplicates are summed."""
        M = np.zeros((self.rows, self.cols), dtype=np.float64)
        np.add.at(M, (self._row_ids, self.column_indices), self.values)
        return M

    def to_scipy(self) -> sparse.csr_matrix:
        return sparse.csr_matrix(
            (np.array(self.values), np.array(self.column_indices), np.array(self.row_pointers)),
            shape=self.shape,
        )
