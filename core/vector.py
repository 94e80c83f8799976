"""
Dense float64 vector used for b, x and the BiCGSTAB work vectors.

Value operations (add/sub/scale) return new vectors; axpy/aypx/assign/fill work in
place so the solver can reuse its scratch buffers across iterations.
"""

from __future__ import annotations

import math
from typing import Iterable, Union

import numpy as np

from .errors import DimensionMismatch

FloatArray = np.ndarray


class DenseVector:
    """Fixed-length owned buffer of reals."""

    __slots__ = ("_data",)

    def __init__(self, values: Union[Iterable[float], FloatArray, "DenseVector"]) -> None:
        if isinstance(values, DenseVector):
            arr = values._data.copy()
        else:
            arr = np.array(values, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError(f"DenseVector expects a 1D sequence, got shape {arr.shape}")
        self._data = arr

    @classmethod
    def zeros(cls, n: int) -> "DenseVector":
        n = int(n)
        if n < 0:
            raise ValueError(f"Vector length must be non-negative, got {n}")
        return cls(np.zeros(n, dtype=np.float64))

    # ------------------------------------------------------------------ access
    def __len__(self) -> int:
        return int(self._data.size)

    def __getitem__(self, i):
        return self._data[i]

    def __iter__(self):
        return iter(self._data.tolist())

    def __repr__(self) -> str:
        return f"DenseVector({self._data.tolist()!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, DenseVector):
            return NotImplemented
        return len(self) == len(other) and bool(np.array_equal(self._data, other._data))

    __hash__ = None  # mutable

    @property
    def data(self) -> FloatArray:
        """Underlying array (shared, not a copy)."""
        return self._data

    def to_numpy(self) -> FloatArray:
        return self._data.copy()

    def tolist(self) -> list:
        return self._data.tolist()

    def copy(self) -> "DenseVector":
        return DenseVector(self._data.copy())

    # ------------------------------------------------------------------ checks
    def _check(self, other: "DenseVector", op: str) -> FloatArray:
        if not isinstance(other, DenseVector):
            other = DenseVector(other)
        if len(other) != len(self):
            raise DimensionMismatch(op, len(self), len(other))
        return other._data

    # ------------------------------------------------------------ value ops
    def add(self, other: "DenseVector") -> "DenseVector":
        return DenseVector(self._data + self._check(other, "add"))

    def sub(self, other: "DenseVector") -> "DenseVector":
        return DenseVector(self._data - self._check(other, "sub"))

    def scale(self, a: float) -> "DenseVector":
        return DenseVector(float(a) * self._data)

    def dot(self, other: "DenseVector") -> float:
        return float(np.dot(self._data, self._check(other, "dot")))

    def norm(self) -> float:
        """Euclidean norm sqrt(sum x_i^2)."""
        return math.sqrt(float(np.dot(self._data, self._data)))

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.sub(other)

    def __mul__(self, a):
        return self.scale(a)

    __rmul__ = __mul__

    def __neg__(self):
        return self.scale(-1.0)

    # -------------------------------------------------------- in-place ops
    def axpy(self, a: float, x: "DenseVector") -> "DenseVector":
        """self = a*x + self."""
        xd = self._check(x, "axpy")
        self._data += float(a) * xd
        return self

    def aypx(self, a: float, x: "DenseVector") -> "DenseVector":
        """self = x + a*self."""
        xd = self._check(x, "aypx")
        self._data *= float(a)
        self._data += xd
        return self

    def assign(self, x: "DenseVector") -> "DenseVector":
        """Copy x into self without reallocating."""
        self._data[:] = self._check(x, "assign")
        return self

    def fill(self, value: float) -> "DenseVector":
        self._data.fill(float(value))
        return self
