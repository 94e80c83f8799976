from __future__ import annotations

import numpy as np
import pytest

from core.crs import CRSMatrix
from core.errors import MalformedInput


def _valid():
    # [[1, 0, 2],
    #  [0, 0, 0],
    #  [3, 4, 0]]
    return dict(
        rows=3,
        cols=3,
        row_pointers=[0, 2, 2, 4],
        column_indices=[0, 2, 0, 1],
        values=[1.0, 2.0, 3.0, 4.0],
    )


def test_valid_build_ok():
    A = CRSMatrix.build(**_valid())
    assert A.shape == (3, 3)
    assert A.nnz == 4
    assert not A.is_compressed


def test_row_pointers_wrong_length():
    kw = _valid()
    kw["row_pointers"] = [0, 2, 4]
    with pytest.raises(MalformedInput, match="rows \\+ 1"):
        CRSMatrix.build(**kw)


def test_row_pointers_not_monotonic():
    kw = _valid()
    kw["row_pointers"] = [0, 3, 2, 4]
    with pytest.raises(MalformedInput, match="non-decreasing"):
        CRSMatrix.build(**kw)


def test_row_pointers_must_start_at_zero():
    kw = _valid()
    kw["row_pointers"] = [1, 2, 2, 4]
    with pytest.raises(MalformedInput, match="row_pointers\\[0\\]"):
        CRSMatrix.build(**kw)


def test_last_row_pointer_must_equal_nnz():
    kw = _valid()
    kw["row_pointers"] = [0, 2, 2, 3]
    with pytest.raises(MalformedInput, match="row_pointers\\[-1\\]"):
        CRSMatrix.build(**kw)


@pytest.mark.parametrize("bad_col", [-1, 3, 10])
def test_column_index_out_of_range(bad_col: int):
    kw = _valid()
    kw["column_indices"] = [0, bad_col, 0, 1]
    with pytest.raises(MalformedInput, match="column_indices out of range"):
        CRSMatrix.build(**kw)


def test_values_length_mismatch():
    kw = _valid()
    kw["values"] = [1.0, 2.0, 3.0]
    with pytest.raises(MalformedInput, match="len\\(values\\)"):
        CRSMatrix.build(**kw)


def test_non_integral_indices_rejected():
    kw = _valid()
    kw["column_indices"] = [0, 1.5, 0, 1]
    with pytest.raises(MalformedInput, match="integers"):
        CRSMatrix.build(**kw)


def test_non_finite_values_rejected():
    kw = _valid()
    kw["values"] = [1.0, np.nan, 3.0, 4.0]
    with pytest.raises(MalformedInput, match="non-finite"):
        CRSMatrix.build(**kw)


@pytest.mark.parametrize("rows,cols", [(0, 3), (3, 0), (-1, 3)])
def test_dimensions_must_be_positive(rows: int, cols: int):
    kw = _valid()
    kw["rows"] = rows
    kw["cols"] = cols
    with pytest.raises(MalformedInput, match="positive integer"):
        CRSMatrix.build(**kw)


def test_malformed_input_is_a_value_error():
    kw = _valid()
    kw["row_pointers"] = [0]
    with pytest.raises(ValueError):
        CRSMatrix.build(**kw)


def test_triplet_row_index_out_of_range():
    with pytest.raises(MalformedInput, match="row_indices out of range"):
        CRSMatrix.from_triplets(2, 2, [0, 2], [0, 1], [1.0, 1.0])


def test_triplet_length_mismatch():
    with pytest.raises(MalformedInput, match="triplet lengths differ"):
        CRSMatrix.from_triplets(2, 2, [0, 1], [0], [1.0, 1.0])


@pytest.mark.parametrize("rows,cols", [(True, 1), (1, True), (np.bool_(True), 1)])
def test_bool_dimensions_rejected(rows, cols):
    with pytest.raises(MalformedInput, match="positive integer"):
        CRSMatrix.build(rows, cols, [0, 1], [0], [1.0])
