from __future__ import annotations

import numpy as np
import pytest

from core.crs import CRSMatrix
from core.errors import DimensionMismatch
from core.vector import DenseVector
from solvers.bicgstab import BiCGStabSolver, solve_linear_system_bicgstab
from solvers.linear_types import SolveStatus
from tests.utils_crs import dense_to_crs, random_diag_dominant


def _crs(M: np.ndarray) -> CRSMatrix:
    rp, ci, vals = dense_to_crs(M)
    return CRSMatrix.build(M.shape[0], M.shape[1], rp, ci, vals).compress()


def test_one_by_one_converges_in_one_iteration():
    A = CRSMatrix.build(1, 1, [0, 1], [0], [2.0]).compress()
    res = BiCGStabSolver().solve(A, DenseVector([4.0]))
    assert res.status is SolveStatus.CONVERGED
    assert res.converged
    assert res.n_iter <= 1
    assert res.x.tolist() == pytest.approx([2.0])
    assert res.rel_residual == pytest.approx(0.0, abs=1e-14)


def test_diagonal_three_by_three():
    A = CRSMatrix.build(3, 3, [0, 1, 2, 3], [0, 1, 2], [1.0, 2.0, 3.0]).compress()
    res = BiCGStabSolver(tolerance=1e-6).solve(A, [1.0, 4.0, 9.0])
    assert res.status is SolveStatus.CONVERGED
    assert res.n_iter <= 10
    np.testing.assert_allclose(res.x.to_numpy(), [1.0, 2.0, 3.0], rtol=1e-5)
    assert res.rel_residual <= 1e-6


def test_zero_rhs_is_trivially_converged():
    A = CRSMatrix.build(2, 2, [0, 1, 2], [0, 1], [1.0, 1.0]).compress()
    res = BiCGStabSolver().solve(A, [0.0, 0.0])
    assert res.status is SolveStatus.CONVERGED
    assert res.n_iter == 0
    assert res.x.tolist() == [0.0, 0.0]
    assert res.residual_norm == 0.0
    assert res.rel_residual == 0.0


def test_max_iterations_zero_returns_initial_guess():
    A = CRSMatrix.build(2, 2, [0, 1, 2], [0, 1], [1.0, 2.0]).compress()
    res = BiCGStabSolver(max_iterations=0).solve(A, [1.0, 1.0])
    assert res.status is SolveStatus.MAX_ITERATIONS_REACHED
    assert not res.converged
    assert res.n_iter == 0
    assert res.x.tolist() == [0.0, 0.0]
    assert res.rel_residual == pytest.approx(1.0)
    assert res.message


def test_unreachable_tolerance_hits_iteration_limit(rng):
    n = 30
    M = random_diag_dominant(rng, n)
    A = _crs(M)
    b = rng.standard_normal(n)
    res = BiCGStabSolver(tolerance=0.0, max_iterations=3).solve(A, b)
    assert res.status is SolveStatus.MAX_ITERATIONS_REACHED
    assert res.n_iter == 3
    assert len(res.diag["history"]) == 3
    # best available iterate is better than x0 = 0
    assert np.linalg.norm(M @ res.x.to_numpy() - b) < np.linalg.norm(b)


@pytest.mark.parametrize("n", [5, 40, 120])
def test_random_nonsymmetric_systems(rng, n: int):
    M = random_diag_dominant(rng, n, density=min(0.3, 8.0 / n))
    x_true = rng.standard_normal(n)
    b = M @ x_true

    res = BiCGStabSolver(tolerance=1e-10, max_iterations=1000).solve(_crs(M), b)
    assert res.status is SolveStatus.CONVERGED
    assert res.n_iter <= 200
    np.testing.assert_allclose(res.x.to_numpy(), x_true, rtol=1e-6, atol=1e-8)
    true_rel = np.linalg.norm(M @ res.x.to_numpy() - b) / np.linalg.norm(b)
    assert true_rel < 1e-8


def test_history_is_relative_and_ends_at_final_estimate(rng):
    M = random_diag_dominant(rng, 20)
    b = rng.standard_normal(20)
    res = BiCGStabSolver(tolerance=1e-8).solve(_crs(M), b)
    hist = res.diag["history"]
    assert len(hist) == res.n_iter
    assert hist[-1] == pytest.approx(res.rel_residual)


def test_rhs_length_mismatch():
    A = CRSMatrix.build(2, 2, [0, 1, 2], [0, 1], [1.0, 1.0]).compress()
    with pytest.raises(DimensionMismatch):
        BiCGStabSolver().solve(A, [1.0, 2.0, 3.0])


def test_non_square_operator_rejected():
    A = CRSMatrix.build(2, 3, [0, 1, 2], [0, 1], [1.0, 1.0]).compress()
    with pytest.raises(DimensionMismatch):
        BiCGStabSolver().solve(A, [1.0, 2.0])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tolerance": -1.0},
        {"tolerance": float("nan")},
        {"max_iterations": -1},
        {"max_iterations": 2.5},
        {"breakdown_tol": -1e-3},
    ],
)
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        BiCGStabSolver(**kwargs)


def test_from_config_mapping_and_functional_wrapper():
    A = CRSMatrix.build(2, 2, [0, 2, 3], [0, 1, 1], [2.0, 1.0, 4.0]).compress()
    res = solve_linear_system_bicgstab(A, [3.0, 4.0], {"tolerance": 1e-12, "max_iterations": 50})
    assert res.converged
    assert res.diag["tolerance"] == 1e-12
    assert res.diag["max_iterations"] == 50
    np.testing.assert_allclose(res.x.to_numpy(), [1.0, 1.0], rtol=1e-10)


def test_accepts_any_multiply_capable_operator():
    class Diagonal:
        def __init__(self, d):
            self.d = np.asarray(d, dtype=float)

        @property
        def shape(self):
            return (self.d.size, self.d.size)

        def multiply(self, x, out=None):
            y = self.d * x.data
            if out is None:
                return DenseVector(y)
            out.data[:] = y
            return out

    res = BiCGStabSolver().solve(Diagonal([2.0, 4.0]), [2.0, 4.0])
    assert res.converged
    np.testing.assert_allclose(res.x.to_numpy(), [1.0, 1.0], rtol=1e-6)


def test_b_is_not_modified():
    A = CRSMatrix.build(2, 2, [0, 1, 2], [0, 1], [1.0, 3.0]).compress()
    b = DenseVector([1.0, 3.0])
    BiCGStabSolver().solve(A, b)
    assert b.tolist() == [1.0, 3.0]
