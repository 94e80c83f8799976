"""
Solve session: raw CRS arrays -> compressed matrix -> BiCGSTAB -> report.

The true residual ||A x - b|| is recomputed here with a fresh product and never taken
from the solver's running estimate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from core.crs import CRSMatrix
from core.vector import DenseVector
from solvers.bicgstab import BiCGStabSolver
from solvers.linear_types import LinearSolveResult, SolveStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolveReport:
    rows: int
    cols: int
    nnz: int
    n_iter: int
    status: SolveStatus
    error_estimate: float
    residual_norm: float
    x: DenseVector
    result: LinearSolveResult

    @property
    def converged(self) -> bool:
        return self.status is SolveStatus.CONVERGED


def solve_crs_system(
    rows: int,
    cols: int,
    row_pointers: Sequence[int],
    column_indices: Sequence[int],
    values: Sequence[float],
    b: Sequence[float],
    solver_cfg: Any = None,
) -> SolveReport:
    """Build A from CRS arrays, solve A x = b and check the residual independently.

    MalformedInput / DimensionMismatch propagate before any iteration is attempted.
    """
    A = CRSMatrix.build(rows, cols, row_pointers, column_indices, values).compress()
    b_vec = b if isinstance(b, DenseVector) else DenseVector(b)

    solver = BiCGStabSolver.from_config(solver_cfg)
    res = solver.solve(A, b_vec)

    true_residual = A.multiply(res.x).sub(b_vec).norm()

    return SolveReport(
        rows=A.rows,
        cols=A.cols,
        nnz=A.nnz,
        n_iter=res.n_iter,
        status=res.status,
        error_estimate=res.rel_residual,
        residual_norm=true_residual,
        x=res.x,
        result=res,
    )


def log_report(report: SolveReport, *, log: logging.Logger | None = None) -> None:
    """Emit the run diagnostics (size, nnz, iterations, status, error, residual)."""
    log = log or logger
    log.info("Matrix size: %d x %d", report.rows, report.cols)
    log.info("Number of non-zero elements: %d", report.nnz)
    log.info("Number of iterations: %d", report.n_iter)
    log.info("Solver status: %s", report.status.value)
    log.info("Estimated error: %.6e", report.error_estimate)
    log.info("Residual: %.6e", report.residual_norm)
    if report.result.message:
        log.info("Solver message: %s", report.result.message)
