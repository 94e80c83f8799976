"""
Unpreconditioned BiCGSTAB (van der Vorst) for real square systems A x = b.

Design goals:
- Operator-agnostic: A only needs ``shape`` and ``multiply(x, out=...)``.
- Start from x0 = 0; the shadow residual r0_hat = b is never updated.
- Never raises on numerical failure: breakdown and iteration exhaustion are
  statuses in the returned LinearSolveResult, which always carries the last valid x.
- Scratch vectors are allocated once per solve and updated in place.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

from core.errors import DimensionMismatch
from core.types import DEFAULT_BREAKDOWN_TOL, DEFAULT_MAX_ITERATIONS, DEFAULT_TOLERANCE
from core.vector import DenseVector
from solvers.linear_types import LinearOperator, LinearSolveResult, SolveStatus

logger = logging.getLogger(__name__)

METHOD_NAME = "bicgstab"


def _cfg_get(obj, name: str, default=None):
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


class BiCGStabSolver:
    """
    Parameters
    ----------
    tolerance:
        Stop when ||r|| / ||b|| <= tolerance (||r|| alone when b = 0).
    max_iterations:
        Upper bound on iterations; 0 returns x0 = 0 immediately.
    breakdown_tol:
        An inner product u.w counts as zero when |u.w| <= breakdown_tol * ||u|| * ||w||.
        0 means only an exact zero triggers breakdown.
    monitor, log_every:
        Log the residual at DEBUG level every ``log_every`` iterations.
    """

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        *,
        breakdown_tol: float = DEFAULT_BREAKDOWN_TOL,
        monitor: bool = False,
        log_every: int = 10,
    ) -> None:
        tolerance = float(tolerance)
        breakdown_tol = float(breakdown_tol)
        if not math.isfinite(tolerance) or tolerance < 0.0:
            raise ValueError(f"tolerance must be a finite non-negative number, got {tolerance}")
        if int(max_iterations) != max_iterations or max_iterations < 0:
            raise ValueError(f"max_iterations must be a non-negative integer, got {max_iterations}")
        if not math.isfinite(breakdown_tol) or breakdown_tol < 0.0:
            raise ValueError(f"breakdown_tol must be a finite non-negative number, got {breakdown_tol}")
        self.tolerance = tolerance
        self.max_iterations = int(max_iterations)
        self.breakdown_tol = breakdown_tol
        self.monitor = bool(monitor)
        self.log_every = max(int(log_every), 1)

    @classmethod
    def from_config(cls, cfg: Any = None) -> "BiCGStabSolver":
        """Build from a mapping or attribute object (e.g. core.types.CaseSolver)."""
        return cls(
            tolerance=_cfg_get(cfg, "tolerance", DEFAULT_TOLERANCE),
            max_iterations=_cfg_get(cfg, "max_iterations", DEFAULT_MAX_ITERATIONS),
            breakdown_tol=_cfg_get(cfg, "breakdown_tol", DEFAULT_BREAKDOWN_TOL),
            monitor=_cfg_get(cfg, "monitor", False),
            log_every=_cfg_get(cfg, "log_every", 10),
        )

    def _vanishes(self, value: float, scale: float) -> bool:
        if not math.isfinite(value):
            return True
        return abs(value) <= self.breakdown_tol * scale

    def solve(self, A: LinearOperator, b) -> LinearSolveResult:
        m, n = A.shape
        if m != n:
            raise DimensionMismatch("bicgstab: square operator required (rows vs cols)", m, n)
        if not isinstance(b, DenseVector):
            b = DenseVector(b)
        if len(b) != n:
            raise DimensionMismatch("bicgstab: right-hand side", n, len(b))

        tol = self.tolerance
        x = DenseVector.zeros(n)
        b_norm = b.norm()

        logger.debug(
            "bicgstab: size=%s ||b||=%.3e tol=%.3e max_it=%d",
            (m, n),
            b_norm,
            tol,
            self.max_iterations,
        )

        if b_norm == 0.0:
            return self._finish(x, SolveStatus.CONVERGED, 0, 0.0, 0.0, [], "zero right-hand side; x = 0")

        r = b.copy()
        r_hat = b.copy()
        r_hat_norm = b_norm
        rho_prev = alpha = omega = 1.0
        p = DenseVector.zeros(n)
        v = DenseVector.zeros(n)
        s = DenseVector.zeros(n)
        t = DenseVector.zeros(n)

        res_norm = b_norm
        history = []
        n_iter = 0

        if res_norm / b_norm <= tol:
            return self._finish(x, SolveStatus.CONVERGED, 0, res_norm, b_norm, history, None)

        status = SolveStatus.MAX_ITERATIONS_REACHED
        message: Optional[str] = f"no convergence after {self.max_iterations} iterations"

        for k in range(1, self.max_iterations + 1):
            # omega = 0 leaves r = s, which is orthogonal to r0_hat, so test it before rho
            if omega == 0.0:
                status = SolveStatus.BREAKDOWN
                message = f"omega vanished before iteration {k}"
                break
            rho = r_hat.dot(r)
            if self._vanishes(rho, r_hat_norm * res_norm):
                status = SolveStatus.BREAKDOWN
                message = f"rho = r0_hat.r vanished at iteration {k} (rho={rho:.3e})"
                break

            beta = (rho / rho_prev) * (alpha / omega)
            # p = r + beta * (p - omega * v)
            p.axpy(-omega, v)
            p.aypx(beta, r)

            A.multiply(p, out=v)
            r_hat_v = r_hat.dot(v)
            if self._vanishes(r_hat_v, r_hat_norm * v.norm()):
                status = SolveStatus.BREAKDOWN
                message = f"r0_hat.v vanished at iteration {k} (r0_hat.v={r_hat_v:.3e})"
                break
            alpha = rho / r_hat_v

            s.assign(r)
            s.axpy(-alpha, v)
            s_norm = s.norm()
            if s_norm / b_norm <= tol:
                x.axpy(alpha, p)
                res_norm = s_norm
                n_iter = k
                history.append(res_norm / b_norm)
                status = SolveStatus.CONVERGED
                message = None
                break

            A.multiply(s, out=t)
            tt = t.dot(t)
            if not math.isfinite(tt) or tt == 0.0:
                status = SolveStatus.BREAKDOWN
                message = f"t.t vanished at iteration {k}"
                break
            omega = t.dot(s) / tt

            x.axpy(alpha, p)
            x.axpy(omega, s)
            r.assign(s)
            r.axpy(-omega, t)

            res_norm = r.norm()
            rho_prev = rho
            n_iter = k
            history.append(res_norm / b_norm)

            if self.monitor and (k == 1 or k % self.log_every == 0):
                logger.debug("[BiCGSTAB] its=%d rnorm=%.6e rel=%.3e", k, res_norm, res_norm / b_norm)

            if res_norm / b_norm <= tol:
                status = SolveStatus.CONVERGED
                message = None
                break

        return self._finish(x, status, n_iter, res_norm, b_norm, history, message)

    def _finish(
        self,
        x: DenseVector,
        status: SolveStatus,
        n_iter: int,
        res_norm: float,
        b_norm: float,
        history: list,
        message: Optional[str],
    ) -> LinearSolveResult:
        rel = res_norm / b_norm if b_norm > 0.0 else res_norm
        if status is not SolveStatus.CONVERGED:
            logger.warning(
                "BiCGSTAB not converged: status=%s iters=%d residual=%.3e rel=%.3e (%s)",
                status.value,
                n_iter,
                res_norm,
                rel,
                message,
            )
        return LinearSolveResult(
            x=x,
            status=status,
            n_iter=n_iter,
            residual_norm=float(res_norm),
            rel_residual=float(rel),
            method=METHOD_NAME,
            message=message,
            diag={
                "history": list(history),
                "tolerance": self.tolerance,
                "max_iterations": self.max_iterations,
                "b_norm": float(b_norm),
            },
        )


def solve_linear_system_bicgstab(A: LinearOperator, b, cfg: Any = None) -> LinearSolveResult:
    """Solve Ax=b with BiCGSTAB configured from ``cfg`` (mapping, CaseSolver or None)."""
    return BiCGStabSolver.from_config(cfg).solve(A, b)
