"""
Shared linear solver result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

from core.vector import DenseVector


class SolveStatus(str, Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    BREAKDOWN = "breakdown"


class LinearOperator(Protocol):
    """Anything that can apply y = A @ x (optionally into a preallocated y)."""

    @property
    def shape(self) -> Tuple[int, int]: ...

    def multiply(self, x: DenseVector, out: Optional[DenseVector] = None) -> DenseVector: ...


@dataclass(frozen=True)
class LinearSolveResult:
    x: DenseVector
    status: SolveStatus
    n_iter: int
    residual_norm: float
    rel_residual: float
    method: str
    message: Optional[str] = None
    diag: Dict[str, Any] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.status is SolveStatus.CONVERGED
