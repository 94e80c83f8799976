"""
Case configuration dataclasses (filled from YAML by driver.run_crs_case).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

FloatArray = np.ndarray
IntArray = np.ndarray

DEFAULT_TOLERANCE = 1.0e-6
DEFAULT_MAX_ITERATIONS = 1000
DEFAULT_BREAKDOWN_TOL = float(np.finfo(np.float64).eps) ** 2


@dataclass(slots=True)
class CaseMeta:
    id: str
    title: str = ""


@dataclass(slots=True)
class CasePaths:
    input_dir: Path
    output_root: Path
    case_dir: Path | None = None  # set per run by the driver


@dataclass(slots=True)
class CaseInputs:
    """File names of the CRS arrays, relative to paths.input_dir."""

    dimensions: str = "dimensions.txt"
    values: str = "values.txt"
    column_indices: str = "inner_indices.txt"
    row_pointers: str = "outer_starts.txt"
    rhs: str = "rhs.txt"


@dataclass(slots=True)
class CaseSolver:
    tolerance: float = DEFAULT_TOLERANCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    breakdown_tol: float = DEFAULT_BREAKDOWN_TOL
    monitor: bool = False
    log_every: int = 10


@dataclass(slots=True)
class CaseIO:
    solution: str = "solution.txt"
    precision: int = 12
    write_summary: bool = True
    summary: str = "summary.csv"


@dataclass(slots=True)
class CaseChecks:
    fail_on_nonconverged: bool = True


@dataclass(slots=True)
class CaseConfig:
    case: CaseMeta
    paths: CasePaths
    inputs: CaseInputs = field(default_factory=CaseInputs)
    solver: CaseSolver = field(default_factory=CaseSolver)
    io: CaseIO = field(default_factory=CaseIO)
    checks: CaseChecks = field(default_factory=CaseChecks)


@dataclass(slots=True)
class CRSCaseData:
    """Raw arrays of one system as read from disk."""

    rows: int
    cols: int
    values: FloatArray
    column_indices: IntArray
    row_pointers: IntArray
    rhs: FloatArray
