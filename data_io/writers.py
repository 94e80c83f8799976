"""
Minimal output helpers:
- write_solution: one value per line, index order, fixed significant digits.
- write_summary: append the run diagnostics as one CSV row.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from driver.session import SolveReport


def _ensure_parent(path: Path) -> None:
    """Ensure parent directory exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def write_solution(path: str | Path, x: Iterable[float], precision: int = 12) -> Path:
    """Write x with ``precision`` significant digits (like iostream precision(12))."""
    precision = int(precision)
    if precision <= 0:
        raise ValueError(f"precision must be positive, got {precision}")
    out_path = Path(path)
    _ensure_parent(out_path)
    with out_path.open("w", encoding="utf-8") as f:
        for xi in x:
            f.write(f"{float(xi):.{precision}g}\n")
    return out_path


def write_summary(path: str | Path, report: "SolveReport", case_id: str = "") -> Path:
    """
    Append one diagnostics row to CSV.

    Columns:
    case, rows, cols, nnz, n_iter, status, error_estimate, residual_norm
    """
    out_path = Path(path)
    _ensure_parent(out_path)

    row = {
        "case": case_id,
        "rows": report.rows,
        "cols": report.cols,
        "nnz": report.nnz,
        "n_iter": report.n_iter,
        "status": report.status.value,
        "error_estimate": f"{report.error_estimate:.6e}",
        "residual_norm": f"{report.residual_norm:.6e}",
    }

    header = list(row.keys())
    write_header = not out_path.exists()
    with out_path.open("a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=header)
        if write_header:
            writer.writeheader()
        writer.writerow(row)
    return out_path
