"""
Driver to solve a single CRS case from text files.

Responsibilities:
- Load CaseConfig from YAML.
- Read the CRS arrays and right-hand side from the case input directory.
- Run the solve session; write the solution vector and a summary row.
- Log diagnostics; map failures to exit codes (the core never exits the process).
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import yaml

from core.errors import MalformedInput
from core.types import (
    CaseChecks,
    CaseConfig,
    CaseInputs,
    CaseIO,
    CaseMeta,
    CasePaths,
    CaseSolver,
)
from data_io.readers import read_crs_case
from data_io.writers import write_solution, write_summary
from driver.session import log_report, solve_crs_system

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_CONVERGED = 1
EXIT_BAD_INPUT = 2
EXIT_UNHANDLED = 99

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# -----------------------------------------------------------------------------
# YAML loader
# -----------------------------------------------------------------------------
def _resolve_path(base: Path, value: str | Path) -> Path:
    """Resolve a possibly relative path against base."""
    path = Path(value)
    return path if path.is_absolute() else (base / path).resolve()


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    sec = raw.get(name, {}) or {}
    if not isinstance(sec, Mapping):
        raise ValueError(f"{name}: expected a mapping, got {type(sec).__name__}")
    return sec


def _as_float(sec: Mapping[str, Any], section: str, key: str, default: float, *, min_value: float = 0.0) -> float:
    value = sec.get(key, default)
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{section}.{key}: invalid value {value!r}") from None
    if not out >= min_value:
        raise ValueError(f"{section}.{key}: invalid value {value!r} (must be >= {min_value})")
    return out


def _as_int(sec: Mapping[str, Any], section: str, key: str, default: int, *, min_value: int = 0) -> int:
    value = sec.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ValueError(f"{section}.{key}: invalid value {value!r}")
    out = int(value)
    if out < min_value:
        raise ValueError(f"{section}.{key}: invalid value {value!r} (must be >= {min_value})")
    return out


def _as_bool(sec: Mapping[str, Any], section: str, key: str, default: bool) -> bool:
    value = sec.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key}: invalid value {value!r} (expected true/false)")
    return value


def _load_case_config(cfg_path: str) -> CaseConfig:
    """Load YAML file into CaseConfig with nested dataclasses."""
    cfg_file = Path(cfg_path).expanduser().resolve()
    raw = yaml.safe_load(cfg_file.read_text())
    if not isinstance(raw, dict):
        raise ValueError("Top-level YAML must be a mapping")
    base = cfg_file.parent

    case_raw = _section(raw, "case")
    if "id" not in case_raw:
        raise ValueError("case.id: missing")
    case_cfg = CaseMeta(id=str(case_raw["id"]), title=str(case_raw.get("title", "")))

    paths_raw = _section(raw, "paths")
    paths_cfg = CasePaths(
        input_dir=_resolve_path(base, paths_raw.get("input_dir", ".")),
        output_root=_resolve_path(base, paths_raw.get("output_root", "out")),
    )

    defaults = CaseInputs()
    inputs_raw = _section(raw, "inputs")
    inputs_cfg = CaseInputs(
        dimensions=str(inputs_raw.get("dimensions", defaults.dimensions)),
        values=str(inputs_raw.get("values", defaults.values)),
        column_indices=str(inputs_raw.get("column_indices", defaults.column_indices)),
        row_pointers=str(inputs_raw.get("row_pointers", defaults.row_pointers)),
        rhs=str(inputs_raw.get("rhs", defaults.rhs)),
    )

    sdef = CaseSolver()
    solver_raw = _section(raw, "solver")
    solver_cfg = CaseSolver(
        tolerance=_as_float(solver_raw, "solver", "tolerance", sdef.tolerance),
        max_iterations=_as_int(solver_raw, "solver", "max_iterations", sdef.max_iterations),
        breakdown_tol=_as_float(solver_raw, "solver", "breakdown_tol", sdef.breakdown_tol),
        monitor=_as_bool(solver_raw, "solver", "monitor", sdef.monitor),
        log_every=_as_int(solver_raw, "solver", "log_every", sdef.log_every, min_value=1),
    )

    iodef = CaseIO()
    io_raw = _section(raw, "io")
    io_cfg = CaseIO(
        solution=str(io_raw.get("solution", iodef.solution)),
        precision=_as_int(io_raw, "io", "precision", iodef.precision, min_value=1),
        write_summary=_as_bool(io_raw, "io", "write_summary", iodef.write_summary),
        summary=str(io_raw.get("summary", iodef.summary)),
    )

    checks_raw = _section(raw, "checks")
    checks_cfg = CaseChecks(
        fail_on_nonconverged=_as_bool(checks_raw, "checks", "fail_on_nonconverged", True),
    )

    return CaseConfig(
        case=case_cfg,
        paths=paths_cfg,
        inputs=inputs_cfg,
        solver=solver_cfg,
        io=io_cfg,
        checks=checks_cfg,
    )


def _prepare_run_dir(cfg: CaseConfig, cfg_path: str) -> Path:
    """Create per-run output directory and copy cfg yaml into it."""
    out_root = Path(cfg.paths.output_root)
    case_id = getattr(cfg.case, "id", "case")
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    run_dir = out_root / case_id / stamp
    run_dir.mkdir(parents=True, exist_ok=True)

    cfg.paths.case_dir = run_dir

    try:
        shutil.copy2(cfg_path, run_dir / "config.yaml")
    except OSError as exc:  # pragma: no cover - best-effort copy
        logger.warning("Failed to copy cfg to run dir: %s", exc)
    return run_dir


def _attach_file_log(run_dir: Path, level: int) -> Optional[logging.Handler]:
    log_path = run_dir / "run.log"
    root_logger = logging.getLogger()
    existing = [
        h for h in root_logger.handlers
        if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
    ]
    if existing:
        return None
    file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)
    logger.info("Logging to file: %s", log_path)
    return file_handler


# -----------------------------------------------------------------------------
# Main driver
# -----------------------------------------------------------------------------
def run_case(
    cfg_path: str,
    *,
    log_level: int | str = logging.INFO,
    tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
) -> int:
    """Solve one CRS case. Return 0 on convergence, non-zero on failure."""
    level = log_level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    cfg_path = str(cfg_path)
    file_handler: Optional[logging.Handler] = None
    try:
        try:
            cfg = _load_case_config(cfg_path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Invalid case config %s: %s", cfg_path, exc)
            return EXIT_BAD_INPUT

        if tolerance is not None:
            if not tolerance >= 0.0:
                logger.error("tolerance override must be >= 0 (got %s)", tolerance)
                return EXIT_BAD_INPUT
            cfg.solver.tolerance = float(tolerance)
        if max_iterations is not None:
            if max_iterations < 0:
                logger.error("max_iterations override must be >= 0 (got %s)", max_iterations)
                return EXIT_BAD_INPUT
            cfg.solver.max_iterations = int(max_iterations)

        run_dir = _prepare_run_dir(cfg, cfg_path)
        logger.info("Run directory: %s", run_dir)
        try:
            file_handler = _attach_file_log(run_dir, level)
        except OSError as exc:
            logger.warning("Failed to set up file logging: %s", exc)

        try:
            data = read_crs_case(cfg.paths.input_dir, cfg.inputs)
        except OSError as exc:
            logger.error("Failed to open input file: %s (%s)", exc.filename or exc, exc.strerror or exc)
            return EXIT_BAD_INPUT
        except MalformedInput as exc:
            logger.error("Malformed input: %s", exc)
            return EXIT_BAD_INPUT

        logger.info(
            "Solving case=%s with BiCGSTAB (tol=%.3e, max_it=%d).",
            cfg.case.id,
            cfg.solver.tolerance,
            cfg.solver.max_iterations,
        )
        try:
            report = solve_crs_system(
                data.rows,
                data.cols,
                data.row_pointers,
                data.column_indices,
                data.values,
                data.rhs,
                solver_cfg=cfg.solver,
            )
        except ValueError as exc:
            # MalformedInput / DimensionMismatch: no solve attempted
            logger.error("Cannot solve case %s: %s", cfg.case.id, exc)
            return EXIT_BAD_INPUT

        log_report(report)

        sol_path = write_solution(run_dir / cfg.io.solution, report.x, precision=cfg.io.precision)
        logger.info("Solution written to %s", sol_path)
        if cfg.io.write_summary:
            write_summary(run_dir / cfg.io.summary, report, case_id=cfg.case.id)

        if not report.converged:
            if cfg.checks.fail_on_nonconverged:
                logger.error("Solving failed: status=%s", report.status.value)
                return EXIT_NOT_CONVERGED
            logger.warning("Solver did not converge (status=%s); continuing.", report.status.value)
        return EXIT_OK
    except Exception as exc:
        tb = traceback.format_exc()
        logger.error("Unhandled exception:\n%s", tb)
        print(f"UNHANDLED EXCEPTION IN run_case: {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_UNHANDLED
    finally:
        if file_handler is not None:
            logging.getLogger().removeHandler(file_handler)
            file_handler.close()


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Solve a sparse CRS system A x = b with BiCGSTAB.")
    parser.add_argument("cfg_path", help="Path to case YAML file.")
    parser.add_argument(
        "--tolerance",
        type=float,
        default=None,
        help="Override solver.tolerance (relative residual).",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Override solver.max_iterations.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g., INFO, DEBUG).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    lvl = getattr(logging, str(args.log_level).upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.INFO
    return run_case(
        args.cfg_path,
        log_level=lvl,
        tolerance=args.tolerance,
        max_iterations=args.max_iterations,
    )


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
