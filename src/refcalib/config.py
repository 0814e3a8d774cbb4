from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from refcalib.core.geometry import check_euler_seq
from refcalib.optim.backend import BACKENDS
from refcalib.optim.calibrator import ReferenceCalibrator, SolverOptions

CONFIG_SCHEMA = "refcalib.config.v0"


class ConfigValidationError(ValueError):
    pass


@dataclass(frozen=True)
class BoundsConfig:
    lower: tuple[float, ...]
    upper: tuple[float, ...]


@dataclass(frozen=True)
class ScalingConfig:
    bounds: BoundsConfig | None = None
    scalar_bounds: tuple[float, float] | None = None
    initial_guess: tuple[float, float, float] | None = None
    initial_guess_scalar: float | None = None


@dataclass(frozen=True)
class CalibrationConfig:
    schema_version: str
    bounds: BoundsConfig | None
    scaling: ScalingConfig
    initial_guess: np.ndarray | None  # (4,4)
    solver: SolverOptions

    def build_calibrator(self) -> ReferenceCalibrator:
        """Configured calibrator with an empty point database."""
        calib = ReferenceCalibrator(self.solver)
        if self.bounds is not None:
            calib.set_bounds(self.bounds.lower, self.bounds.upper)
        sc = self.scaling
        if sc.bounds is not None:
            calib.set_scaling_bounds(sc.bounds.lower, sc.bounds.upper)
        if sc.scalar_bounds is not None:
            calib.set_scaling_bounds(sc.scalar_bounds[0], sc.scalar_bounds[1])
        if sc.initial_guess is not None:
            calib.set_scaling_initial_guess(sc.initial_guess)
        if sc.initial_guess_scalar is not None:
            calib.set_scaling_initial_guess(sc.initial_guess_scalar)
        if self.initial_guess is not None:
            calib.set_initial_guess(self.initial_guess)
        return calib


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigValidationError(msg)


def _number(value: Any, name: str) -> float:
    _require(isinstance(value, (int, float)) and not isinstance(value, bool), f"{name} must be a number")
    out = float(value)
    _require(bool(np.isfinite(out)), f"{name} must be finite")
    return out


def _float_list(value: Any, size: int, name: str) -> tuple[float, ...]:
    _require(isinstance(value, (list, tuple)) and len(value) == size, f"{name} must be a list of {size} numbers")
    return tuple(_number(v, f"{name}[{i}]") for i, v in enumerate(value))


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key, {})
    _require(isinstance(section, dict), f"{key} must be an object")
    return section


def _bounds(section: dict[str, Any], size: int, name: str) -> BoundsConfig | None:
    if "min" not in section and "max" not in section:
        return None
    _require("min" in section and "max" in section, f"{name} needs both min and max")
    lower = _float_list(section["min"], size, f"{name}.min")
    upper = _float_list(section["max"], size, f"{name}.max")
    _require(all(lo <= hi for lo, hi in zip(lower, upper)), f"{name}.min must be <= {name}.max")
    return BoundsConfig(lower=lower, upper=upper)


def load_calibration_config(path: Path) -> CalibrationConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_calibration_config(data)


def parse_calibration_config(data: dict[str, Any]) -> CalibrationConfig:
    _require(isinstance(data, dict), "config must be a JSON object")
    schema_version = data.get("schema_version")
    _require(schema_version == CONFIG_SCHEMA, f"schema_version must be {CONFIG_SCHEMA}")

    bounds = _bounds(_section(data, "bounds"), 6, "bounds")

    scaling = _section(data, "scaling")
    scalar_bounds = None
    if "min_scalar" in scaling or "max_scalar" in scaling:
        lo = _number(scaling.get("min_scalar", 0.1), "scaling.min_scalar")
        hi = _number(scaling.get("max_scalar", 10.0), "scaling.max_scalar")
        _require(lo <= hi, "scaling.min_scalar must be <= scaling.max_scalar")
        scalar_bounds = (lo, hi)
    s0 = scaling.get("initial_guess")
    s0_scalar = scaling.get("initial_guess_scalar")
    if s0 is not None:
        s0 = _float_list(s0, 3, "scaling.initial_guess")
    if s0_scalar is not None:
        s0_scalar = _number(s0_scalar, "scaling.initial_guess_scalar")
    scaling_cfg = ScalingConfig(
        bounds=_bounds(scaling, 3, "scaling"),
        scalar_bounds=scalar_bounds,
        initial_guess=s0,
        initial_guess_scalar=s0_scalar,
    )

    H0 = data.get("initial_guess")
    if H0 is not None:
        _require(
            isinstance(H0, list) and len(H0) == 4 and all(isinstance(row, list) for row in H0),
            "initial_guess must be a 4x4 matrix",
        )
        H0 = np.array([_float_list(row, 4, f"initial_guess[{i}]") for i, row in enumerate(H0)], dtype=np.float64)

    solver = _section(data, "solver")
    backend = solver.get("backend", "trf")
    _require(backend in BACKENDS, f"solver.backend must be one of {BACKENDS}")
    max_iter = solver.get("max_iter", 1000)
    _require(isinstance(max_iter, int) and not isinstance(max_iter, bool), "solver.max_iter must be an integer")
    _require(max_iter >= 1, "solver.max_iter must be >= 1")
    tols = {k: _number(solver.get(k, 1e-12), f"solver.{k}") for k in ("ftol", "xtol", "gtol")}
    _require(all(v > 0.0 for v in tols.values()), "solver tolerances must be > 0")
    euler_seq = solver.get("euler_seq", "xyz")
    _require(isinstance(euler_seq, str), "solver.euler_seq must be a string")
    try:
        check_euler_seq(euler_seq)
    except ValueError as exc:
        raise ConfigValidationError(f"solver.euler_seq: {exc}") from exc

    return CalibrationConfig(
        schema_version=schema_version,
        bounds=bounds,
        scaling=scaling_cfg,
        initial_guess=H0,
        solver=SolverOptions(
            backend=backend,
            max_iter=max_iter,
            euler_seq=euler_seq,
            **tols,
        ),
    )
