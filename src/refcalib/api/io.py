from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from refcalib.optim.calibrator import CalibrationResult

POINTS_SCHEMA = "refcalib.points.v0"
RESULT_SCHEMA = "refcalib.result.v0"


def _to_float_matrix(x: Any, shape: tuple[int, ...]) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    x = x.reshape(shape)
    if not np.all(np.isfinite(x)):
        raise ValueError("non-finite values")
    return x


def save_point_pairs(path: Path, P0: np.ndarray, P1: np.ndarray) -> Path:
    P0 = np.asarray(P0, dtype=np.float64).reshape(-1, 3)
    P1 = np.asarray(P1, dtype=np.float64).reshape(-1, 3)
    if P0.shape != P1.shape:
        raise ValueError("P0 and P1 must have the same number of points")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"schema_version": POINTS_SCHEMA, "p0": P0.tolist(), "p1": P1.tolist()}
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def load_point_pairs(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """Read a point-pair file written by `save_point_pairs` -> (P0, P1) as (N,3) arrays."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if str(data.get("schema_version")) != POINTS_SCHEMA:
        raise ValueError("unsupported point-pair schema")
    p0 = data.get("p0", [])
    p1 = data.get("p1", [])
    if len(p0) != len(p1):
        raise ValueError("p0 and p1 must have the same number of points")
    n = len(p0)
    return _to_float_matrix(p0, (n, 3)), _to_float_matrix(p1, (n, 3))


def save_calibration_result(path: Path, result: CalibrationResult) -> Path:
    scale: Any
    if result.scale is None:
        scale = None
    elif np.ndim(result.scale) == 0:
        scale = float(result.scale)
    else:
        scale = np.asarray(result.scale, dtype=np.float64).reshape(3).tolist()

    meta: dict[str, Any] = {
        "schema_version": RESULT_SCHEMA,
        "scaling": result.scaling,
        "H": np.asarray(result.H, dtype=np.float64).tolist(),
        "scale": scale,
        "error": float(result.error),
        "diagnostics": {k: float(v) for k, v in result.diagnostics.items()},
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_calibration_result(path: Path) -> CalibrationResult:
    meta = json.loads(Path(path).read_text(encoding="utf-8"))
    if str(meta.get("schema_version")) != RESULT_SCHEMA:
        raise ValueError("unsupported result schema")

    scaling = str(meta["scaling"])
    raw_scale = meta.get("scale")
    scale: float | np.ndarray | None
    if scaling == "anisotropic":
        scale = _to_float_matrix(raw_scale, (3,))
    elif scaling == "isotropic":
        scale = float(raw_scale)
    elif scaling == "none":
        scale = None
    else:
        raise ValueError(f"unknown scaling mode {scaling!r}")

    return CalibrationResult(
        H=_to_float_matrix(meta["H"], (4, 4)),
        scale=scale,
        error=float(meta["error"]),
        scaling=scaling,
        diagnostics={str(k): float(v) for k, v in meta.get("diagnostics", {}).items()},
    )
