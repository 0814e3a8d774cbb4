from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from refcalib.core.geometry import as_vector, homogeneous_to_params, is_rotation, params_to_homogeneous
from refcalib.errors import InputDimensionError, InvalidBoundsError

ScalingMode = Literal["none", "anisotropic", "isotropic"]
SCALING_MODES: tuple[str, ...] = ("none", "anisotropic", "isotropic")

# Number of scale parameters appended to the 6 pose parameters.
SCALE_SIZE = {"none": 0, "anisotropic": 3, "isotropic": 1}


@dataclass(frozen=True)
class TransformBounds:
    """Box on (tx, ty, tz) in meters and the three Euler angles in radians."""

    lower: np.ndarray  # (6,)
    upper: np.ndarray  # (6,)


@dataclass(frozen=True)
class ScaleBounds:
    lower: np.ndarray  # (3,)
    upper: np.ndarray  # (3,)


@dataclass(frozen=True)
class ScalarScaleBounds:
    lower: float
    upper: float


def default_transform_bounds() -> TransformBounds:
    return TransformBounds(
        lower=np.array([-1.0, -1.0, -1.0, -np.pi, -np.pi, -np.pi], dtype=np.float64),
        upper=np.array([1.0, 1.0, 1.0, np.pi, np.pi, np.pi], dtype=np.float64),
    )


def _check_box(lower: np.ndarray, upper: np.ndarray, name: str) -> None:
    if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
        raise InvalidBoundsError(f"{name} must be finite")
    bad = np.flatnonzero(lower > upper)
    if bad.size:
        raise InvalidBoundsError(f"{name}: lower > upper at components {bad.tolist()}")


def check_scaling_mode(scaling: str) -> str:
    if scaling not in SCALING_MODES:
        raise ValueError(f"scaling must be one of {SCALING_MODES}, got {scaling!r}")
    return scaling


class ParameterSpace:
    """
    Bound boxes and initial guesses for the pose (translation + Euler angles) and for
    the anisotropic / isotropic scale factors.

    Every setter validates its whole input first and leaves the stored state untouched
    on failure.
    """

    def __init__(self, *, euler_seq: str = "xyz", rotation_tol: float = 1e-6) -> None:
        self.euler_seq = euler_seq
        self.rotation_tol = float(rotation_tol)
        self._transform = default_transform_bounds()
        self._scale = ScaleBounds(lower=np.full(3, 0.1), upper=np.full(3, 10.0))
        self._scalar_scale = ScalarScaleBounds(lower=0.1, upper=10.0)
        self._x0 = np.zeros(6, dtype=np.float64)
        self._s0 = np.ones(3, dtype=np.float64)
        self._s0_scalar = 1.0

    @property
    def transform_bounds(self) -> TransformBounds:
        return TransformBounds(lower=self._transform.lower.copy(), upper=self._transform.upper.copy())

    @property
    def scale_bounds(self) -> ScaleBounds:
        return ScaleBounds(lower=self._scale.lower.copy(), upper=self._scale.upper.copy())

    @property
    def scalar_scale_bounds(self) -> ScalarScaleBounds:
        return self._scalar_scale

    @property
    def x0(self) -> np.ndarray:
        return self._x0.copy()

    @property
    def scale_seed(self) -> np.ndarray:
        return self._s0.copy()

    @property
    def scalar_scale_seed(self) -> float:
        return self._s0_scalar

    def set_transform_bounds(self, lower: np.ndarray, upper: np.ndarray) -> None:
        lo = as_vector(lower, 6, "transform lower bound")
        hi = as_vector(upper, 6, "transform upper bound")
        _check_box(lo, hi, "transform bounds")
        self._transform = TransformBounds(lower=lo, upper=hi)

    def set_scale_bounds(self, lower: float | np.ndarray, upper: float | np.ndarray) -> None:
        """Scalars set the isotropic bounds, 3-vectors the anisotropic ones."""
        if np.ndim(lower) == 0 and np.ndim(upper) == 0:
            lo = np.array([float(lower)], dtype=np.float64)
            hi = np.array([float(upper)], dtype=np.float64)
            _check_box(lo, hi, "scalar scale bounds")
            self._scalar_scale = ScalarScaleBounds(lower=float(lo[0]), upper=float(hi[0]))
            return
        lo = as_vector(lower, 3, "scale lower bound")
        hi = as_vector(upper, 3, "scale upper bound")
        _check_box(lo, hi, "scale bounds")
        self._scale = ScaleBounds(lower=lo, upper=hi)

    def set_initial_guess(self, H: np.ndarray) -> None:
        H = np.asarray(H, dtype=np.float64)
        if H.shape != (4, 4):
            raise InputDimensionError(f"initial guess must be a 4x4 matrix, got shape {H.shape}")
        if not np.all(np.isfinite(H)):
            raise InvalidBoundsError("initial guess must be finite")
        if not is_rotation(H[:3, :3], tol=self.rotation_tol):
            raise InvalidBoundsError("initial guess rotation block is not orthonormal with det=+1")
        self._x0 = homogeneous_to_params(H, self.euler_seq)

    def initial_guess(self) -> np.ndarray:
        return params_to_homogeneous(self._x0, self.euler_seq)

    def set_scale_initial_guess(self, s: float | np.ndarray) -> None:
        if np.ndim(s) == 0:
            v = float(s)
            if not np.isfinite(v):
                raise InvalidBoundsError("scale seed must be finite")
            self._s0_scalar = v
            return
        v = as_vector(s, 3, "scale seed")
        if not np.all(np.isfinite(v)):
            raise InvalidBoundsError("scale seed must be finite")
        self._s0 = v

    def packed(self, scaling: ScalingMode) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Full parameter vector layout for a scaling mode: (x0, lower, upper).

        Layout is [tx, ty, tz, a, b, c] followed by 0, 3 or 1 scale factors.
        """
        check_scaling_mode(scaling)
        x0 = [self._x0]
        lo = [self._transform.lower]
        hi = [self._transform.upper]
        if scaling == "anisotropic":
            x0.append(self._s0)
            lo.append(self._scale.lower)
            hi.append(self._scale.upper)
        elif scaling == "isotropic":
            x0.append(np.array([self._s0_scalar]))
            lo.append(np.array([self._scalar_scale.lower]))
            hi.append(np.array([self._scalar_scale.upper]))
        return (
            np.concatenate(x0).astype(np.float64),
            np.concatenate(lo).astype(np.float64),
            np.concatenate(hi).astype(np.float64),
        )
