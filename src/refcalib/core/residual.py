from __future__ import annotations

import numpy as np

from refcalib.core.geometry import as_vector, euler_rotation_derivatives
from refcalib.core.params import SCALE_SIZE, ScalingMode, check_scaling_mode
from refcalib.core.points import PointPairStore
from refcalib.errors import InputDimensionError, InsufficientDataError


def _scale_factors(scale: float | np.ndarray | None) -> np.ndarray:
    if scale is None:
        return np.ones(3, dtype=np.float64)
    if np.ndim(scale) == 0:
        return np.full(3, float(scale), dtype=np.float64)
    return as_vector(scale, 3, "scale")


def apply_transform(H: np.ndarray, P: np.ndarray, scale: float | np.ndarray | None = None) -> np.ndarray:
    """Map (N,3) points through S*H, with S = I, diag(s) or s*I."""
    H = np.asarray(H, dtype=np.float64)
    if H.shape != (4, 4):
        raise InputDimensionError(f"H must be 4x4, got shape {H.shape}")
    P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
    return ((H[:3, :3] @ P.T).T + H[:3, 3].reshape(1, 3)) * _scale_factors(scale).reshape(1, 3)


def residual_error(
    P0: np.ndarray, P1: np.ndarray, H: np.ndarray, scale: float | np.ndarray | None = None
) -> float:
    """RMS distance sqrt(mean_i ||p1_i - S*H*p0_i||^2)."""
    P1 = np.asarray(P1, dtype=np.float64).reshape(-1, 3)
    d = P1 - apply_transform(H, P0, scale)
    if d.shape[0] == 0:
        raise InsufficientDataError("need at least one point pair to evaluate the residual")
    return float(np.sqrt(np.mean(np.sum(d * d, axis=1))))


class ResidualEvaluator:
    """
    Fit-quality metric over a fixed snapshot of point pairs.

    Besides `evaluate`, it exposes the stacked residual vector and its Jacobian with
    respect to the packed parameter vector [tx, ty, tz, a, b, c, (scale...)], scaled so
    that 0.5*||r||^2 == 0.5*evaluate(...)**2.
    """

    def __init__(self, P0: np.ndarray, P1: np.ndarray, *, euler_seq: str = "xyz") -> None:
        P0 = np.array(P0, dtype=np.float64).reshape(-1, 3)
        P1 = np.array(P1, dtype=np.float64).reshape(-1, 3)
        if P0.shape != P1.shape:
            raise InputDimensionError("P0 and P1 must have the same number of points")
        self.P0 = P0
        self.P1 = P1
        self.euler_seq = euler_seq

    @classmethod
    def from_store(cls, store: PointPairStore, *, euler_seq: str = "xyz") -> "ResidualEvaluator":
        P0, P1 = store.pairs()
        return cls(P0, P1, euler_seq=euler_seq)

    @property
    def n_points(self) -> int:
        return int(self.P0.shape[0])

    def evaluate(self, H: np.ndarray, scale: float | np.ndarray | None = None) -> float:
        return residual_error(self.P0, self.P1, H, scale)

    def _unpack(self, x: np.ndarray, scaling: ScalingMode) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        x = as_vector(x, 6 + SCALE_SIZE[check_scaling_mode(scaling)], "parameter vector")
        R, dR = euler_rotation_derivatives(x[3:6], self.euler_seq)
        if scaling == "anisotropic":
            s = x[6:9]
        elif scaling == "isotropic":
            s = np.full(3, x[6], dtype=np.float64)
        else:
            s = np.ones(3, dtype=np.float64)
        return x[:3], R, dR, s

    def residual_vector(self, x: np.ndarray, scaling: ScalingMode = "none") -> np.ndarray:
        t, R, _dR, s = self._unpack(x, scaling)
        Q = (R @ self.P0.T).T + t.reshape(1, 3)
        r = self.P1 - Q * s.reshape(1, 3)
        return r.reshape(-1) / np.sqrt(max(self.n_points, 1))

    def jacobian(self, x: np.ndarray, scaling: ScalingMode = "none") -> np.ndarray:
        """d(residual_vector)/dx, shape (3N, 6 + n_scale)."""
        t, R, dR, s = self._unpack(x, scaling)
        n = self.n_points
        J = np.zeros((n, 3, 6 + SCALE_SIZE[scaling]), dtype=np.float64)

        J[:, :, 0:3] = -np.diag(s).reshape(1, 3, 3)
        for k in range(3):
            J[:, :, 3 + k] = -(dR[k] @ self.P0.T).T * s.reshape(1, 3)

        if scaling != "none":
            Q = (R @ self.P0.T).T + t.reshape(1, 3)
            if scaling == "anisotropic":
                for a in range(3):
                    J[:, a, 6 + a] = -Q[:, a]
            else:
                J[:, :, 6] = -Q

        return J.reshape(3 * n, -1) / np.sqrt(max(n, 1))
