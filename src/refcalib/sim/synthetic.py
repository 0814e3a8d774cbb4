from __future__ import annotations

import numpy as np

from refcalib.core.geometry import as_vector, params_to_homogeneous
from refcalib.core.residual import apply_transform


def make_transform(
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0),
    euler: tuple[float, float, float] = (0.0, 0.0, 0.0),
    *,
    euler_seq: str = "xyz",
) -> np.ndarray:
    x = np.concatenate([as_vector(translation, 3, "translation"), as_vector(euler, 3, "euler")])
    return params_to_homogeneous(x, euler_seq)


def _sample_points(n: int, extent_m: float, rng: np.random.Generator) -> np.ndarray:
    # Corners of a tetrahedron first so that any n >= 4 is non-coplanar.
    base = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)
    base = (base - 0.25) * extent_m
    if n <= base.shape[0]:
        return base[:n].copy()
    extra = rng.uniform(-0.5 * extent_m, 0.5 * extent_m, size=(n - base.shape[0], 3))
    return np.concatenate([base, extra], axis=0)


def synthetic_point_pairs(
    *,
    n: int = 8,
    H: np.ndarray | None = None,
    scale: float | np.ndarray | None = None,
    extent_m: float = 0.5,
    noise_std_m: float = 0.0,
    seed: int = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Matched pairs (P0, P1) with P1 = S*H*P0 (+ optional isotropic Gaussian noise on P1).
    """
    if n < 1:
        raise ValueError("n must be >= 1")
    rng = np.random.default_rng(seed)
    H = np.eye(4, dtype=np.float64) if H is None else np.asarray(H, dtype=np.float64)
    P0 = _sample_points(int(n), float(extent_m), rng)
    P1 = apply_transform(H, P0, scale)
    if noise_std_m > 0.0:
        P1 = P1 + rng.normal(0.0, float(noise_std_m), size=P1.shape)
    return P0, P1
