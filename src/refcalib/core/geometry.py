from __future__ import annotations

import warnings

import numpy as np
from scipy.spatial.transform import Rotation

from refcalib.errors import InputDimensionError

_AXES = {"x": 0, "y": 1, "z": 2}


def as_vector(x: object, size: int, name: str = "vector") -> np.ndarray:
    """Copy `x` into a flat float64 vector of exactly `size` components."""
    v = np.array(x, dtype=np.float64).reshape(-1)
    if v.size != size:
        raise InputDimensionError(f"{name} must have {size} components, got {v.size}")
    return v


def check_euler_seq(seq: str) -> str:
    """Validate an Euler sequence using scipy's rules ("xyz", "ZYZ", ...)."""
    seq = str(seq)
    try:
        Rotation.from_euler(seq, np.zeros(3))
    except ValueError as exc:
        raise ValueError(f"invalid Euler sequence {seq!r}: {exc}") from exc
    return seq


def euler_to_rotation(angles: np.ndarray, seq: str = "xyz") -> np.ndarray:
    angles = as_vector(angles, 3, "euler angles")
    return Rotation.from_euler(seq, angles).as_matrix()


def rotation_to_euler(R: np.ndarray, seq: str = "xyz") -> np.ndarray:
    """
    Inverse Euler decomposition of a proper rotation matrix.

    At gimbal lock scipy picks one of the equivalent solutions (third angle = 0).
    """
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message="Gimbal lock detected")
        return Rotation.from_matrix(R).as_euler(seq)


def is_rotation(R: np.ndarray, tol: float = 1e-6) -> bool:
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3) or not np.all(np.isfinite(R)):
        return False
    if np.max(np.abs(R.T @ R - np.eye(3))) > tol:
        return False
    return abs(float(np.linalg.det(R)) - 1.0) <= tol


def homogeneous(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    H = np.eye(4, dtype=np.float64)
    H[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    H[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return H


def params_to_homogeneous(x: np.ndarray, seq: str = "xyz") -> np.ndarray:
    """(tx, ty, tz, a, b, c) -> 4x4 homogeneous matrix."""
    x = as_vector(x, 6, "pose parameters")
    return homogeneous(euler_to_rotation(x[3:], seq), x[:3])


def homogeneous_to_params(H: np.ndarray, seq: str = "xyz") -> np.ndarray:
    H = np.asarray(H, dtype=np.float64)
    if H.shape != (4, 4):
        raise InputDimensionError(f"H must be 4x4, got shape {H.shape}")
    return np.concatenate([H[:3, 3], rotation_to_euler(H[:3, :3], seq)], axis=0)


def _skew(v: np.ndarray) -> np.ndarray:
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]], dtype=np.float64)


def _axis_rotation(axis: int, angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    i, j = [k for k in range(3) if k != axis]
    R = np.eye(3, dtype=np.float64)
    R[i, i] = c
    R[j, j] = c
    # Right-handed: the (i, j) plane rotates counter-clockwise around `axis`.
    sign = 1.0 if (axis + 1) % 3 == i else -1.0
    R[i, j] = -sign * s
    R[j, i] = sign * s
    return R


def euler_rotation_derivatives(angles: np.ndarray, seq: str = "xyz") -> tuple[np.ndarray, np.ndarray]:
    """
    Rotation matrix and its partial derivatives with respect to each Euler angle.

    Returns (R, dR) with R (3,3) and dR (3,3,3), dR[k] = dR/d(angle_k).
    Lowercase sequences are extrinsic (R = F2 F1 F0), uppercase intrinsic (R = F0 F1 F2),
    matching scipy's convention.
    """
    angles = as_vector(angles, 3, "euler angles")
    axes = [_AXES[c.lower()] for c in seq]
    factors = [_axis_rotation(a, float(th)) for a, th in zip(axes, angles)]
    order = [0, 1, 2] if seq.isupper() else [2, 1, 0]

    R = factors[order[0]] @ factors[order[1]] @ factors[order[2]]
    dR = np.empty((3, 3, 3), dtype=np.float64)
    for k in range(3):
        gen = np.zeros(3, dtype=np.float64)
        gen[axes[k]] = 1.0
        mats = [(_skew(gen) @ factors[i]) if i == k else factors[i] for i in order]
        dR[k] = mats[0] @ mats[1] @ mats[2]
    return R, dR
