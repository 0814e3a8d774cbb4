from __future__ import annotations

import numpy as np

from refcalib.core.geometry import as_vector


class PointPairStore:
    """
    Ordered database of matched 3D points (p0_i, p1_i).

    p1_i is the point p0_i is expected to map to under S*H. Duplicates are allowed.
    """

    def __init__(self) -> None:
        self._p0: list[np.ndarray] = []
        self._p1: list[np.ndarray] = []

    def add(self, p0: np.ndarray, p1: np.ndarray) -> None:
        # Validate both before touching the lists.
        a = as_vector(p0, 3, "p0")
        b = as_vector(p1, 3, "p1")
        self._p0.append(a)
        self._p1.append(b)

    def count(self) -> int:
        return len(self._p0)

    def __len__(self) -> int:
        return len(self._p0)

    def pairs(self) -> tuple[np.ndarray, np.ndarray]:
        """Copies of the stored points as (N,3) arrays, in insertion order."""
        if not self._p0:
            empty = np.zeros((0, 3), dtype=np.float64)
            return empty, empty.copy()
        return np.stack(self._p0, axis=0), np.stack(self._p1, axis=0)

    def clear(self) -> None:
        self._p0.clear()
        self._p1.clear()
