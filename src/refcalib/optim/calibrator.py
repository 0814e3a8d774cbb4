from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from loguru import logger

from refcalib.core.geometry import check_euler_seq, params_to_homogeneous
from refcalib.core.params import ParameterSpace, ScalingMode, check_scaling_mode
from refcalib.core.points import PointPairStore
from refcalib.core.residual import ResidualEvaluator
from refcalib.errors import InsufficientDataError, SolverNonConvergenceError
from refcalib.optim.backend import BoundedProblem, NLPBackend, make_backend

MIN_POINTS = 3


@dataclass(frozen=True)
class SolverOptions:
    backend: str = "trf"
    max_iter: int = 1000
    euler_seq: str = "xyz"
    ftol: float = 1e-12
    xtol: float = 1e-12
    gtol: float = 1e-12

    def make_backend(self) -> NLPBackend:
        return make_backend(self.backend, max_iter=self.max_iter, ftol=self.ftol, xtol=self.xtol, gtol=self.gtol)


@dataclass(frozen=True)
class CalibrationResult:
    H: np.ndarray  # (4,4)
    scale: float | np.ndarray | None  # None / float / (3,) depending on `scaling`
    error: float
    scaling: str
    diagnostics: dict[str, float] = field(default_factory=dict)


class ReferenceCalibrator:
    """
    Find the roto-translation H (and optionally the scale factors S) that maps a set of
    3D points p0 onto their matches p1:

      (H, S) = argmin sqrt( 1/N sum_i || p1_i - S H p0_i ||^2 )

    with H parameterized by a translation and three Euler angles, all of them (and the
    scale factors) restricted to a box.
    """

    def __init__(self, options: SolverOptions | None = None) -> None:
        self.options = options if options is not None else SolverOptions()
        check_euler_seq(self.options.euler_seq)
        self.points = PointPairStore()
        self.params = ParameterSpace(euler_seq=self.options.euler_seq)

    # Point database.

    def add_points(self, p0: np.ndarray, p1: np.ndarray) -> None:
        self.points.add(p0, p1)

    @property
    def num_points(self) -> int:
        return self.points.count()

    def get_points(self) -> tuple[np.ndarray, np.ndarray]:
        return self.points.pairs()

    def clear_points(self) -> None:
        self.points.clear()

    # Parameter space.

    def set_bounds(self, lower: np.ndarray, upper: np.ndarray) -> None:
        self.params.set_transform_bounds(lower, upper)

    def set_scaling_bounds(self, lower: float | np.ndarray, upper: float | np.ndarray) -> None:
        self.params.set_scale_bounds(lower, upper)

    def set_initial_guess(self, H: np.ndarray) -> None:
        self.params.set_initial_guess(H)

    def initial_guess(self) -> np.ndarray:
        return self.params.initial_guess()

    def set_scaling_initial_guess(self, s: float | np.ndarray) -> None:
        self.params.set_scale_initial_guess(s)

    # Evaluation and calibration.

    def evaluate(self, H: np.ndarray, scale: float | np.ndarray | None = None) -> float:
        return ResidualEvaluator.from_store(self.points, euler_seq=self.options.euler_seq).evaluate(H, scale)

    def calibrate(self, *, scaling: ScalingMode = "none") -> CalibrationResult:
        """
        Solve for H (scaling="none"), H and diag(s1,s2,s3) (scaling="anisotropic") or H
        and a single factor s (scaling="isotropic").

        Raises InsufficientDataError with fewer than 3 pairs and
        SolverNonConvergenceError when the backend does not report convergence.
        """
        check_scaling_mode(scaling)
        n = self.points.count()
        if n < MIN_POINTS:
            raise InsufficientDataError(f"need >= {MIN_POINTS} point pairs, got {n}")

        evaluator = ResidualEvaluator.from_store(self.points, euler_seq=self.options.euler_seq)
        x_full, lower, upper = self.params.packed(scaling)

        # Variables pinned by lower == upper are not handed to the backend.
        free = lower < upper
        x_fixed = np.where(free, x_full, lower)
        x_start = np.clip(x_full, lower, upper)
        if np.any(x_start != x_full):
            logger.warning(f"initial guess outside the bounds, clipped: {x_full.tolist()} -> {x_start.tolist()}")

        def expand(z: np.ndarray) -> np.ndarray:
            x = x_fixed.copy()
            x[free] = z
            return x

        def residuals(z: np.ndarray) -> np.ndarray:
            return evaluator.residual_vector(expand(z), scaling)

        def jacobian(z: np.ndarray) -> np.ndarray:
            return evaluator.jacobian(expand(z), scaling)[:, free]

        backend = self.options.make_backend()
        logger.debug(
            f"calibrate: scaling={scaling} backend={backend.name} n_points={n} "
            f"n_free={int(np.sum(free))}/{free.size}"
        )

        if not np.any(free):
            # Nothing to optimize: every variable is pinned by its bounds.
            x_opt = x_fixed
            r = evaluator.residual_vector(x_opt, scaling)
            diag = {"opt_cost": 0.5 * float(r @ r), "opt_nfev": 0.0, "opt_nit": 0.0, "opt_status": 0.0, "opt_success": 1.0}
        else:
            problem = BoundedProblem(
                residuals=residuals,
                jacobian=jacobian,
                x0=x_start[free],
                lower=lower[free],
                upper=upper[free],
            )
            try:
                outcome = backend.solve(problem)
            except (ValueError, ArithmeticError) as exc:
                raise SolverNonConvergenceError(f"{backend.name} backend failed: {exc}") from exc
            if not outcome.success or not np.all(np.isfinite(outcome.x)):
                raise SolverNonConvergenceError(
                    f"{backend.name} backend did not converge (status={outcome.status}): {outcome.message}"
                )
            x_opt = expand(np.clip(outcome.x, lower[free], upper[free]))
            diag = {
                "opt_cost": outcome.cost,
                "opt_nfev": float(outcome.nfev),
                "opt_nit": float(outcome.nit),
                "opt_status": float(outcome.status),
                "opt_success": float(outcome.success),
            }

        H = params_to_homogeneous(x_opt[:6], self.options.euler_seq)
        scale: float | np.ndarray | None
        if scaling == "anisotropic":
            scale = x_opt[6:9].copy()
        elif scaling == "isotropic":
            scale = float(x_opt[6])
        else:
            scale = None

        error = evaluator.evaluate(H, scale)
        logger.info(f"calibration ({scaling}) done: error={error:.6g} over {n} pairs")
        return CalibrationResult(H=H, scale=scale, error=error, scaling=scaling, diagnostics=diag)
