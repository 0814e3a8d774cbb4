"""
Bound-constrained NLP backends.

The calibrator only talks to `BoundedProblem` (residuals + Jacobian + box + start) and
`SolverOutcome` (best point + status), so the optimizer can be swapped without touching
the problem formulation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np
from loguru import logger


@dataclass(frozen=True)
class BoundedProblem:
    residuals: Callable[[np.ndarray], np.ndarray]
    jacobian: Callable[[np.ndarray], np.ndarray]
    x0: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    def objective(self, x: np.ndarray) -> float:
        r = self.residuals(x)
        return 0.5 * float(r @ r)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        return self.jacobian(x).T @ self.residuals(x)


@dataclass(frozen=True)
class SolverOutcome:
    x: np.ndarray
    cost: float
    success: bool
    status: int
    message: str
    nfev: int
    nit: int


class NLPBackend(Protocol):
    name: str

    def solve(self, problem: BoundedProblem) -> SolverOutcome: ...


@dataclass(frozen=True)
class LeastSquaresBackend:
    """Trust-region reflective least squares (scipy)."""

    max_nfev: int = 1000
    ftol: float = 1e-12
    xtol: float = 1e-12
    gtol: float = 1e-12
    name: str = "trf"

    def solve(self, problem: BoundedProblem) -> SolverOutcome:
        from scipy.optimize import least_squares  # type: ignore

        sol = least_squares(
            problem.residuals,
            problem.x0,
            jac=problem.jacobian,
            bounds=(problem.lower, problem.upper),
            method="trf",
            loss="linear",
            ftol=float(self.ftol),
            xtol=float(self.xtol),
            gtol=float(self.gtol),
            max_nfev=int(self.max_nfev),
        )
        logger.debug(f"trf finished: status={sol.status} nfev={sol.nfev} cost={sol.cost:.3e} ({sol.message})")
        return SolverOutcome(
            x=np.asarray(sol.x, dtype=np.float64).copy(),
            cost=float(sol.cost),
            # status 0 means the evaluation budget ran out.
            success=bool(sol.success) and int(sol.status) > 0,
            status=int(sol.status),
            message=str(sol.message),
            nfev=int(sol.nfev),
            nit=int(sol.njev) if sol.njev is not None else int(sol.nfev),
        )


@dataclass(frozen=True)
class LbfgsbBackend:
    """Quasi-Newton on the scalar cost 0.5*||r||^2 with the analytic gradient."""

    max_iter: int = 1000
    ftol: float = 1e-12
    gtol: float = 1e-8
    name: str = "lbfgsb"

    def solve(self, problem: BoundedProblem) -> SolverOutcome:
        from scipy.optimize import minimize  # type: ignore

        def fun(x: np.ndarray) -> tuple[float, np.ndarray]:
            r = problem.residuals(x)
            return 0.5 * float(r @ r), problem.jacobian(x).T @ r

        sol = minimize(
            fun,
            problem.x0,
            jac=True,
            method="L-BFGS-B",
            bounds=list(zip(problem.lower.tolist(), problem.upper.tolist())),
            options={"maxiter": int(self.max_iter), "ftol": float(self.ftol), "gtol": float(self.gtol)},
        )
        logger.debug(f"L-BFGS-B finished: status={sol.status} nit={sol.nit} cost={sol.fun:.3e} ({sol.message})")
        return SolverOutcome(
            x=np.asarray(sol.x, dtype=np.float64).copy(),
            cost=float(sol.fun),
            success=bool(sol.success),
            status=int(sol.status),
            message=str(sol.message),
            nfev=int(sol.nfev),
            nit=int(sol.nit),
        )


BACKENDS = ("trf", "lbfgsb")


def make_backend(
    name: str = "trf",
    *,
    max_iter: int = 1000,
    ftol: float = 1e-12,
    xtol: float = 1e-12,
    gtol: float = 1e-12,
) -> NLPBackend:
    if max_iter < 1:
        raise ValueError("max_iter must be >= 1")
    if name == "trf":
        return LeastSquaresBackend(max_nfev=int(max_iter), ftol=ftol, xtol=xtol, gtol=gtol)
    if name == "lbfgsb":
        # The scalar cost is tiny near an exact fit; keep its gradient tolerance looser.
        return LbfgsbBackend(max_iter=int(max_iter), ftol=ftol, gtol=max(gtol, 1e-8))
    raise ValueError(f"backend must be one of {BACKENDS}, got {name!r}")
