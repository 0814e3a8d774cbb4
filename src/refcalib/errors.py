from __future__ import annotations


class CalibrationError(Exception):
    pass


class InputDimensionError(CalibrationError, ValueError):
    """A vector or matrix does not have the required size."""


class InvalidBoundsError(CalibrationError, ValueError):
    """Inconsistent bounds or an invalid initial guess."""


class InsufficientDataError(CalibrationError, ValueError):
    pass


class SolverNonConvergenceError(CalibrationError, RuntimeError):
    pass
