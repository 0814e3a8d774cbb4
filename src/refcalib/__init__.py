from loguru import logger

from refcalib.api import (
    CalibrationResult,
    ReferenceCalibrator,
    SolverOptions,
    load_calibration_result,
    load_point_pairs,
    save_calibration_result,
    save_point_pairs,
)
from refcalib.config import CalibrationConfig, ConfigValidationError, load_calibration_config, parse_calibration_config
from refcalib.errors import (
    CalibrationError,
    InputDimensionError,
    InsufficientDataError,
    InvalidBoundsError,
    SolverNonConvergenceError,
)

__all__ = [
    "ReferenceCalibrator",
    "CalibrationResult",
    "SolverOptions",
    "CalibrationConfig",
    "ConfigValidationError",
    "load_calibration_config",
    "parse_calibration_config",
    "load_point_pairs",
    "save_point_pairs",
    "load_calibration_result",
    "save_calibration_result",
    "CalibrationError",
    "InputDimensionError",
    "InvalidBoundsError",
    "InsufficientDataError",
    "SolverNonConvergenceError",
]

# Library logs stay silent unless the application opts in with logger.enable("refcalib").
logger.disable("refcalib")
