from refcalib.api.io import load_calibration_result, load_point_pairs, save_calibration_result, save_point_pairs
from refcalib.optim.calibrator import CalibrationResult, ReferenceCalibrator, SolverOptions

__all__ = [
    "ReferenceCalibrator",
    "CalibrationResult",
    "SolverOptions",
    "load_point_pairs",
    "save_point_pairs",
    "load_calibration_result",
    "save_calibration_result",
]
