import json
from pathlib import Path

import numpy as np
import pytest

from refcalib.config import ConfigValidationError, load_calibration_config, parse_calibration_config
from refcalib.sim.synthetic import make_transform


def _config() -> dict:
    return {
        "schema_version": "refcalib.config.v0",
        "bounds": {"min": [-0.5, -0.5, -0.5, -1.0, -1.0, -1.0], "max": [0.5, 0.5, 0.5, 1.0, 1.0, 1.0]},
        "scaling": {
            "min": [0.5, 0.5, 0.5],
            "max": [2.0, 2.0, 2.0],
            "min_scalar": 0.8,
            "max_scalar": 1.5,
            "initial_guess": [1.0, 1.1, 0.9],
            "initial_guess_scalar": 1.2,
        },
        "initial_guess": make_transform((0.1, 0.0, 0.0), (0.0, 0.2, 0.0)).tolist(),
        "solver": {"backend": "lbfgsb", "max_iter": 200, "euler_seq": "ZYX"},
    }


def test_parse_calibration_config_ok():
    cfg = parse_calibration_config(_config())
    assert cfg.bounds is not None and cfg.bounds.upper[0] == 0.5
    assert cfg.scaling.scalar_bounds == (0.8, 1.5)
    assert cfg.solver.backend == "lbfgsb"
    assert cfg.solver.max_iter == 200
    assert cfg.solver.euler_seq == "ZYX"

    calib = cfg.build_calibrator()
    assert np.allclose(calib.params.transform_bounds.lower[:3], -0.5)
    assert np.allclose(calib.params.scale_bounds.upper, 2.0)
    assert calib.params.scalar_scale_bounds.lower == 0.8
    assert np.allclose(calib.params.scale_seed, [1.0, 1.1, 0.9])
    assert calib.params.scalar_scale_seed == 1.2
    assert np.allclose(calib.initial_guess(), np.asarray(_config()["initial_guess"]), atol=1e-12)
    assert calib.num_points == 0


def test_minimal_config_uses_defaults():
    cfg = parse_calibration_config({"schema_version": "refcalib.config.v0"})
    assert cfg.bounds is None
    assert cfg.initial_guess is None
    assert cfg.solver.backend == "trf"
    assert cfg.solver.euler_seq == "xyz"
    calib = cfg.build_calibrator()
    assert np.allclose(calib.params.transform_bounds.upper[3:], np.pi)


def test_parse_calibration_config_rejects_bad_input():
    bad_schema = dict(_config(), schema_version="refcalib.config.v9")
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(bad_schema)

    swapped = _config()
    swapped["bounds"] = {"min": swapped["bounds"]["max"], "max": swapped["bounds"]["min"]}
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(swapped)

    short = _config()
    short["bounds"]["min"] = [0.0] * 5
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(short)

    seq = _config()
    seq["solver"]["euler_seq"] = "abc"
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(seq)

    backend = _config()
    backend["solver"]["backend"] = "ipopt"
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(backend)


def test_load_calibration_config(tmp_path: Path) -> None:
    p = tmp_path / "calib.json"
    p.write_text(json.dumps(_config()), encoding="utf-8")
    cfg = load_calibration_config(p)
    assert cfg.scaling.initial_guess == (1.0, 1.1, 0.9)


def test_scale_seeds_are_kept_verbatim():
    data = _config()
    data["scaling"] = {
        "min_scalar": -2.0,
        "max_scalar": -0.5,
        "initial_guess_scalar": -1.0,
        "initial_guess": [0.0, -1.0, 2.0],
    }
    cfg = parse_calibration_config(data)
    assert cfg.scaling.initial_guess_scalar == -1.0
    calib = cfg.build_calibrator()
    assert calib.params.scalar_scale_seed == -1.0
    assert np.array_equal(calib.params.scale_seed, [0.0, -1.0, 2.0])


@pytest.mark.parametrize(
    "key,value",
    [
        ("scaling", [1.0, 2.0]),
        ("solver", "trf"),
        ("bounds", 3),
    ],
)
def test_non_object_sections_are_rejected(key, value):
    data = dict(_config(), **{key: value})
    with pytest.raises(ConfigValidationError):
        parse_calibration_config(data)


def test_non_numeric_values_are_rejected():
    cases = []
    c = _config()
    c["scaling"]["min_scalar"] = "small"
    cases.append(c)
    c = _config()
    c["scaling"]["initial_guess_scalar"] = None
    c["scaling"]["initial_guess"] = [1.0, "x", 1.0]
    cases.append(c)
    c = _config()
    c["solver"]["max_iter"] = "many"
    cases.append(c)
    c = _config()
    c["solver"]["ftol"] = "tight"
    cases.append(c)
    c = _config()
    c["solver"]["euler_seq"] = 12
    cases.append(c)
    c = _config()
    c["initial_guess"] = [["a"] * 4] * 4
    cases.append(c)
    c = _config()
    c["bounds"]["max"][2] = "one"
    cases.append(c)
    for data in cases:
        with pytest.raises(ConfigValidationError):
            parse_calibration_config(data)

    with pytest.raises(ConfigValidationError):
        parse_calibration_config(["refcalib.config.v0"])
