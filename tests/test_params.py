import numpy as np
import pytest

from refcalib.core.params import ParameterSpace
from refcalib.errors import InputDimensionError, InvalidBoundsError
from refcalib.sim.synthetic import make_transform


def test_defaults():
    ps = ParameterSpace()
    tb = ps.transform_bounds
    assert np.allclose(tb.lower, [-1, -1, -1, -np.pi, -np.pi, -np.pi])
    assert np.allclose(tb.upper, [1, 1, 1, np.pi, np.pi, np.pi])
    assert np.allclose(ps.scale_bounds.lower, 0.1) and np.allclose(ps.scale_bounds.upper, 10.0)
    assert ps.scalar_scale_bounds.lower == 0.1 and ps.scalar_scale_bounds.upper == 10.0
    assert np.allclose(ps.x0, 0.0)
    assert np.allclose(ps.scale_seed, 1.0)
    assert ps.scalar_scale_seed == 1.0


def test_transform_bounds_min_gt_max_is_rejected_and_keeps_previous():
    ps = ParameterSpace()
    lo = np.array([-0.5, -0.5, -0.5, -1.0, -1.0, -1.0])
    hi = np.array([0.5, 0.5, 0.5, 1.0, 1.0, 1.0])
    ps.set_transform_bounds(lo, hi)

    bad_lo = lo.copy()
    bad_lo[4] = 2.0
    with pytest.raises(InvalidBoundsError):
        ps.set_transform_bounds(bad_lo, hi)
    with pytest.raises(InputDimensionError):
        ps.set_transform_bounds(lo[:5], hi)

    tb = ps.transform_bounds
    assert np.array_equal(tb.lower, lo)
    assert np.array_equal(tb.upper, hi)


def test_scale_bounds_variants_are_independent():
    ps = ParameterSpace()
    ps.set_scale_bounds(0.5, 2.0)
    assert ps.scalar_scale_bounds.lower == 0.5 and ps.scalar_scale_bounds.upper == 2.0
    assert np.allclose(ps.scale_bounds.lower, 0.1)

    ps.set_scale_bounds([0.2, 0.3, 0.4], [3.0, 4.0, 5.0])
    assert np.allclose(ps.scale_bounds.upper, [3.0, 4.0, 5.0])
    assert ps.scalar_scale_bounds.upper == 2.0

    with pytest.raises(InvalidBoundsError):
        ps.set_scale_bounds(3.0, 2.0)
    with pytest.raises(InputDimensionError):
        ps.set_scale_bounds([0.1, 0.1], [1.0, 1.0])


def test_initial_guess_roundtrip():
    ps = ParameterSpace()
    H0 = make_transform((0.1, -0.3, 0.2), (0.5, -0.4, 1.2))
    ps.set_initial_guess(H0)
    assert np.allclose(ps.initial_guess(), H0, atol=1e-12)
    assert np.allclose(ps.x0[:3], [0.1, -0.3, 0.2])


def test_initial_guess_roundtrip_zyz_gimbal_lock():
    ps = ParameterSpace(euler_seq="ZYZ")
    H0 = make_transform((0.0, 0.2, 0.0), (0.0, 0.0, 0.0), euler_seq="ZYZ")
    ps.set_initial_guess(H0)
    assert np.allclose(ps.initial_guess(), H0, atol=1e-12)


def test_initial_guess_rejects_invalid_rotation():
    ps = ParameterSpace()
    H = np.eye(4)
    H[:3, :3] = np.diag([1.0, 1.0, -1.0])
    with pytest.raises(InvalidBoundsError):
        ps.set_initial_guess(H)
    H = np.eye(4)
    H[0, 1] = 0.1
    with pytest.raises(InvalidBoundsError):
        ps.set_initial_guess(H)
    with pytest.raises(InputDimensionError):
        ps.set_initial_guess(np.eye(3))
    assert np.allclose(ps.x0, 0.0)


def test_scale_initial_guess():
    ps = ParameterSpace()
    ps.set_scale_initial_guess([1.5, 2.0, 0.5])
    ps.set_scale_initial_guess(3.0)
    assert np.allclose(ps.scale_seed, [1.5, 2.0, 0.5])
    assert ps.scalar_scale_seed == 3.0
    with pytest.raises(InputDimensionError):
        ps.set_scale_initial_guess([1.0, 1.0])
    with pytest.raises(InvalidBoundsError):
        ps.set_scale_initial_guess(float("nan"))
    with pytest.raises(InvalidBoundsError):
        ps.set_scale_initial_guess([1.0, np.inf, 1.0])


def test_scale_seed_inside_a_negative_box_is_stored_verbatim():
    ps = ParameterSpace()
    ps.set_scale_bounds(-2.0, -0.5)
    ps.set_scale_initial_guess(-1.0)
    ps.set_scale_initial_guess([0.0, -1.0, 2.0])
    assert ps.scalar_scale_seed == -1.0
    assert np.array_equal(ps.scale_seed, [0.0, -1.0, 2.0])
    x0, lo, hi = ps.packed("isotropic")
    assert x0[6] == -1.0 and lo[6] == -2.0 and hi[6] == -0.5


def test_packed_layout():
    ps = ParameterSpace()
    x0, lo, hi = ps.packed("none")
    assert x0.shape == lo.shape == hi.shape == (6,)
    x0, lo, hi = ps.packed("anisotropic")
    assert x0.shape == (9,) and np.allclose(x0[6:], 1.0) and np.allclose(lo[6:], 0.1)
    x0, lo, hi = ps.packed("isotropic")
    assert x0.shape == (7,) and hi[6] == 10.0
    with pytest.raises(ValueError):
        ps.packed("diagonal")
