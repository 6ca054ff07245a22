import numpy as np
import pytest

from multicurve_engine.curves import (
    Curve,
    curve_from_shifted_zeros,
    curve_qc_report,
    parallel_shift_bp,
    shocked_curve_parallel,
)


@pytest.fixture(scope="module")
def curve():
    return Curve.from_zero_rates("USD-DSC", [0.25, 0.5, 1.0, 2.0, 5.0, 10.0], [0.050, 0.049, 0.047, 0.045, 0.043, 0.042])


def test_curve_knots_increasing(curve):
    assert np.all(np.diff(curve.knot_times) > 0), "Knot times must be strictly increasing"


def test_curve_discount_factors_positive_and_monotone(curve):
    dfs = np.exp(curve.knot_log_dfs)
    assert np.all(dfs > 0.0), "All discount factors must be positive"
    assert np.all(np.diff(dfs) <= 1e-10), "Discount factors should be non-increasing across knots"


def test_curve_qc_report_flags(curve):
    qc = curve_qc_report(curve)
    assert list(qc["curve"].unique()) == ["USD-DSC"]
    assert qc["df_positive"].all()
    assert qc["df_monotone"].all()
    assert np.allclose(qc["zero_cc"], curve.knot_zero_rates())


def test_knot_zero_rates_roundtrip(curve):
    assert np.allclose(curve.zero_rate(curve.knot_times), [0.050, 0.049, 0.047, 0.045, 0.043, 0.042])


def test_short_and_long_end_extrapolate_flat_zero(curve):
    assert abs(curve.zero_rate(0.01) - 0.050) < 1e-14
    assert abs(curve.zero_rate(30.0) - 0.042) < 1e-14
    assert curve.discount_factor(0.0) == pytest.approx(1.0)


def test_scalar_and_array_inputs(curve):
    assert isinstance(curve.discount_factor(1.5), float)
    out = curve.discount_factor([1.0, 2.0])
    assert isinstance(out, np.ndarray) and out.shape == (2,)


def test_log_linear_interpolation(curve):
    t = 1.5
    expected = np.exp(0.5 * (curve.knot_log_dfs[2] + curve.knot_log_dfs[3]))
    assert abs(curve.discount_factor(t) - expected) < 1e-15


def test_forward_rate_definition(curve):
    t1, t2, af = 1.0, 1.25, 0.2535
    fwd = curve.forward_rate(t1, t2, af)
    assert abs(fwd - (curve.discount_factor(t1) / curve.discount_factor(t2) - 1.0) / af) < 1e-15
    with pytest.raises(ValueError):
        curve.forward_rate(t1, t2, 0.0)


def test_invalid_knots_raise():
    with pytest.raises(ValueError):
        Curve("BAD", np.array([1.0, 1.0]), np.array([-0.01, -0.02]))
    with pytest.raises(ValueError):
        Curve("BAD", np.array([0.0, 1.0]), np.array([0.0, -0.02]))
    with pytest.raises(ValueError):
        Curve.from_discount_factors("BAD", [1.0], [-0.5])


def test_parallel_shift_is_exact_everywhere(curve):
    shocked = shocked_curve_parallel(curve, 10.0)
    for t in [0.1, 0.25, 0.7, 3.3, 10.0, 25.0]:
        assert abs(shocked.discount_factor(t) - curve.discount_factor(t) * np.exp(-0.001 * t)) < 1e-14
    assert shocked.name == curve.name
    assert shocked is not curve


def test_shifted_zeros_matches_parallel_helper(curve):
    a = curve_from_shifted_zeros(curve, parallel_shift_bp(-25))
    b = shocked_curve_parallel(curve, -25)
    assert np.allclose(a.knot_log_dfs, b.knot_log_dfs)


def test_flat_curve():
    c = Curve.flat("FLAT", 0.03)
    for t in [0.5, 1.0, 7.0]:
        assert abs(c.discount_factor(t) - np.exp(-0.03 * t)) < 1e-15
