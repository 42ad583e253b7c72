"""Tests for the natural cubic spline."""

import numpy as np
import pytest

from highway_planner.planning.cubic_spline import CubicSpline1D


def test_spline_passes_through_knots():
    x = [-1.0, 0.0, 30.0, 60.0, 70.0]
    y = [0.0, 0.0, -4.0, -4.0, -4.0]
    sp = CubicSpline1D(x, y)
    for xi, yi in zip(x, y):
        assert sp.calc_position(xi) == pytest.approx(yi)


def test_natural_boundary_conditions():
    sp = CubicSpline1D([0.0, 10.0, 20.0, 30.0], [0.0, 5.0, 0.0, -5.0])
    assert sp.calc_second_derivative(0.0) == pytest.approx(0.0, abs=1e-9)
    assert sp.calc_second_derivative(30.0) == pytest.approx(0.0, abs=1e-9)


def test_linear_data_gives_linear_spline():
    sp = CubicSpline1D([0.0, 1.0, 5.0, 9.0], [1.0, 3.0, 11.0, 19.0])
    assert sp.calc_position(2.5) == pytest.approx(6.0)
    assert sp.calc_first_derivative(7.0) == pytest.approx(2.0)


def test_two_knots():
    sp = CubicSpline1D([0.0, 2.0], [0.0, 1.0])
    assert sp.calc_position(1.0) == pytest.approx(0.5)


def test_out_of_range():
    sp = CubicSpline1D([0.0, 10.0, 20.0], [0.0, 1.0, 0.0])
    assert sp.calc_position(-0.1) is None
    assert sp.calc_first_derivative(20.1) is None

    values = sp.calc_position(np.array([-1.0, 5.0, 25.0]))
    assert np.isnan(values[0])
    assert np.isfinite(values[1])
    assert np.isnan(values[2])


def test_array_matches_scalar():
    sp = CubicSpline1D([0.0, 10.0, 20.0, 30.0], [0.0, 5.0, 0.0, -5.0])
    xs = np.linspace(0.0, 30.0, 13)
    np.testing.assert_allclose(sp.calc_position(xs), [sp.calc_position(float(x)) for x in xs])


@pytest.mark.parametrize("x", [
    [0.0, 10.0, 10.0],
    [0.0, 20.0, 10.0],
])
def test_x_must_increase_strictly(x):
    with pytest.raises(ValueError):
        CubicSpline1D(x, [0.0, 1.0, 2.0])


def test_invalid_knots():
    with pytest.raises(ValueError):
        CubicSpline1D([0.0], [0.0])
    with pytest.raises(ValueError):
        CubicSpline1D([0.0, 1.0], [0.0])
