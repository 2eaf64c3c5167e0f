import numpy as np
import pytest

from quitools.spline import SplineInterpolator
from quitools.util import QIError, sorted_unique_indices


def test_passes_through_control_points():
    x = np.array([0.0, 1.0, 2.5, 4.0, 7.0])
    y = np.array([1.0, -2.0, 0.5, 3.0, 2.0])
    spline = SplineInterpolator(x, y)
    np.testing.assert_allclose(spline(x), y, atol=1e-10)


def test_linear_data_is_reproduced():
    x = np.linspace(-3.0, 5.0, 9)
    y = 2.0 * x + 1.0
    spline = SplineInterpolator(x, y, 3)
    probes = np.array([-2.7, 0.3, 1.9, 4.4])
    np.testing.assert_allclose(spline(probes), 2.0 * probes + 1.0, atol=1e-10)


def test_scalar_and_array_calls_agree():
    x = np.array([0.0, 1.0, 2.0, 3.0])
    y = np.array([0.0, 1.0, 4.0, 9.0])
    spline = SplineInterpolator(x, y)
    probes = np.array([0.5, 1.5, 2.5])
    array_values = spline(probes)
    scalar_values = [spline(p) for p in probes]
    assert isinstance(scalar_values[0], float)
    np.testing.assert_allclose(array_values, scalar_values)


def test_indices_select_sorted_points():
    x = np.array([3.0, 1.0, 2.0, 1.0, 0.0])
    y = x**2
    indices = sorted_unique_indices(x)
    spline = SplineInterpolator(x, y, 3, indices)
    ordered = SplineInterpolator(np.array([0.0, 1.0, 2.0, 3.0]), np.array([0.0, 1.0, 4.0, 9.0]))
    probes = np.linspace(0.0, 3.0, 7)
    np.testing.assert_allclose(spline(probes), ordered(probes))


def test_two_points_give_straight_line():
    spline = SplineInterpolator([0.0, 2.0], [1.0, 5.0])
    assert spline(1.0) == pytest.approx(3.0)


def test_mismatched_sizes_raise():
    with pytest.raises(QIError):
        SplineInterpolator([0.0, 1.0], [1.0])


def test_empty_raises():
    with pytest.raises(QIError):
        SplineInterpolator([], [])


def test_description():
    spline = SplineInterpolator([2.0, 4.0, 6.0], [1.0, 2.0, 3.0])
    assert str(spline).startswith("SPLINE Min: 2 Width: 4")