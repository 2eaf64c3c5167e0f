import numpy as np
import pytest

from quitools.fit import least_squares, robust_least_squares


def _line_design(n):
    t = np.arange(n, dtype=float)
    return np.column_stack([np.ones(n), t]), t


def test_least_squares_recovers_exact_line():
    x, t = _line_design(10)
    y = 1.0 + 2.0 * t
    b, resid = least_squares(x, y)
    np.testing.assert_allclose(b, [1.0, 2.0], atol=1e-10)
    assert resid == pytest.approx(0.0, abs=1e-9)


def test_least_squares_residual_is_norm_of_misfit():
    rng = np.random.default_rng(3)
    x = rng.normal(size=(15, 3))
    y = rng.normal(size=15)
    b, resid = least_squares(x, y)
    assert resid == pytest.approx(np.linalg.norm(y - x @ b))


def test_least_squares_matches_normal_equations():
    rng = np.random.default_rng(7)
    x = rng.normal(size=(30, 4))
    y = rng.normal(size=30)
    b, _ = least_squares(x, y)
    np.testing.assert_allclose(x.T @ (y - x @ b), np.zeros(4), atol=1e-9)


def test_least_squares_handles_rank_deficient_design():
    _, t = _line_design(8)
    x = np.column_stack([t, t])
    y = 3.0 * t
    b, resid = least_squares(x, y)
    assert resid == pytest.approx(0.0, abs=1e-9)
    np.testing.assert_allclose(x @ b, y, atol=1e-9)


def test_robust_recovers_exact_line():
    x, t = _line_design(20)
    y = 1.0 + 2.0 * t
    b, resid = robust_least_squares(x, y)
    np.testing.assert_allclose(b, [1.0, 2.0], atol=1e-8)
    assert resid == pytest.approx(0.0, abs=1e-7)


def test_robust_is_less_affected_by_outlier():
    x, t = _line_design(20)
    y = 1.0 + 2.0 * t
    y[5] += 100.0
    truth = np.array([1.0, 2.0])
    plain, _ = least_squares(x, y)
    robust, _ = robust_least_squares(x, y)
    assert np.linalg.norm(robust - truth) < np.linalg.norm(plain - truth)


def test_robust_residual_is_norm_of_misfit():
    rng = np.random.default_rng(11)
    x, t = _line_design(25)
    y = 0.5 - t + rng.normal(scale=0.1, size=25)
    b, resid = robust_least_squares(x, y)
    assert resid == pytest.approx(np.linalg.norm(y - x @ b))