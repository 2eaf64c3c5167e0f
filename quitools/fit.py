"""Linear least-squares solvers, plain and robust (Huber-weighted)."""

from __future__ import annotations

import numpy as np
from scipy.linalg import qr, solve_triangular

_HUBER_TUNE = 1.345
_MAX_ITERATIONS = 20
_MAD_SCALE = 0.6745


def _qr_solve(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Solve x b = y in the least-squares sense by column-pivoted QR."""
    q, r, perm = qr(x, mode="economic", pivoting=True)
    diag = np.abs(np.diag(r))
    b = np.zeros(x.shape[1])
    if diag.size == 0 or diag[0] == 0.0:
        return b
    threshold = np.finfo(float).eps * diag.size * diag[0]
    rank = int(np.count_nonzero(diag > threshold))
    z = q[:, :rank].T @ y
    b[perm[:rank]] = solve_triangular(r[:rank, :rank], z)
    return b


def _standard_dev(x: np.ndarray) -> float:
    return float(np.sqrt(np.sum((x - x.mean()) ** 2) / (x.size - 1)))


def _mad_sigma(residuals: np.ndarray, n_params: int) -> float:
    sorted_abs = np.sort(np.abs(residuals))
    index = (sorted_abs.size + n_params) // 2
    return float(sorted_abs[index] / _MAD_SCALE)


def least_squares(x, y):
    """Solve X b = y by least squares.

    Returns the coefficients and the norm of the residual y - X b.
    """
    xm = np.asarray(x, dtype=float)
    yv = np.asarray(y, dtype=float)
    b = _qr_solve(xm, yv)
    return b, float(np.linalg.norm(yv - xm @ b))


def robust_least_squares(x, y):
    """Solve X b = y by iteratively reweighted least squares with Huber weights.

    Returns the coefficients and the norm of the unweighted residual.
    """
    xm = np.asarray(x, dtype=float)
    yv = np.asarray(y, dtype=float)
    n_params = xm.shape[1]

    sig_y = _standard_dev(yv)
    sig_lower = 1.0 if sig_y == 0 else 1e-6 * sig_y

    b = _qr_solve(xm, yv)
    q, _, _ = qr(xm, mode="economic", pivoting=True)
    leverage = np.sum(q**2, axis=1)
    with np.errstate(invalid="ignore"):
        corr_fac = np.sqrt(1.0 - leverage)

    tolerance = np.sqrt(np.finfo(float).eps)
    for _ in range(_MAX_ITERATIONS - 1):
        residuals = yv - xm @ b
        sigma = _mad_sigma(residuals, n_params)
        with np.errstate(divide="ignore", invalid="ignore"):
            scaled = residuals / (_HUBER_TUNE * max(sigma, sig_lower) * corr_fac)
            weights = 1.0 / np.maximum(np.abs(scaled), 1.0)
        b_prev = b
        b = _qr_solve(weights[:, np.newaxis] * xm, weights * yv)
        if np.all(np.abs(b - b_prev) < tolerance):
            break

    return b, float(np.linalg.norm(yv - xm @ b))