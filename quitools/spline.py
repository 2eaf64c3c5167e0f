"""Interpolating B-spline over scattered control points."""

from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.interpolate import make_interp_spline

from .util import QIError


def _averaged_knots(params: np.ndarray, degree: int) -> np.ndarray:
    """Clamped knot vector whose interior knots average the parameter values."""
    n = params.size
    knots = np.zeros(n + degree + 1)
    knots[n:] = 1.0
    if n - 1 - degree > 0:
        windows = sliding_window_view(params[1 : n - 1], degree)
        knots[degree + 1 : n] = windows.mean(axis=1)
    return knots


class SplineInterpolator:
    """Spline through (x, y) control points, with x rescaled onto [0, 1].

    If ``indices`` is given, only those points are used, in that order.
    The spline degree is ``order``, reduced when there are too few points.
    """

    def __init__(self, x, y, order=3, indices=None):
        xs = np.asarray(x, dtype=float).ravel()
        ys = np.asarray(y, dtype=float).ravel()
        if xs.size != ys.size:
            raise QIError("Input vectors to spline must be same size")
        if xs.size == 0:
            raise QIError("Cannot create a spline with no control points")
        if indices is not None and len(indices) > 0:
            chosen = np.asarray(indices, dtype=int)
            xs = xs[chosen]
            ys = ys[chosen]

        self.min = float(xs[0])
        self.width = float(xs[-1] - self.min)
        self._constant = None
        if xs.size == 1 or self.width == 0.0:
            self._constant = float(ys[0])
            self._spline = None
            return

        scaled = (xs - self.min) / self.width
        degree = max(0, min(xs.size - 1, int(order)))
        if degree == 0:
            self._spline = make_interp_spline(scaled, ys, k=0)
        else:
            knots = _averaged_knots(scaled, degree)
            self._spline = make_interp_spline(scaled, ys, k=degree, t=knots)

    def _scale(self, x):
        return (x - self.min) / self.width

    def __call__(self, x):
        """Evaluate at a scalar (returning a float) or at an array of points."""
        values = np.asarray(x, dtype=float)
        if self._constant is not None:
            result = np.full(values.shape, self._constant)
        else:
            result = np.asarray(self._spline(self._scale(values)), dtype=float)
        if values.ndim == 0:
            return float(result)
        return result

    def __str__(self) -> str:
        return f"SPLINE Min: {self.min:g} Width: {self.width:g}\n"