"""One-dimensional minimisation by golden-section search."""

from __future__ import annotations

import math
from typing import Callable

_GOLDEN_RATIO = (math.sqrt(5.0) + 1.0) / 2.0


def golden_section_search(f: Callable[[float], float], a: float, b: float, tol: float) -> float:
    """Find the minimum of a unimodal function f on [a, b].

    The search stops once the two interior probe points are within tol of
    each other, and the middle of the remaining bracket is returned.
    """
    c = b - (b - a) / _GOLDEN_RATIO
    d = a + (b - a) / _GOLDEN_RATIO
    while abs(c - d) > tol:
        if f(c) < f(d):
            b = d
        else:
            a = c
        c = b - (b - a) / _GOLDEN_RATIO
        d = a + (b - a) / _GOLDEN_RATIO
    return (b + a) / 2.0