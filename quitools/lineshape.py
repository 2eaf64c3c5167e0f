"""Absorption lineshapes for bound-pool magnetisation transfer."""

from __future__ import annotations

import enum
import math
import warnings
from dataclasses import dataclass, field

import numpy as np
from scipy.integrate import IntegrationWarning, quad

from .jsonio import array_from_json, get_json


class Lineshapes(enum.Enum):
    GAUSSIAN = "Gaussian"
    LORENTZIAN = "Lorentzian"
    SUPER_LORENTZIAN = "SuperLorentzian"
    INTERPOLATED = "Interpolated"


def gaussian(f0, t2b):
    """Gaussian lineshape at frequency offsets f0."""
    f = np.asarray(f0, dtype=float)
    return math.sqrt(1.0 / (2.0 * math.pi)) * t2b * np.exp(-((2.0 * math.pi * f * t2b) ** 2) / 2.0)


def lorentzian(f0, t2b):
    """Lorentzian lineshape at frequency offsets f0."""
    f = np.asarray(f0, dtype=float)
    return t2b / (1.0 + (2.0 * math.pi * f * t2b) ** 2)


_MAGIC_ANGLE = 1.0 / math.sqrt(3.0)


def _super_lorentzian_point(df0: float, t2b: float) -> float:
    def integrand(u: float) -> float:
        uterm = abs(t2b / (3.0 * u * u - 1.0))
        return math.sqrt(2.0 / math.pi) * uterm * math.exp(
            -2.0 * (2.0 * math.pi * df0 * uterm) ** 2
        )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", IntegrationWarning)
        value, _ = quad(
            integrand,
            0.0,
            1.0,
            points=[_MAGIC_ANGLE],
            epsabs=0.0,
            epsrel=50.0 * np.finfo(float).eps,
            limit=200,
        )
    return value


def super_lorentzian(f0, t2b):
    """Super-Lorentzian lineshape, integrated over orientations, at offsets f0."""
    f = np.asarray(f0, dtype=float)
    values = np.array([_super_lorentzian_point(float(v), t2b) for v in f.ravel()])
    return values.reshape(f.shape)


@dataclass(eq=False)
class InterpLineshape:
    """Lineshape tabulated on a regular frequency grid, cubically interpolated.

    Evaluating at a different T2 rescales the frequency axis and the values.
    """

    freq_min: float
    freq_step: float
    freq_count: int
    values: np.ndarray = field(repr=False)
    t2_nominal: float = 1e-6

    def __post_init__(self) -> None:
        self.values = np.asarray(self.values, dtype=float)

    def _cubic(self, x: np.ndarray) -> np.ndarray:
        end = self.values.size
        xs = np.clip(x, 0.0, max(end - 1, 0))
        n = np.maximum(0, np.minimum(xs.astype(int), end - 2))

        def at(k):
            return self.values[np.clip(k, 0, end - 1)]

        p0, p1, p2, p3 = at(n - 1), at(n), at(n + 1), at(n + 2)
        rel = xs - n
        a = 0.5 * (-p0 + 3.0 * p1 - 3.0 * p2 + p3)
        b = 0.5 * (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3)
        c = 0.5 * (-p0 + p2)
        return ((a * rel + b) * rel + c) * rel + p1

    def __call__(self, f, t2):
        """Lineshape at offsets f for bound-pool T2 t2."""
        freqs = np.asarray(f, dtype=float)
        scale = t2 / self.t2_nominal
        sf = (np.abs(freqs) * scale - self.freq_min) / self.freq_step
        interp = self._cubic(sf)
        result = np.where(
            sf < 0.0,
            self.values[0],
            np.where(sf > self.freq_count - 1.0, self.values[self.freq_count - 1], interp),
        ) * scale
        if freqs.ndim == 0:
            return float(result)
        return result

    @classmethod
    def from_json(cls, doc):
        """Build from a JSON object with T2_nominal, freq_min, freq_step, freq_count, values."""
        t2_nominal = float(get_json(doc, "T2_nominal"))
        freq_min = float(get_json(doc, "freq_min"))
        freq_step = float(get_json(doc, "freq_step"))
        freq_count = int(get_json(doc, "freq_count"))
        values = array_from_json(doc, "values", 1.0)
        return cls(freq_min, freq_step, freq_count, values, t2_nominal)

    def to_json(self):
        """JSON object in the form from_json reads."""
        return {
            "T2_nominal": self.t2_nominal,
            "freq_min": self.freq_min,
            "freq_step": self.freq_step,
            "freq_count": self.freq_count,
            "values": self.values.tolist(),
        }