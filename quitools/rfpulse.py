"""RF pulse description as stored in sequence JSON."""

from __future__ import annotations

from dataclasses import dataclass

from .jsonio import get_json


@dataclass(frozen=True)
class RFPulse:
    """Pulse shape integrals p1, p2 and bandwidth."""

    p1: float
    p2: float
    bandwidth: float

    @classmethod
    def from_json(cls, doc):
        """Build from a JSON object with p1, p2 and bandwidth."""
        return cls(
            float(get_json(doc, "p1")),
            float(get_json(doc, "p2")),
            float(get_json(doc, "bandwidth")),
        )

    def to_json(self):
        """JSON object in the form from_json reads."""
        return {"p1": self.p1, "p2": self.p2, "bandwidth": self.bandwidth}