import pytest

from quitools.rfpulse import RFPulse
from quitools.util import QIError


def test_round_trip():
    pulse = RFPulse(0.416, 0.295, 500.0)
    doc = pulse.to_json()
    assert set(doc) == {"p1", "p2", "bandwidth"}
    assert RFPulse.from_json(doc) == pulse


def test_from_json_values():
    pulse = RFPulse.from_json({"p1": 1, "p2": 2.5, "bandwidth": 300})
    assert (pulse.p1, pulse.p2, pulse.bandwidth) == (1.0, 2.5, 300.0)


def test_missing_field_raises():
    with pytest.raises(QIError):
        RFPulse.from_json({"p1": 1.0, "p2": 2.0})