import numpy as np
import pytest

from quitools.image import Image, image_to_vector, new_image_like, vector_to_image
from quitools.util import QIError


def _series(shape=(2, 3, 4, 6)):
    data = np.arange(np.prod(shape), dtype=np.float32).reshape(shape)
    return Image(data, spacing=(1.0, 2.0, 3.0, 4.0), origin=(5.0, 6.0, 7.0, 8.0))


def test_defaults_fill_geometry():
    img = Image(np.zeros((2, 3, 4)))
    assert img.spacing == (1.0, 1.0, 1.0)
    assert img.origin == (0.0, 0.0, 0.0)
    assert np.array_equal(img.direction, np.eye(3))
    assert img.size == (2, 3, 4)
    assert img.ncomp == 1
    assert img.number_of_pixels == 24


def test_vector_properties():
    img = Image(np.zeros((2, 3, 4, 5)), vector=True)
    assert img.dimension == 3
    assert img.ncomp == 5
    assert img.size == (2, 3, 4)


def test_mismatched_spacing_rejected():
    with pytest.raises(ValueError):
        Image(np.zeros((2, 3, 4)), spacing=(1.0, 1.0))


def test_mismatched_direction_rejected():
    with pytest.raises(ValueError):
        Image(np.zeros((2, 3)), direction=np.eye(3))


def test_new_image_like_copies_geometry():
    ref = Image(np.ones((2, 3, 4)), spacing=(1.0, 2.0, 3.0), origin=(4.0, 5.0, 6.0))
    new = new_image_like(ref)
    assert new.size == ref.size
    assert new.spacing == ref.spacing
    assert new.origin == ref.origin
    assert not new.vector
    assert np.all(new.data == 0)
    new.direction[0, 0] = 9.0
    assert ref.direction[0, 0] == 1.0


def test_new_image_like_vector():
    ref = Image(np.ones((2, 3, 4)))
    new = new_image_like(ref, 4)
    assert new.vector
    assert new.ncomp == 4
    assert new.data.shape == (2, 3, 4, 4)


def test_image_to_vector_whole_axis():
    series = _series()
    vec = image_to_vector(series)
    assert vec.vector
    assert vec.ncomp == 6
    assert np.array_equal(vec.data, series.data)
    assert vec.spacing == (1.0, 2.0, 3.0)
    assert vec.origin == (5.0, 6.0, 7.0)
    assert np.array_equal(vec.direction, np.eye(3))


def test_image_to_vector_block():
    series = _series()
    vec = image_to_vector(series, 2, 3)
    assert vec.ncomp == 3
    assert np.array_equal(vec.data, series.data[..., 2:5])


@pytest.mark.parametrize(
    "start, size, message",
    [(0, 7, "larger"), (0, 4, "divide"), (4, 3, "Block end")],
)
def test_image_to_vector_errors(start, size, message):
    with pytest.raises(QIError, match=message):
        image_to_vector(_series(), start, size)


def test_image_to_vector_rejects_vector_input():
    with pytest.raises(QIError):
        image_to_vector(Image(np.zeros((2, 2, 2, 3)), vector=True))


def test_round_trip_series_vector_series():
    series = _series()
    back = vector_to_image(image_to_vector(series))
    assert np.array_equal(back.data, series.data)
    assert back.spacing[:3] == series.spacing[:3]
    assert back.spacing[3] == 1.0
    assert back.origin[3] == 1.0
    assert not back.vector


def test_vector_to_image_extends_direction():
    angle = np.pi / 6
    rot = np.array(
        [[np.cos(angle), -np.sin(angle), 0.0], [np.sin(angle), np.cos(angle), 0.0], [0.0, 0.0, 1.0]]
    )
    vec = Image(np.zeros((2, 2, 2, 3)), direction=rot, vector=True)
    out = vector_to_image(vec)
    assert out.dimension == 4
    assert np.allclose(out.direction[:3, :3], rot)
    assert np.array_equal(out.direction[3], [0.0, 0.0, 0.0, 1.0])
    assert out.size == (2, 2, 2, 3)