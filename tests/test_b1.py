import math

import numpy as np
import pytest

from quitools.b1 import (
    afi,
    afi_angle,
    afi_main,
    b1_papp,
    b1_papp_main,
    dream,
    dream_angle,
    dream_main,
    main,
)
from quitools.image import Image
from quitools.imageio import read_image
from quitools.imagewrite import write_image
from quitools.util import QIError

ANGLES = np.array([20.0, 40.0, 55.0, 70.0])


def _afi_ratio(angle_deg, n):
    c = np.cos(np.radians(angle_deg))
    return (1.0 + n * c) / (n + c)


def _afi_series():
    ratio = _afi_ratio(ANGLES, 5.0).reshape(2, 2, 1)
    v1 = np.full((2, 2, 1), 3.0)
    v2 = 3.0 * ratio
    data = np.stack([v1, v2], axis=-1).astype(np.float32)
    return Image(data, spacing=(2.0, 2.0, 3.0, 1.0), origin=(1.0, -2.0, 0.5, 0.0))


def _dream_series(swap=False):
    ste = (np.tan(np.radians(ANGLES)) ** 2 / 2.0).reshape(2, 2, 1)
    fid = np.ones((2, 2, 1))
    volumes = [ste, fid] if swap else [fid, ste]
    return Image(np.stack(volumes, axis=-1).astype(np.float32))


@pytest.mark.parametrize("n", [3.0, 5.0])
@pytest.mark.parametrize("angle", [10.0, 35.0, 55.0, 80.0])
def test_afi_angle_recovers_flip(angle, n):
    assert afi_angle(_afi_ratio(angle, n), n) == pytest.approx(angle, abs=1e-9)


def test_afi_angle_clamps():
    assert afi_angle(2.0, 5.0) == 0.0
    assert afi_angle(10.0, 5.0) == pytest.approx(180.0)


@pytest.mark.parametrize("angle", [5.0, 30.0, 55.0, 85.0])
def test_dream_angle_recovers_flip(angle):
    ste = math.tan(math.radians(angle)) ** 2 / 2.0
    assert dream_angle(1.0, ste) == pytest.approx(angle, abs=1e-9)


def test_afi_on_image():
    series = _afi_series()
    b1, angle = afi(series, 55.0, 5.0)
    np.testing.assert_allclose(angle.data.ravel(), ANGLES, atol=1e-2)
    np.testing.assert_allclose(b1.data.ravel(), ANGLES / 55.0, atol=1e-3)
    assert b1.size == (2, 2, 1)
    assert b1.spacing == series.spacing[:3]
    assert b1.origin == series.origin[:3]


def test_afi_single_volume_raises():
    with pytest.raises(QIError):
        afi(Image(np.ones((2, 2, 2), dtype=np.float32)))


def test_dream_on_image():
    b1, angle = dream(_dream_series(), "f", 55.0)
    np.testing.assert_allclose(angle.data.ravel(), ANGLES, atol=1e-3)
    np.testing.assert_allclose(b1.data.ravel(), ANGLES / 55.0, atol=1e-4)


@pytest.mark.parametrize("order", ["s", "v"])
def test_dream_ste_first(order):
    _, forward = dream(_dream_series(), "f")
    _, swapped = dream(_dream_series(swap=True), order)
    np.testing.assert_allclose(swapped.data, forward.data)


def test_dream_unknown_order_is_fid_first():
    _, forward = dream(_dream_series(), "f")
    _, other = dream(_dream_series(), "x")
    np.testing.assert_array_equal(other.data, forward.data)


def test_b1_papp_ratio():
    factor = np.array([0.5, 1.0, 1.5, 2.0], dtype=np.float32).reshape(2, 2, 1)
    body = np.full((2, 2, 1), 4.0, dtype=np.float32)
    series = Image(np.stack([body, body * factor], axis=-1))
    np.testing.assert_allclose(b1_papp(series).data, factor)


def test_afi_main_writes_outputs(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIT_EXT", "NIFTI")
    path = tmp_path / "afi.nii"
    write_image(_afi_series(), path)
    prefix = str(tmp_path) + "/"
    assert afi_main([str(path), "--out", prefix, "--save"]) == 0
    b1 = read_image(tmp_path / "AFI_B1.nii")
    angle = read_image(tmp_path / "AFI_angle.nii")
    np.testing.assert_allclose(b1.data.ravel(), ANGLES / 55.0, atol=1e-3)
    np.testing.assert_allclose(angle.data.ravel(), ANGLES, atol=1e-2)


def test_afi_main_without_save(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIT_EXT", "NIFTI")
    path = tmp_path / "afi.nii"
    write_image(_afi_series(), path)
    afi_main([str(path), "-o", str(tmp_path) + "/"])
    assert (tmp_path / "AFI_B1.nii").exists()
    assert not (tmp_path / "AFI_angle.nii").exists()


def test_dream_main_writes_outputs(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIT_EXT", "NIFTI")
    path = tmp_path / "dream.nii"
    write_image(_dream_series(), path)
    assert dream_main([str(path), "-o", str(tmp_path) + "/", "-a", "55"]) == 0
    angle = read_image(tmp_path / "DREAM_angle.nii")
    b1 = read_image(tmp_path / "DREAM_B1.nii")
    np.testing.assert_allclose(angle.data.ravel(), ANGLES, atol=1e-3)
    np.testing.assert_allclose(b1.data.ravel(), ANGLES / 55.0, atol=1e-4)


def test_dream_main_rejects_long_order(tmp_path):
    with pytest.raises(SystemExit):
        dream_main([str(tmp_path / "x.nii"), "-O", "fs"])


def test_b1_papp_main_writes_output(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIT_EXT", "NIFTI")
    body = np.full((2, 2, 1), 2.0, dtype=np.float32)
    path = tmp_path / "papp.nii"
    write_image(Image(np.stack([body, body * 3.0], axis=-1)), path)
    assert b1_papp_main([str(path), "-o", str(tmp_path) + "/"]) == 0
    ratio = read_image(tmp_path / "B1minus.nii")
    np.testing.assert_allclose(ratio.data, 3.0)


def test_missing_input_raises():
    with pytest.raises(QIError, match="INPUT was not specified"):
        afi_main([])


def test_main_reports_failure(capsys):
    assert main(["afi"]) == 1
    assert "Error" in capsys.readouterr().err


def test_main_dispatches(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIT_EXT", "NIFTI")
    path = tmp_path / "afi.nii"
    write_image(_afi_series(), path)
    assert main(["afi", str(path), "-o", str(tmp_path) + "/"]) == 0
    assert (tmp_path / "AFI_B1.nii").exists()