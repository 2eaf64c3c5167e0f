"""Writing scalar, complex-magnitude, scaled and vector images to NIfTI files."""

from __future__ import annotations

import os

import numpy as np

from .image import Image, vector_to_image
from .imageio import _write_nifti
from .util import QIError, log


def _safe_divide(numerator, denominator, dtype):
    """Element-wise division cast to dtype; a zero divisor gives the type's maximum."""
    out_type = np.dtype(dtype)
    num = np.asarray(numerator)
    den = np.broadcast_to(np.asarray(denominator), num.shape)
    if out_type.kind in "fc":
        limit = np.finfo(out_type).max
    else:
        limit = np.iinfo(out_type).max
    zero = den == 0
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        quotient = num / np.where(zero, 1, den)
        return np.where(zero, limit, quotient).astype(out_type)


def _with_data(image: Image, data, vector: bool) -> Image:
    return Image(
        data,
        spacing=image.spacing,
        origin=image.origin,
        direction=image.direction,
        vector=vector,
    )


def write_image(image, path, verbose=False):
    """Write an image; vector images are written as a series, one volume per component."""
    if image.vector:
        write_vector_image(image, path, verbose)
        return
    log(verbose, "Writing image: {}", path)
    _write_nifti(image, os.fspath(path))


def write_vector_image(image, path, verbose=False):
    """Write a vector image as a series with one trailing volume per component.

    A scalar image is written as a series with a single volume.
    """
    series = vector_to_image(image)
    log(verbose, "Writing image: {}", path)
    _write_nifti(series, os.fspath(path))


def write_magnitude_image(image, path, verbose=False):
    """Write the magnitude of a (complex) image."""
    if image.vector:
        series = vector_to_image(image)
        magnitude = _with_data(series, np.abs(series.data), vector=False)
        log(verbose, "Writing magnitude image: {}", path)
        _write_nifti(magnitude, os.fspath(path))
        return
    write_image(_with_data(image, np.abs(image.data), vector=False), path, verbose)


def write_scaled_image(image, scale, path, verbose=False):
    """Divide an image voxel-wise by a scale volume, then write it.

    Vector images have every component divided by the same scale value.
    Where the scale is zero the written value is the largest of the pixel type.
    """
    scale_data = scale.data if isinstance(scale, Image) else np.asarray(scale)
    if tuple(scale_data.shape) != tuple(image.size):
        raise QIError(
            f"Scale image size {tuple(scale_data.shape)} does not match image size {image.size}"
        )
    denominator = scale_data[..., np.newaxis] if image.vector else scale_data
    data = _safe_divide(image.data, denominator, image.data.dtype)
    write_image(_with_data(image, data, vector=image.vector), path, verbose)