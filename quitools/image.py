"""In-memory images with geometry, and conversion between series and vector images."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .util import QIError


@dataclass(eq=False)
class Image:
    """Voxel data with spacing, origin and direction.

    The data axes run x, y, z (and t, ...) in that order. A vector image
    has one extra trailing axis that holds the components of each voxel.
    """

    data: np.ndarray
    spacing: Optional[tuple] = None
    origin: Optional[tuple] = None
    direction: Optional[np.ndarray] = field(default=None, repr=False)
    vector: bool = False

    def __post_init__(self) -> None:
        self.data = np.asarray(self.data)
        dim = self.data.ndim - (1 if self.vector else 0)
        if dim < 1:
            raise ValueError("An image needs at least one spatial dimension")
        spacing = (1.0,) * dim if self.spacing is None else self.spacing
        origin = (0.0,) * dim if self.origin is None else self.origin
        self.spacing = tuple(float(s) for s in spacing)
        self.origin = tuple(float(o) for o in origin)
        if len(self.spacing) != dim:
            raise ValueError(f"Spacing has {len(self.spacing)} entries, image has {dim} dimensions")
        if len(self.origin) != dim:
            raise ValueError(f"Origin has {len(self.origin)} entries, image has {dim} dimensions")
        if self.direction is None:
            self.direction = np.eye(dim)
        else:
            self.direction = np.array(self.direction, dtype=float)
        if self.direction.shape != (dim, dim):
            raise ValueError(f"Direction must be a {dim}x{dim} matrix")

    @property
    def dimension(self) -> int:
        """Number of spatial dimensions."""
        return self.data.ndim - (1 if self.vector else 0)

    @property
    def size(self) -> tuple:
        """Number of voxels along each spatial axis."""
        return tuple(self.data.shape[: self.dimension])

    @property
    def ncomp(self) -> int:
        """Number of components per voxel."""
        return int(self.data.shape[-1]) if self.vector else 1

    @property
    def number_of_pixels(self) -> int:
        """Total number of voxels."""
        return int(np.prod(self.size))


def new_image_like(ref, ncomp=1):
    """A zero-filled float image with the same grid as ref.

    With ncomp greater than one the result is a vector image.
    """
    shape = tuple(ref.size) + ((ncomp,) if ncomp > 1 else ())
    return Image(
        np.zeros(shape, dtype=np.float32),
        spacing=ref.spacing,
        origin=ref.origin,
        direction=np.array(ref.direction, copy=True),
        vector=ncomp > 1,
    )


def image_to_vector(image, block_start=0, block_size=0):
    """Turn the last axis of a series into the components of a vector image.

    A block_size of zero takes the whole axis; otherwise block_size volumes
    starting at block_start become the components.
    """
    if image.vector:
        raise QIError("Input to image_to_vector must be a scalar image")
    if image.dimension < 2:
        raise QIError("Input to image_to_vector needs at least two dimensions")
    out_dim = image.dimension - 1
    length = image.size[out_dim]
    if block_size == 0:
        block_size = length
    elif block_size > length:
        raise QIError("Block size is larger than input image length.")
    elif length % block_size:
        raise QIError("Block size does not divide input image length.")
    block_end = block_start + block_size
    if block_end > length:
        raise QIError(
            f"Block end {block_end} would be greater than input length ({length})"
        )
    data = np.array(image.data[..., block_start:block_end])
    return Image(
        data,
        spacing=image.spacing[:out_dim],
        origin=image.origin[:out_dim],
        direction=image.direction[:out_dim, :out_dim],
        vector=True,
    )


def vector_to_image(image):
    """Turn the components of a vector image into a trailing image axis.

    The new axis has spacing 1 and origin 1; the direction is extended with
    the identity.
    """
    data = image.data if image.vector else image.data[..., np.newaxis]
    dim = image.dimension
    direction = np.eye(dim + 1)
    direction[:dim, :dim] = image.direction
    return Image(
        np.array(data),
        spacing=(*image.spacing, 1.0),
        origin=(*image.origin, 1.0),
        direction=direction,
    )