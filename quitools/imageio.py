"""Reading NIfTI-1 images, single-file (.nii, .nii.gz) or header/image pairs."""

from __future__ import annotations

import gzip
import math
import os
import struct
from dataclasses import dataclass, field

import numpy as np

from .image import Image, image_to_vector
from .util import QIError, log

_HEADER_SIZE = 348
_SINGLE_OFFSET = 352
_SINGLE_MAGIC = b"n+1\x00"
_PAIR_MAGIC = b"ni1\x00"

_DTYPES = {
    2: "u1",
    4: "i2",
    8: "i4",
    16: "f4",
    32: "c8",
    64: "f8",
    256: "i1",
    512: "u2",
    768: "u4",
    1024: "i8",
    1280: "u8",
    1792: "c16",
}
_CODES = {(np.dtype(v).kind, np.dtype(v).itemsize): k for k, v in _DTYPES.items()}
_COMPONENT_NAMES = {
    "u1": "unsigned_char",
    "i1": "char",
    "i2": "short",
    "u2": "unsigned_short",
    "i4": "int",
    "u4": "unsigned_int",
    "i8": "long",
    "u8": "unsigned_long",
    "f4": "float",
    "f8": "double",
    "c8": "float",
    "c16": "double",
}
_LPS_FLIP = np.array([-1.0, -1.0, 1.0])


@dataclass(frozen=True)
class ImageHeader:
    """Header information of an image file."""

    path: str
    dimensions: tuple
    spacing: tuple
    origin: tuple
    direction: np.ndarray = field(repr=False)
    pixel_type: str
    component_type: str
    metadata: dict = field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return len(self.dimensions)


@dataclass(frozen=True)
class _Nifti:
    endian: str
    dims: tuple
    datatype: int
    pixdim: tuple
    vox_offset: float
    scl_slope: float
    scl_inter: float
    qform_code: int
    sform_code: int
    quatern: tuple
    qoffset: tuple
    srow: np.ndarray
    descrip: str
    aux_file: str
    intent_name: str
    single: bool


def _read_bytes(path: str) -> bytes:
    try:
        with open(path, "rb") as stream:
            raw = stream.read()
    except OSError as err:
        raise QIError(f"Failed to read file: {path}") from err
    if raw[:2] == b"\x1f\x8b":
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as err:
            raise QIError(f"Failed to read file: {path}") from err
    return raw


def _split_pair(path) -> tuple:
    """Header path and, for .hdr/.img pairs, data path."""
    p = os.fspath(path)
    gz = p.endswith(".gz")
    stem = p[:-3] if gz else p
    suffix = ".gz" if gz else ""
    if stem.endswith(".hdr"):
        return p, stem[:-4] + ".img" + suffix
    if stem.endswith(".img"):
        return stem[:-4] + ".hdr" + suffix, p
    return p, None


def _text(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("latin-1")


def _parse_header(raw: bytes, path: str) -> _Nifti:
    if len(raw) < _HEADER_SIZE:
        raise QIError(f"File is too short for a NIfTI header: {path}")
    for endian in "<>":
        if struct.unpack_from(endian + "i", raw, 0)[0] == _HEADER_SIZE:
            break
    else:
        raise QIError(f"Not a NIfTI-1 file: {path}")

    def unpack(fmt, offset):
        return struct.unpack_from(endian + fmt, raw, offset)

    magic = raw[344:348]
    if magic not in (_SINGLE_MAGIC, _PAIR_MAGIC):
        raise QIError(f"Not a NIfTI-1 file: {path}")
    dim = unpack("8h", 40)
    ndim = dim[0]
    if not 1 <= ndim <= 7:
        raise QIError(f"Invalid number of dimensions {ndim} in {path}")
    datatype, _bitpix = unpack("2h", 70)
    vox_offset, scl_slope, scl_inter = unpack("3f", 108)
    qform_code, sform_code = unpack("2h", 252)
    return _Nifti(
        endian=endian,
        dims=tuple(int(d) for d in dim[1 : ndim + 1]),
        datatype=datatype,
        pixdim=unpack("8f", 76),
        vox_offset=vox_offset,
        scl_slope=scl_slope,
        scl_inter=scl_inter,
        qform_code=qform_code,
        sform_code=sform_code,
        quatern=unpack("3f", 256),
        qoffset=unpack("3f", 268),
        srow=np.array(unpack("12f", 280), dtype=float).reshape(3, 4),
        descrip=_text(raw[148:228]),
        aux_file=_text(raw[228:252]),
        intent_name=_text(raw[328:344]),
        single=magic == _SINGLE_MAGIC,
    )


def _quaternion_to_matrix(b: float, c: float, d: float, qfac: float) -> np.ndarray:
    a = 1.0 - (b * b + c * c + d * d)
    if a < 1.0e-7:
        norm = 1.0 / math.sqrt(b * b + c * c + d * d)
        b, c, d = b * norm, c * norm, d * norm
        a = 0.0
    else:
        a = math.sqrt(a)
    rot = np.array(
        [
            [a * a + b * b - c * c - d * d, 2 * (b * c - a * d), 2 * (b * d + a * c)],
            [2 * (b * c + a * d), a * a + c * c - b * b - d * d, 2 * (c * d - a * b)],
            [2 * (b * d - a * c), 2 * (c * d + a * b), a * a + d * d - c * c - b * b],
        ]
    )
    rot[:, 2] *= qfac
    return rot


def _matrix_to_quaternion(matrix) -> tuple:
    """qfac and (b, c, d) for a direction matrix."""
    r = np.array(matrix, dtype=float)
    norms = np.linalg.norm(r, axis=0)
    norms[norms == 0] = 1.0
    r = r / norms
    qfac = 1.0
    if np.linalg.det(r) < 0:
        qfac = -1.0
        r[:, 2] *= -1.0
    a = r[0, 0] + r[1, 1] + r[2, 2] + 1.0
    if a > 0.5:
        a = 0.5 * math.sqrt(a)
        b = 0.25 * (r[2, 1] - r[1, 2]) / a
        c = 0.25 * (r[0, 2] - r[2, 0]) / a
        d = 0.25 * (r[1, 0] - r[0, 1]) / a
    else:
        xd = 1.0 + r[0, 0] - r[1, 1] - r[2, 2]
        yd = 1.0 - r[0, 0] + r[1, 1] - r[2, 2]
        zd = 1.0 - r[0, 0] - r[1, 1] + r[2, 2]
        if xd > 1.0:
            b = 0.5 * math.sqrt(xd)
            c = 0.25 * (r[0, 1] + r[1, 0]) / b
            d = 0.25 * (r[0, 2] + r[2, 0]) / b
            a = 0.25 * (r[2, 1] - r[1, 2]) / b
        elif yd > 1.0:
            c = 0.5 * math.sqrt(yd)
            b = 0.25 * (r[0, 1] + r[1, 0]) / c
            d = 0.25 * (r[1, 2] + r[2, 1]) / c
            a = 0.25 * (r[0, 2] - r[2, 0]) / c
        else:
            d = 0.5 * math.sqrt(zd)
            b = 0.25 * (r[0, 2] + r[2, 0]) / d
            c = 0.25 * (r[1, 2] + r[2, 1]) / d
            a = 0.25 * (r[1, 0] - r[0, 1]) / d
    if a < 0.0:
        b, c, d = -b, -c, -d
    return qfac, (b, c, d)


def _geometry(h: _Nifti) -> tuple:
    """Spacing, origin and direction in LPS coordinates."""
    ndim = len(h.dims)
    pix = [abs(p) if p != 0 else 1.0 for p in h.pixdim[1:8]]
    if h.qform_code > 0:
        qfac = -1.0 if h.pixdim[0] < 0 else 1.0
        rot = _quaternion_to_matrix(*h.quatern, qfac)
        origin = np.array(h.qoffset, dtype=float)
        spacing3 = list(pix[:3])
    elif h.sform_code > 0:
        m = h.srow[:, :3]
        norms = np.linalg.norm(m, axis=0)
        norms[norms == 0] = 1.0
        rot = m / norms
        origin = h.srow[:, 3].copy()
        spacing3 = [float(n) for n in norms]
    else:
        rot = np.eye(3)
        origin = np.zeros(3)
        spacing3 = list(pix[:3])
    direction3 = rot * _LPS_FLIP[:, np.newaxis]
    origin3 = origin * _LPS_FLIP + 0.0

    spacing = tuple((spacing3 + pix[3:])[:ndim])
    origin_full = tuple((list(origin3) + [0.0] * 4)[:ndim])
    direction = np.eye(ndim)
    k = min(ndim, 3)
    direction[:k, :k] = direction3[:k, :k]
    return spacing, origin_full, direction


def _load_header(path) -> tuple:
    header_path, data_path = _split_pair(path)
    raw = _read_bytes(header_path)
    return _parse_header(raw, header_path), raw, data_path


def _dtype_code(h: _Nifti, path: str) -> str:
    code = _DTYPES.get(h.datatype)
    if code is None:
        raise QIError(f"Unsupported NIfTI datatype {h.datatype} in {path}")
    return code


def _load(path) -> Image:
    p = os.fspath(path)
    h, raw, data_path = _load_header(p)
    code = _dtype_code(h, p)
    if h.single:
        data_raw = raw
        offset = max(int(h.vox_offset), _SINGLE_OFFSET)
    else:
        if data_path is None:
            raise QIError(f"Header {p} refers to a separate image file but has no .hdr/.img name")
        if not os.path.exists(data_path) and os.path.exists(data_path + ".gz"):
            data_path += ".gz"
        data_raw = _read_bytes(data_path)
        offset = int(h.vox_offset)
    dtype = np.dtype(h.endian + code)
    count = int(np.prod(h.dims))
    if len(data_raw) < offset + count * dtype.itemsize:
        raise QIError(f"File is truncated: {p}")
    flat = np.frombuffer(data_raw, dtype=dtype, count=count, offset=offset)
    data = flat.astype(dtype.newbyteorder("=")).reshape(h.dims, order="F")
    slope, inter = h.scl_slope, h.scl_inter
    if data.dtype.kind != "c" and slope != 0 and (slope != 1 or inter != 0):
        real_type = np.float64 if data.dtype == np.float64 else np.float32
        data = data.astype(real_type) * real_type(slope) + real_type(inter)
    spacing, origin, direction = _geometry(h)
    return Image(data, spacing=spacing, origin=origin, direction=direction)


def _pad_to(image: Image, dim: int) -> Image:
    extra = dim - image.dimension
    if extra < 0:
        raise QIError(f"Image has {image.dimension} dimensions, expected at most {dim}")
    if extra == 0:
        return image
    direction = np.eye(dim)
    direction[: image.dimension, : image.dimension] = image.direction
    return Image(
        image.data.reshape(image.size + (1,) * extra),
        spacing=image.spacing + (1.0,) * extra,
        origin=image.origin + (0.0,) * extra,
        direction=direction,
    )


def _write_nifti(image, path) -> None:
    """Write a scalar image as NIfTI-1; a .hdr/.img name gives a pair, .gz compresses."""
    if image.vector:
        raise QIError("Vector images must be converted to a series before writing")
    data = np.asarray(image.data)
    if data.dtype == bool:
        data = data.astype(np.uint8)
    code = _CODES.get((data.dtype.kind, data.dtype.itemsize))
    if code is None:
        raise QIError(f"Cannot write pixel type {data.dtype} to NIfTI")
    ndim = image.dimension
    if ndim > 7:
        raise QIError("NIfTI images may have at most 7 dimensions")
    if any(s > 32767 for s in image.size):
        raise QIError("Image is too large for a NIfTI-1 header")

    k = min(ndim, 3)
    spacing3 = np.ones(3)
    spacing3[:k] = image.spacing[:k]
    origin3 = np.zeros(3)
    origin3[:k] = image.origin[:k]
    direction3 = np.eye(3)
    direction3[:k, :k] = image.direction[:k, :k]
    ras_dir = direction3 * _LPS_FLIP[:, np.newaxis]
    ras_origin = origin3 * _LPS_FLIP
    qfac, quatern = _matrix_to_quaternion(ras_dir)
    srow = np.column_stack([ras_dir * spacing3[np.newaxis, :], ras_origin])

    header_path, data_path = _split_pair(path)
    single = data_path is None
    header = bytearray(_HEADER_SIZE)
    struct.pack_into("<i", header, 0, _HEADER_SIZE)
    dims = [ndim, *image.size] + [1] * (7 - ndim)
    struct.pack_into("<8h", header, 40, *dims)
    struct.pack_into("<2h", header, 70, code, data.dtype.itemsize * 8)
    pixdim = [qfac, *spacing3, *image.spacing[3:]]
    pixdim += [1.0] * (8 - len(pixdim))
    struct.pack_into("<8f", header, 76, *pixdim)
    struct.pack_into(
        "<3f", header, 108, float(_SINGLE_OFFSET if single else 0), 1.0, 0.0
    )
    header[123] = 10
    struct.pack_into("<2h", header, 252, 1, 1)
    struct.pack_into("<3f", header, 256, *quatern)
    struct.pack_into("<3f", header, 268, *ras_origin)
    struct.pack_into("<12f", header, 280, *srow.ravel())
    header[344:348] = _SINGLE_MAGIC if single else _PAIR_MAGIC
    payload = data.astype(data.dtype.newbyteorder("<")).tobytes(order="F")

    def write(target: str, content: bytes) -> None:
        opener = gzip.open if target.endswith(".gz") else open
        try:
            with opener(target, "wb") as stream:
                stream.write(content)
        except OSError as err:
            raise QIError(f"Could not open file for writing: {target}") from err

    if single:
        write(header_path, bytes(header) + b"\x00" * 4 + payload)
    else:
        write(header_path, bytes(header))
        write(data_path, payload)


def read_header(path):
    """Read only the header information of an image file."""
    p = os.fspath(path)
    h, _raw, _data_path = _load_header(p)
    code = _dtype_code(h, p)
    spacing, origin, direction = _geometry(h)
    metadata = {
        "descrip": h.descrip,
        "aux_file": h.aux_file,
        "intent_name": h.intent_name,
        "qform_code": float(h.qform_code),
        "sform_code": float(h.sform_code),
        "scl_slope": float(h.scl_slope),
        "scl_inter": float(h.scl_inter),
    }
    return ImageHeader(
        path=p,
        dimensions=h.dims,
        spacing=spacing,
        origin=origin,
        direction=direction,
        pixel_type="complex" if np.dtype(code).kind == "c" else "scalar",
        component_type=_COMPONENT_NAMES[code],
        metadata=metadata,
    )


def read_image(path, verbose=False):
    """Read an image with its stored pixel type (scaled values become float)."""
    log(verbose, "Reading image: {}", path)
    return _load(path)


def read_magnitude_image(path, verbose=False):
    """Read an image and return the magnitude of its (possibly complex) values."""
    log(verbose, "Reading image: {}", path)
    image = read_image(path, verbose)
    log(verbose, "Converting to magnitude")
    return Image(
        np.abs(image.data).astype(np.float32),
        spacing=image.spacing,
        origin=image.origin,
        direction=image.direction,
    )


def read_vector_image(path, verbose=False):
    """Read a 4D series as a 3D vector image, one component per volume."""
    log(verbose, "Reading image: {}", path)
    series = _pad_to(_load(path), 4)
    log(verbose, "Converting to vector image")
    return image_to_vector(series)