"""Core image tools: comparing images, printing headers and creating test images."""

from __future__ import annotations

import argparse
import math
import sys
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np

from .image import Image
from .imageio import ImageHeader, read_header, read_image
from .imagewrite import write_image
from .util import QIError, array_arg, array_arg_f, check_value, log


def _fmt_number(value: float) -> str:
    """Shortest round-trip text for a number, without a trailing '.0'."""
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _voxels(image) -> np.ndarray:
    data = image.data if isinstance(image, Image) else image
    return np.asarray(data, dtype=np.float32)


@dataclass(frozen=True)
class DiffStats:
    """Bias statistics of an image against a baseline."""

    mean_bias: float
    variance: float
    sd: float
    mse: float
    me: float
    nf: float
    noise: float

    @property
    def result(self) -> float:
        """The noise factor when a noise level was given, otherwise the mean error."""
        return self.nf if self.noise > 0.0 else self.me


def diff_stats(input_image, baseline, absolute=False, noise=0.0):
    """Compare an image voxel by voxel with a baseline.

    The bias of each voxel is the difference divided by the baseline, or the
    plain difference when absolute is set.
    """
    values = _voxels(input_image)
    base = _voxels(baseline)
    if values.shape != base.shape:
        raise QIError(
            f"Input size {values.shape} does not match baseline size {base.shape}"
        )
    difference = (values - base).astype(np.float64)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        bias = difference if absolute else difference / base.astype(np.float64)
        accum_bias = np.float64(bias.sum())
        accum_var = np.float64((bias * bias).sum())
        n = np.float64(values.size)
        mean_bias = accum_bias / n
        variance = accum_var / (n - 1.0)
        sd = np.sqrt(variance)
        mse = variance + mean_bias * mean_bias
        me = np.sqrt(mse)
        nf = me / np.float64(noise)
    return DiffStats(
        mean_bias=float(mean_bias),
        variance=float(variance),
        sd=float(sd),
        mse=float(mse),
        me=float(me),
        nf=float(nf),
        noise=float(noise),
    )


def _gradient_profile(length, grad_vals, fill, steps, wrap) -> np.ndarray:
    """Values along the gradient axis, accumulated in single precision."""
    start = end = np.float32(0.0)
    delta = np.float32(0.0)
    step_length = 1
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if grad_vals is not None:
            start, end = (np.float32(v) for v in grad_vals)
            if steps is not None:
                if steps < 1:
                    raise QIError("Number of steps must be at least 1")
                delta = np.float32((end - start) / np.float32(steps))
                step_length = (length - 1) // steps
            else:
                delta = np.float32((end - start) / np.float32(length - 1))
        elif fill is not None:
            start = end = np.float32(fill)
        if step_length == 0:
            raise QIError("Step length is zero; use fewer steps than the image length")
        wrap_value = None if wrap is None else np.float32(wrap)
        profile = np.empty(length, dtype=np.float32)
        val = start
        for k in range(length):
            profile[k] = val
            if (k + 1) % step_length == 0:
                val = np.float32(val + delta)
            if wrap_value is not None:
                val = np.float32(np.fmod(val, wrap_value))
    return profile


def make_image(
    dims=3,
    size=None,
    spacing=None,
    origin=None,
    fill=None,
    grad_dim=0,
    grad_vals=None,
    steps=None,
    wrap=None,
):
    """Create a float image filled with a constant, a smooth gradient or a stepped gradient.

    Unset size and spacing default to 1 along every axis; an unset origin
    centres the first three axes on zero. A gradient runs from grad_vals[0]
    along axis grad_dim and takes precedence over fill.
    """
    if dims not in (3, 4):
        raise QIError(f"Unsupported dimension: {dims}")
    if grad_dim >= dims:
        raise QIError("Fill dimension is larger than image dimension")
    img_size = tuple(int(s) for s in size) if size is not None else (1,) * dims
    img_spacing = tuple(float(s) for s in spacing) if spacing is not None else (1.0,) * dims
    if len(img_size) != dims or len(img_spacing) != dims:
        raise QIError(f"Size and spacing must have {dims} entries")
    if origin is not None:
        img_origin = tuple(float(o) for o in origin)
        if len(img_origin) != dims:
            raise QIError(f"Origin must have {dims} entries")
    else:
        centred = [-img_spacing[i] * (img_size[i] - 1) / 2.0 for i in range(3)]
        img_origin = tuple(centred + [0.0] * (dims - 3))

    profile = _gradient_profile(img_size[grad_dim], grad_vals, fill, steps, wrap)
    shape = [1] * dims
    shape[grad_dim] = img_size[grad_dim]
    data = np.broadcast_to(profile.reshape(shape), img_size).copy()
    return Image(data, spacing=img_spacing, origin=img_origin)


def _opt(options, key, default=None):
    if isinstance(options, Mapping):
        return options.get(key, default)
    return getattr(options, key, default)


def _meta_text(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "(" + ", ".join(_meta_text(v) for v in value) + ")"
    return f"{value:g}"


def _header_text(header: ImageHeader, options) -> str:
    verbose = bool(_opt(options, "verbose", False))
    want_direction = bool(_opt(options, "direction", False))
    want_origin = bool(_opt(options, "origin", False))
    spacing_dim = _opt(options, "spacing")
    size_dim = _opt(options, "size")
    want_voxvol = bool(_opt(options, "voxvol", False))
    want_dtype = bool(_opt(options, "dtype", False))
    want_dims = bool(_opt(options, "dims", False))
    dim3 = bool(_opt(options, "dim3", False))
    meta = list(_opt(options, "meta", None) or [])

    print_all = not (
        want_direction
        or want_origin
        or spacing_dim is not None
        or size_dim is not None
        or want_voxvol
        or want_dtype
        or want_dims
        or meta
    )
    labels = print_all or verbose
    parts: list[str] = []
    dims = header.dimension

    if labels:
        parts.append(f"File: {header.path}\n")
        parts.append("Dimension:  ")
    if print_all or want_dims:
        parts.append(f"{dims}\n")
    if labels:
        parts.append("Voxel Type: ")
    if print_all or want_dtype:
        parts.append(f"{header.pixel_type} {header.component_type}\n")
    if dim3 and dims > 3:
        dims = 3

    if print_all or size_dim is not None:
        n = size_dim or 0
        if n > dims:
            raise QIError(f"Invalid dimension {n} for image {header.path}")
        selected = range(dims) if n == 0 else range(n - 1, n)
        if labels:
            parts.append("Size:       ")
        parts.append(",".join(str(header.dimensions[i]) for i in selected) + "\n")

    if print_all or spacing_dim is not None:
        n = spacing_dim or 0
        if n > dims:
            log(verbose, "Invalid dimension {} for image {}", n, header.path)
        else:
            selected = range(dims) if n == 0 else range(n - 1, n)
            if labels:
                parts.append("Spacing:    ")
            parts.append("".join(f"{header.spacing[i]:g}\t" for i in selected) + "\n")

    if labels:
        parts.append("Origin:     ")
    if print_all or want_origin:
        parts.append("".join(f"{header.origin[i]:g}\t" for i in range(dims)) + "\n")

    if labels:
        parts.append("Direction:  \n")
    if print_all or want_direction:
        for i in range(dims):
            column = header.direction[:, i]
            parts.append("".join(f"{column[j]:g}\t" for j in range(dims)) + "\n")

    if labels:
        parts.append("Voxel vol:  ")
    if print_all or want_voxvol:
        parts.append(f"{math.prod(header.spacing[:dims]):g}\n")

    for field_name in meta:
        if field_name in header.metadata:
            if verbose:
                parts.append(f"{field_name}: ")
            parts.append(_meta_text(header.metadata[field_name]) + "\n")
        else:
            log(verbose, "Header field not found: {}", field_name)
    return "".join(parts)


def header_lines(path, options=None):
    """Lines describing an image header, selected by options.

    Options (a mapping or an object with attributes) may hold: direction,
    origin, voxvol, dtype, dims, dim3, verbose (flags); spacing and size
    (None, 0 for every axis, or a 1-based axis); meta (field names).
    With no selection everything is printed with labels.
    """
    header = path if isinstance(path, ImageHeader) else read_header(path)
    return _header_text(header, options or {}).splitlines()


def diff_main(argv=None):
    """Command line: print the mean error (or noise factor) of an image against a baseline."""
    parser = argparse.ArgumentParser(prog="diff", description="Difference between two images")
    parser.add_argument("--input", help="Input file for difference")
    parser.add_argument("--baseline", help="Baseline file for difference")
    parser.add_argument(
        "--noise",
        type=float,
        default=0.0,
        help="Added noise level (divide diff by this to get noise factor)",
    )
    parser.add_argument(
        "-a",
        "--abs",
        dest="absolute",
        action="store_true",
        help="Use absolute difference, not relative (avoids 0/0 problems)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Talk more")
    args = parser.parse_args(argv)
    input_image = read_image(check_value(args.input, "INPUT"), args.verbose)
    baseline = read_image(check_value(args.baseline, "BASELINE"), args.verbose)
    stats = diff_stats(input_image, baseline, args.absolute, args.noise)
    if args.absolute:
        log(
            args.verbose,
            "Mean Bias : {}\nVariance  : {}\nSD        : {}\nMSE       : {}\n"
            "ME        : {}\nNF           : {}",
            stats.mean_bias,
            stats.variance,
            stats.sd,
            stats.mse,
            stats.me,
            stats.nf,
        )
    else:
        log(
            args.verbose,
            "Mean Bias (%): {}\nVariance  (%): {}\nSD        (%): {}\nMSE       (%): {}\n"
            "ME        (%): {}\nNF           : {}",
            stats.mean_bias * 100,
            stats.variance * 100,
            stats.sd * 100,
            stats.mse * 100,
            stats.me * 100,
            stats.nf,
        )
    print(_fmt_number(stats.result))
    return 0


def hdr_main(argv=None):
    """Command line: print header information of image files."""
    parser = argparse.ArgumentParser(prog="hdr", description="Print image header information")
    parser.add_argument("files", nargs="*", metavar="FILES", help="Input files")
    parser.add_argument(
        "-d", "--direction", action="store_true", help="Print the image direction/orientation"
    )
    parser.add_argument("-o", "--origin", action="store_true", help="Print the the origin")
    parser.add_argument(
        "-S", "--spacing", type=int, help="Print voxel spacing (can specify one dimension)"
    )
    parser.add_argument(
        "-s", "--size", type=int, help="Print the matrix size (can specify one dimension)"
    )
    parser.add_argument(
        "-v", "--voxvol", action="store_true", help="Calculate and print the volume of one voxel"
    )
    parser.add_argument("-T", "--dtype", action="store_true", help="Print the data type")
    parser.add_argument("-D", "--dims", action="store_true", help="Print the number of dimensions")
    parser.add_argument(
        "-3",
        "--3D",
        dest="dim3",
        action="store_true",
        help="Treat input as 3D (discard higher dimensions)",
    )
    parser.add_argument(
        "-m",
        "--meta",
        action="append",
        default=[],
        help="Print a header metadata field (can be specified multiple times)",
    )
    parser.add_argument("--verbose", action="store_true", help="Talk more")
    args = parser.parse_args(argv)
    if not args.files:
        raise QIError("No values of FILES specified. Use --help to see usage.")
    for fname in args.files:
        try:
            header = read_header(fname)
        except QIError:
            print(f"Could not open: {fname}", file=sys.stderr)
            break
        sys.stdout.write(_header_text(header, args))
    return 0


def newimage_main(argv=None):
    """Command line: create a new image filled with a value or a gradient."""
    parser = argparse.ArgumentParser(prog="newimage", description="Create a new image")
    parser.add_argument("output", nargs="?", metavar="OUTPUT", help="Output filename")
    parser.add_argument("-d", "--dims", type=int, default=3, help="Image dimension, default 3")
    parser.add_argument("-s", "--size", help="Image size")
    parser.add_argument("-p", "--spacing", help="Voxel spacing")
    parser.add_argument("-o", "--origin", help="Image origin")
    parser.add_argument("-f", "--fill", type=float, help="Fill with value")
    parser.add_argument(
        "-g", "--grad_dim", type=int, default=0, help="Fill with a gradient along this axis"
    )
    parser.add_argument("-v", "--grad_vals", help="Gradient low/high values (low, high)")
    parser.add_argument("-t", "--steps", type=int, help="Number of discrete steps (steps)")
    parser.add_argument("-w", "--wrap", type=float, help="Wrap image values")
    parser.add_argument("--verbose", action="store_true", help="Talk more")
    args = parser.parse_args(argv)

    if args.dims not in (3, 4):
        print(f"Unsupported dimension: {args.dims}", file=sys.stderr)
        return 1
    dims = args.dims
    image = make_image(
        dims=dims,
        size=array_arg(args.size, dims) if args.size is not None else None,
        spacing=array_arg(args.spacing, dims) if args.spacing is not None else None,
        origin=array_arg(args.origin, dims) if args.origin is not None else None,
        fill=args.fill,
        grad_dim=args.grad_dim,
        grad_vals=array_arg_f(args.grad_vals, 2) if args.grad_vals is not None else None,
        steps=args.steps,
        wrap=args.wrap,
    )
    log(
        args.verbose,
        "Dimensions: {} Size: {} Spacing: {} Origin: {}",
        dims,
        image.size,
        image.spacing,
        image.origin,
    )
    if args.output is None:
        raise QIError("OUTPUT was not specified. Use --help to see usage.")
    log(args.verbose, "Writing file to: {}", args.output)
    write_image(image, args.output, args.verbose)
    return 0


_COMMANDS = {
    "diff": diff_main,
    "hdr": hdr_main,
    "newimage": newimage_main,
}


def main(argv=None):
    """Run one of the core image commands; returns the exit status."""
    arguments = sys.argv[1:] if argv is None else list(argv)
    parser = argparse.ArgumentParser(prog="qi", description="Core image tools")
    parser.add_argument("command", choices=sorted(_COMMANDS))
    parser.add_argument("args", nargs=argparse.REMAINDER)
    ns = parser.parse_args(arguments)
    try:
        return _COMMANDS[ns.command](ns.args)
    except QIError as err:
        print(f"Error {err}", file=sys.stderr)
        return 1