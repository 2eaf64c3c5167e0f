"""B1 (transmit field) maps from AFI, DREAM and head/body coil ratio acquisitions."""

from __future__ import annotations

import argparse
import sys

import numpy as np

from .image import Image
from .imageio import _pad_to, read_image
from .imagewrite import _safe_divide, write_image
from .util import QIError, log, out_ext


def afi_angle(ratio, n):
    """Flip angle in degrees from the AFI signal ratio S2/S1 and the TR2:TR1 ratio n."""
    r = np.asarray(ratio, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        temp = (r * n - 1.0) / (n - r)
        angle = np.degrees(np.arccos(np.clip(temp, -1.0, 1.0)))
    return float(angle) if angle.ndim == 0 else angle


def dream_angle(fid, ste):
    """Flip angle in degrees from the DREAM FID and stimulated-echo signals."""
    f = np.asarray(fid, dtype=float)
    s = np.asarray(ste, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        angle = np.degrees(np.arctan(np.sqrt(2.0 * s / f)))
    return float(angle) if angle.ndim == 0 else angle


def _series(image: Image) -> Image:
    if image.vector:
        raise QIError("Expected a series image, not a vector image")
    return _pad_to(image, 4)


def _volume(series: Image, index: int) -> Image:
    count = series.size[3]
    if index >= count:
        raise QIError(f"Requested volume {index} but image has {count} volumes")
    return Image(
        np.asarray(series.data[..., index], dtype=np.float32),
        spacing=series.spacing[:3],
        origin=series.origin[:3],
        direction=series.direction[:3, :3],
    )


def _like(ref: Image, data) -> Image:
    return Image(
        np.asarray(data, dtype=np.float32),
        spacing=ref.spacing,
        origin=ref.origin,
        direction=ref.direction,
    )


def afi(image, nominal_flip=55.0, tr_ratio=5.0):
    """B1 and flip-angle maps from a two-volume AFI series.

    Returns (b1, angle) where b1 is the measured angle over the nominal one.
    """
    series = _series(image)
    volume1 = _volume(series, 0)
    volume2 = _volume(series, 1)
    ratio = _safe_divide(volume2.data, volume1.data, np.float32)
    angle = np.asarray(afi_angle(ratio, tr_ratio), dtype=np.float32)
    b1 = _safe_divide(angle, nominal_flip, np.float32)
    return _like(volume1, b1), _like(volume1, angle)


def dream(image, order="f", alpha=55.0):
    """B1 and flip-angle maps from a two-volume DREAM series.

    With order 's' or 'v' the stimulated echo comes first, otherwise the FID.
    Returns (b1, angle).
    """
    series = _series(image)
    fid_index = 1 if order in ("s", "v") else 0
    fid = _volume(series, fid_index)
    ste = _volume(series, (fid_index + 1) % 2)
    angle = np.asarray(dream_angle(fid.data, ste.data), dtype=np.float32)
    b1 = _safe_divide(angle, alpha, np.float32)
    return _like(fid, b1), _like(fid, angle)


def b1_papp(image):
    """Receive-field (B1 minus) map: the head-coil volume over the body-coil volume."""
    series = _series(image)
    body_coil = _volume(series, 0)
    head_coil = _volume(series, 1)
    return _like(body_coil, _safe_divide(head_coil.data, body_coil.data, np.float32))


def _single_char(text: str) -> str:
    if len(text) != 1:
        raise argparse.ArgumentTypeError("ORDER must be a single character")
    return text


def _parser(prog: str, description: str, input_name: str, input_help: str):
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("input", nargs="?", metavar=input_name, help=input_help)
    parser.add_argument(
        "-T",
        "--threads",
        type=int,
        default=None,
        help="Use N threads (default=hardware limit or $QUIT_THREADS)",
    )
    parser.add_argument("-o", "--out", default="", help="Add a prefix to output filenames")
    parser.add_argument("-v", "--verbose", action="store_true", help="Talk more")
    return parser


def _check_input(value, name: str) -> str:
    if value is None:
        raise QIError(f"{name} was not specified. Use --help to see usage.")
    return value


def afi_main(argv=None):
    """Command line for AFI B1 mapping."""
    parser = _parser("afi", "Actual Flip-angle Imaging B1 mapping", "INPUT", "Input file")
    parser.add_argument(
        "-f", "--flip", type=float, default=55.0, help="Specify nominal flip-angle, default 55"
    )
    parser.add_argument(
        "-r", "--ratio", type=float, default=5.0, help="Specify TR2:TR1 ratio, default 5"
    )
    parser.add_argument(
        "-s",
        "--save",
        action="store_true",
        help="Write out the actual flip-angle as well as B1",
    )
    args = parser.parse_args(argv)
    image = read_image(_check_input(args.input, "INPUT"), args.verbose)
    log(args.verbose, "Nominal flip-angle = {} degrees", args.flip)
    log(args.verbose, "TR2:TR1 ratio = {}", args.ratio)
    b1, angle = afi(image, args.flip, args.ratio)
    write_image(b1, f"{args.out}AFI_B1{out_ext()}", args.verbose)
    if args.save:
        write_image(angle, f"{args.out}AFI_angle{out_ext()}", args.verbose)
    log(args.verbose, "Finished.")
    return 0


def dream_main(argv=None):
    """Command line for DREAM B1 mapping."""
    parser = _parser(
        "dream",
        "DREAM B1 mapping",
        "DREAM_FILE",
        "Input file. Must have 2 volumes (FID and STE)",
    )
    parser.add_argument(
        "-O",
        "--order",
        type=_single_char,
        default="f",
        help="Volume order - f/s/v - fid/ste/vst first",
    )
    parser.add_argument("-m", "--mask", help="Only process voxels within the mask")
    parser.add_argument(
        "-a", "--alpha", type=float, default=55.0, help="Nominal flip-angle (default 55)"
    )
    args = parser.parse_args(argv)
    image = read_image(_check_input(args.input, "DREAM_FILE"), args.verbose)
    b1, angle = dream(image, args.order, args.alpha)
    write_image(angle, f"{args.out}DREAM_angle{out_ext()}", args.verbose)
    write_image(b1, f"{args.out}DREAM_B1{out_ext()}", args.verbose)
    log(args.verbose, "Finished.")
    return 0


def b1_papp_main(argv=None):
    """Command line for the head/body coil B1 minus ratio."""
    parser = _parser("b1_papp", "B1 minus from head and body coil images", "INPUT", "Input file")
    args = parser.parse_args(argv)
    image = read_image(_check_input(args.input, "INPUT"), args.verbose)
    ratio = b1_papp(image)
    write_image(ratio, f"{args.out}B1minus{out_ext()}", args.verbose)
    log(args.verbose, "Finished.")
    return 0


_COMMANDS = {
    "afi": afi_main,
    "dream": dream_main,
    "b1_papp": b1_papp_main,
}


def main(argv=None):
    """Run one of the B1 commands; returns the exit status."""
    arguments = sys.argv[1:] if argv is None else list(argv)
    parser = argparse.ArgumentParser(prog="qi-b1", description="B1 mapping tools")
    parser.add_argument("command", choices=sorted(_COMMANDS))
    parser.add_argument("args", nargs=argparse.REMAINDER)
    ns = parser.parse_args(arguments)
    try:
        return _COMMANDS[ns.command](ns.args)
    except QIError as err:
        print(f"Error {err}", file=sys.stderr)
        return 1