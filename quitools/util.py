"""Shared helpers: logging, errors, environment settings and argument parsing."""

from __future__ import annotations

import os
import random
import re
import secrets
import sys
import threading
import time
from typing import Iterable, Sequence

_GREEN = "\x1b[92m"
_YELLOW = "\x1b[93m"
_RESET = "\x1b[0m"

_VALID_EXT = {
    "NIFTI": ".nii",
    "NIFTI_PAIR": ".img",
    "NIFTI_GZ": ".nii.gz",
    "NIFTI_PAIR_GZ": ".img.gz",
}

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)

_seed_rng = random.Random(secrets.randbits(64))
_seed_lock = threading.Lock()


class QIError(Exception):
    """Raised when a tool cannot carry on."""


def _format(message: str, args: Sequence[object]) -> str:
    return message.format(*args) if args else message


def _timestamp(colour: str) -> str:
    return f"{colour}{time.strftime('%H:%M:%S')} {_RESET}"


def log(verbose, message, *args):
    """Write a formatted message to stderr when verbose is set."""
    if verbose:
        print(_format(message, args), file=sys.stderr)


def info(verbose, message, *args):
    """Write a time-stamped message to stderr when verbose is set."""
    if verbose:
        print(_timestamp(_GREEN) + _format(message, args), file=sys.stderr)


def warn(message, *args):
    """Write a time-stamped warning to stderr."""
    print(_timestamp(_YELLOW) + _format(message, args), file=sys.stderr)


def get_default_threads():
    """Number of worker threads, from $QUIT_THREADS or the hardware count."""
    env_threads = os.environ.get("QUIT_THREADS")
    if env_threads is None:
        return os.cpu_count() or 1
    try:
        threads = _parse_int(env_threads)
    except QIError:
        threads = 0
    if not 1 <= threads <= 1024:
        raise QIError("Environment variable QUIT_THREADS was outside range 1-1024")
    return threads


def out_ext():
    """Output file extension chosen by $QUIT_EXT, defaulting to NIfTI-gz."""
    env_ext = os.environ.get("QUIT_EXT")
    if env_ext is None:
        print(
            "Environment variable QUIT_EXT is not valid, defaulting to NIFTI_GZ",
            file=sys.stderr,
        )
        return _VALID_EXT["NIFTI_GZ"]
    return _VALID_EXT.get(env_ext, env_ext)


def _ext_start(filename: str) -> int:
    """Index of the extension's dot, treating .gz as part of a double extension."""
    dot = filename.rfind(".")
    if dot >= 0 and filename[dot:] == ".gz":
        dot = filename.rfind(".", 0, dot)
    return dot


def strip_ext(filename):
    """Remove the extension (including a trailing .gz) from a filename."""
    if "." not in filename:
        return filename
    dot = _ext_start(filename)
    return filename if dot < 0 else filename[:dot]


def get_ext(filename):
    """Return the extension of a filename, including the leading dot."""
    dot = _ext_start(filename) if "." in filename else -1
    if dot < 0:
        raise QIError(f"No extension found in string: {filename}")
    return filename[dot:]


def basename(path):
    """Return the filename part of a path without its extension."""
    return strip_ext(path.rsplit("/", 1)[-1])


def random_seed():
    """A thread-safe 64-bit random seed."""
    with _seed_lock:
        return _seed_rng.getrandbits(64)


def sorted_unique_indices(x):
    """Indices of the first occurrence of each distinct value, ordered by value."""
    first_seen: dict[float, int] = {}
    for index, value in enumerate(x):
        first_seen.setdefault(float(value), index)
    return sorted(first_seen.values(), key=lambda i: x[i])


def _split_fields(text: str) -> list[str]:
    fields = text.split(",")
    if fields[-1] == "":
        fields.pop()
    return fields


def _parse_int(text: str) -> int:
    match = _INT_RE.match(text)
    if not match:
        raise QIError(f"Could not read an integer from: {text!r}")
    return int(match.group(1))


def _parse_float(text: str) -> float:
    match = _FLOAT_RE.match(text)
    if not match:
        raise QIError(f"Could not read a number from: {text!r}")
    return float(match.group(1))


def ints_from_string(text):
    """Integers from a comma-separated string."""
    return [_parse_int(field) for field in _split_fields(text)]


def clamp(value, low, high):
    """Limit value to the range [low, high]."""
    if value > low:
        return value if value < high else high
    return low


def region_from_string(text, dimension):
    """Parse 'I,J,K,SI,SJ,SK' into (start index, size) tuples."""
    ints = ints_from_string(text)
    if len(ints) < 2 * dimension:
        raise QIError(
            f"Region {text} needs {2 * dimension} values, found {len(ints)}"
        )
    return tuple(ints[:dimension]), tuple(ints[dimension : 2 * dimension])


def _array_fields(text: str, size: int) -> Iterable[str]:
    fields = _split_fields(text)
    if len(fields) < size:
        raise QIError(f"Failed to read from array argument: {text}")
    return fields[:size]


def array_arg(text, size):
    """Read exactly `size` integers from a comma-separated argument."""
    return tuple(_parse_int(field) for field in _array_fields(text, size))


def array_arg_f(text, size):
    """Read exactly `size` floats from a comma-separated argument."""
    return tuple(_parse_float(field) for field in _array_fields(text, size))


def check_value(value, name):
    """Return a required option's value, raising if it was not given."""
    if value is None:
        raise QIError(
            f"{name} was not specified but is required. Use --help to see usage."
        )
    return value