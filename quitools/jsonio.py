"""Reading and writing JSON documents and pulling typed values out of them."""

from __future__ import annotations

import json
import os

import numpy as np

from .util import QIError


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def read_json(source):
    """Parse JSON from a path or from an open text stream."""
    if hasattr(source, "read"):
        return json.load(source)
    try:
        with open(os.fspath(source), encoding="utf-8") as stream:
            return json.load(stream)
    except OSError as err:
        raise QIError(f"Error opening file for reading: {source}") from err


def _dump(doc) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


def write_json(target, doc):
    """Write a document, indented by two spaces, to a path or an open text stream."""
    if hasattr(target, "write"):
        target.write(_dump(doc))
        return target
    try:
        with open(os.fspath(target), "w", encoding="utf-8") as stream:
            stream.write(_dump(doc))
    except OSError as err:
        raise QIError(f"Could not open file for writing: {target}") from err
    return None


def array_from_json(doc, key, scale=1.0, size=-1):
    """Read a numeric array under key, multiplied by scale.

    An integer scale gives an integer array. If size is not negative the
    array must have exactly that many elements.
    """
    try:
        raw = doc[key]
    except (KeyError, TypeError, IndexError) as err:
        raise QIError(f"Error reading from JSON array {key}: {err!r}") from err
    if not isinstance(raw, list) or not all(_is_number(v) for v in raw):
        raise QIError(f"Error reading from JSON array {key}: not an array of numbers")
    if size > -1 and len(raw) != size:
        raise QIError(f"JSON array {key} had {len(raw)} elements, expected {size}")
    if isinstance(scale, int) and not isinstance(scale, bool):
        values = np.array(raw, dtype=float).astype(np.int64)
        return values * scale
    return np.array(raw, dtype=float) * scale


def get_json(doc, key):
    """Read a required numeric value under key."""
    try:
        value = doc[key]
    except (KeyError, TypeError, IndexError) as err:
        raise QIError(f"Error reading from JSON value {key}: {err!r}") from err
    if not _is_number(value):
        raise QIError(f"Error reading from JSON value {key}: not a number")
    return value