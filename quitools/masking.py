"""Mask creation: thresholds, Otsu and connected-component labelling."""

from __future__ import annotations

import numpy as np
from scipy import ndimage

from .util import QIError

_OTSU_BINS = 128


def threshold_mask(img, lower, upper=float("inf")):
    """1 where lower <= value <= upper, otherwise 0."""
    data = np.asarray(img, dtype=float)
    return ((data >= lower) & (data <= upper)).astype(np.int32)


def otsu_mask(img):
    """1 for voxels above the Otsu threshold, otherwise 0."""
    data = np.asarray(img, dtype=float)
    low, high = float(data.min()), float(data.max())
    if high <= low:
        return np.zeros(data.shape, dtype=np.int32)

    counts, edges = np.histogram(data, bins=_OTSU_BINS, range=(low, high))
    counts = counts.astype(float)
    centres = (edges[:-1] + edges[1:]) / 2.0
    total = counts.sum()
    weight_below = np.cumsum(counts)
    weight_above = total - weight_below
    sum_below = np.cumsum(counts * centres)
    sum_above = sum_below[-1] - sum_below
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_below = sum_below / weight_below
        mean_above = sum_above / weight_above
        between = weight_below * weight_above * (mean_below - mean_above) ** 2
    between = np.nan_to_num(between[:-1], nan=-1.0)
    best = int(np.argmax(between))
    threshold = edges[best + 1]
    return (data > threshold).astype(np.int32)


def find_labels(mask, size_threshold, to_keep):
    """Label connected regions of a mask and keep the largest ones.

    Returns the sizes of the kept regions (largest first) and a label image in
    which those regions are numbered from 1 in order of size.
    """
    labelled, count = ndimage.label(np.asarray(mask) != 0)
    sizes = np.bincount(labelled.ravel(), minlength=count + 1)[1:]
    order = np.argsort(-sizes, kind="stable")
    sorted_sizes = sizes[order]

    kept_sizes: list[float] = []
    for size in sorted_sizes[:to_keep]:
        if size < size_threshold:
            break
        kept_sizes.append(float(size))
    if not kept_sizes:
        raise QIError("No labels found in mask")

    lookup = np.zeros(count + 1, dtype=np.int32)
    lookup[order + 1] = np.arange(1, count + 1, dtype=np.int32)
    relabelled = lookup[labelled]
    labels = np.where(relabelled <= len(kept_sizes), relabelled, 0).astype(np.int32)
    return kept_sizes, labels