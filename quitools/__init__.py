"""Quantitative MRI tools: B1 mapping, NIfTI image I/O, image utilities and fitting helpers."""

__version__ = "0.1.0"