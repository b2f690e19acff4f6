"""Depth-sorted, alpha-blended rendering of circular particles into RGB images."""

__version__ = "0.1.0"

__all__ = ["model", "sorting", "reference", "validation", "cpu", "parallel"]