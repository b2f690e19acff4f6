"""In-place pair sort of depth keys and their RGBA colours."""

from __future__ import annotations

from typing import Any, MutableSequence

import numpy as np


def _swap(seq: Any, i: int, j: int) -> None:
    if isinstance(seq, np.ndarray):
        seq[[i, j]] = seq[[j, i]]
    else:
        seq[i], seq[j] = seq[j], seq[i]


def sort_pairs(keys: MutableSequence[float], colours: Any, first: int, last: int) -> None:
    """Sort keys[first..last] ascending in place, moving colours alongside.

    Both bounds are inclusive; a range with first >= last is left untouched.
    The partitioning scheme takes the first element of a range as pivot, so the
    resulting order of equal keys is fixed and reproducible.
    """
    pending = [(first, last)]
    while pending:
        lo, hi = pending.pop()
        if lo >= hi:
            continue
        pivot = lo
        i, j = lo, hi
        while i < j:
            while keys[i] <= keys[pivot] and i < hi:
                i += 1
            while keys[j] > keys[pivot]:
                j -= 1
            if i < j:
                _swap(keys, i, j)
                _swap(colours, i, j)
        _swap(keys, pivot, j)
        _swap(colours, pivot, j)
        pending.append((lo, j - 1))
        pending.append((j + 1, hi))