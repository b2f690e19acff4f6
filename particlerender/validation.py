"""Checks of each rendering stage's results against the reference stages."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .model import CImage, Particle
from .reference import (
    skip_blend,
    skip_pixel_contribs,
    skip_pixel_index,
    skip_sorted_pairs,
    tracker,
)

_RED = "\x1b[91m"
_GREEN = "\x1b[92m"
_YELLOW = "\x1b[93m"
_RESET = "\x1b[39m"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one stage check.

    ``bad`` counts pixels found wrong, ``total`` the pixels checked. ``close``
    counts blended pixels that were off by exactly one, ``bad_depths`` the
    pixels with wrong depths (None when depths were not checked), and
    ``wrong_channels`` flags an output image that is not RGB.
    """

    check: str
    total: int
    bad: int = 0
    close: int = 0
    bad_depths: Optional[int] = None
    wrong_channels: bool = False
    messages: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """True when the checked stage produced correct results."""
        return self.bad == 0 and not self.wrong_channels


def _tint(code: str) -> str:
    stream = sys.stderr
    isatty = getattr(stream, "isatty", None)
    return code if isatty is not None and isatty() else ""


def _report(messages: Sequence[str]) -> None:
    for message in messages:
        print(message, file=sys.stderr)


def _flat(values, dtype, expected: int, what: str) -> np.ndarray:
    array = np.asarray(values, dtype=dtype).reshape(-1)
    if array.size != expected:
        raise ValueError(f"{what} holds {array.size} entries, expected {expected}")
    return array


def validate_pixel_contribs(
    particles: Iterable[Particle], test_pixel_contribs, width: int, height: int
) -> ValidationResult:
    """Compare a stage 1 contribution histogram with the reference and report."""
    pixels = width * height
    test = _flat(test_pixel_contribs, np.int64, pixels, "pixel contribution histogram")
    reference = skip_pixel_contribs(list(particles), width, height)
    tracker.pixel_contribs -= 1
    bad = int(np.count_nonzero(test != reference.astype(np.int64)))
    if bad:
        message = (
            f"validate_pixel_contribs() {_tint(_RED)}found {bad}/{pixels} "
            f"pixels contain invalid values.{_tint(_RESET)}"
        )
    else:
        message = (
            f"validate_pixel_contribs() {_tint(_GREEN)}found no errors! "
            f"({pixels} pixels were correct){_tint(_RESET)}"
        )
    _report([message])
    return ValidationResult("pixel_contribs", pixels, bad=bad, messages=(message,))


def validate_pixel_index(
    pixel_contribs, test_pixel_index, width: int, height: int
) -> ValidationResult:
    """Compare a stage 2 pixel index with the prefix sum of the histogram and report."""
    pixels = width * height
    contribs = _flat(pixel_contribs, np.uint32, pixels, "pixel contribution histogram")
    test = _flat(test_pixel_index, np.int64, pixels + 1, "pixel index")
    reference = skip_pixel_index(contribs)
    tracker.pixel_index -= 1
    bad = int(np.count_nonzero(test != reference.astype(np.int64)))
    if bad:
        message = (
            f"validate_pixel_index() {_tint(_RED)}found {bad}/{pixels} "
            f"pixels contain invalid indices.{_tint(_RESET)}"
        )
    else:
        message = (
            f"validate_pixel_index() {_tint(_GREEN)}found no errors! "
            f"({pixels} pixels were correct){_tint(_RESET)}"
        )
    _report([message])
    return ValidationResult("pixel_index", pixels, bad=bad, messages=(message,))


def _bad_pixel_count(mismatch: np.ndarray, owners: np.ndarray) -> int:
    return int(np.unique(owners[mismatch]).size)


def validate_sorted_pairs(
    particles: Iterable[Particle],
    pixel_index,
    width: int,
    height: int,
    test_colours,
    test_depths=None,
) -> ValidationResult:
    """Compare stage 2 depth-sorted colours (and optionally depths) and report."""
    pixels = width * height
    index = _flat(pixel_index, np.int64, pixels + 1, "pixel index")
    total = int(index[-1])
    colours = np.asarray(test_colours, dtype=np.uint8).reshape(-1)
    if colours.size < total * 4:
        raise ValueError(f"{colours.size // 4} colours given, pixel index needs {total}")
    colours = colours[: total * 4].reshape(total, 4)
    depths = None
    if test_depths is not None:
        depths = np.asarray(test_depths, dtype=np.float32).reshape(-1)
        if depths.size < total:
            raise ValueError(f"{depths.size} depths given, pixel index needs {total}")
        depths = depths[:total]

    ref_colours, ref_depths = skip_sorted_pairs(list(particles), index, width, height)
    tracker.sorted_pairs -= 1

    owners = np.repeat(np.arange(pixels), np.diff(index))
    bad_colours = _bad_pixel_count(np.any(colours != ref_colours, axis=1), owners)
    bad_depths = None
    if depths is not None:
        bad_depths = _bad_pixel_count(depths != ref_depths, owners)

    messages = []
    if bad_colours:
        messages.append(
            f"validate_sorted_pairs() {_tint(_RED)}found {bad_colours}/{pixels} "
            f"pixels have wrong/unsorted colours.{_tint(_RESET)}"
        )
    else:
        messages.append(
            f"validate_sorted_pairs() {_tint(_GREEN)}found no colour errors! "
            f"({pixels} pixels colours were correct){_tint(_RESET)}"
        )
    if bad_depths is not None:
        if bad_depths:
            messages.append(
                f"validate_sorted_pairs() {_tint(_RED)}found {bad_depths}/{pixels} "
                f"pixels have wrong/unsorted depths.{_tint(_RESET)}"
            )
            if not bad_colours:
                messages.append(
                    f"{_tint(_YELLOW)}Colours were correct, so incorrect depth "
                    f"is not a problem.{_tint(_RESET)}"
                )
        else:
            messages.append(
                f"validate_sorted_pairs() {_tint(_GREEN)}found no depth errors! "
                f"({pixels} pixels depths were correct){_tint(_RESET)}"
            )
    _report(messages)
    return ValidationResult(
        "sorted_pairs",
        pixels,
        bad=bad_colours,
        bad_depths=bad_depths,
        messages=tuple(messages),
    )


def validate_blend(pixel_index, colours, test_output_image: CImage) -> ValidationResult:
    """Compare a stage 3 output image with the reference blend and report.

    A pixel whose first differing channel is off by exactly one counts as close
    rather than bad.
    """
    width = test_output_image.width
    height = test_output_image.height
    channels = test_output_image.channels
    pixels = width * height

    blended = skip_blend(pixel_index, colours, width, height)
    tracker.blend -= 1
    reference = np.full(pixels * channels, 255, dtype=np.int64)
    shared = min(reference.size, blended.data.size)
    reference[:shared] = blended.data[:shared]

    test = np.asarray(test_output_image.data, dtype=np.int64).reshape(pixels, channels)
    reference = reference.reshape(pixels, channels)
    differs = reference != test
    rows = np.flatnonzero(differs.any(axis=1))
    first = differs[rows].argmax(axis=1)
    gaps = np.abs(reference[rows, first] - test[rows, first])
    close = int(np.count_nonzero(gaps == 1))
    bad = int(rows.size) - close

    messages = []
    wrong_channels = channels != 3
    if wrong_channels:
        messages.append(
            f"validate_blend() {_tint(_RED)}Output image channels should equal 3, "
            f"found {channels} instead.{_tint(_RESET)}"
        )
    if bad:
        messages.append(
            f"validate_blend() {_tint(_RED)}{bad}/{pixels} pixels contain the "
            f"wrong colour.{_tint(_RESET)}"
        )
    elif not wrong_channels:
        messages.append(
            f"validate_blend() {_tint(_GREEN)}found no errors! "
            f"({pixels} pixels were correct){_tint(_RESET)}"
        )
    _report(messages)
    return ValidationResult(
        "blend",
        pixels,
        bad=bad,
        close=close,
        wrong_channels=wrong_channels,
        messages=tuple(messages),
    )