"""Reference implementations of each rendering stage, used to check or skip work."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence, Tuple

import numpy as np

from .model import CImage, Particle
from .sorting import sort_pairs

_HALF = np.float32(0.5)
_ONE = np.float32(1.0)
_MAX_CHANNEL = np.float32(255.0)


@dataclass
class SkipTracker:
    """Counts how often each reference stage stood in for a renderer's own work."""

    pixel_contribs: int = -1
    pixel_index: int = -1
    sorted_pairs: int = -1
    blend: int = -1

    def total(self) -> int:
        """Uses of every reference stage together."""
        return self.pixel_contribs + self.pixel_index + self.sorted_pairs + self.blend

    def stage1(self) -> int:
        """Uses of the stage 1 reference."""
        return self.pixel_contribs

    def stage2(self) -> int:
        """Uses of the stage 2 references."""
        return self.pixel_index + self.sorted_pairs

    def stage3(self) -> int:
        """Uses of the stage 3 reference."""
        return self.blend


tracker = SkipTracker()


def _check_shape(width: int, height: int) -> None:
    if width < 0 or height < 0:
        raise ValueError(f"invalid image size {width}x{height}")


def _round_half_away(value: np.float32) -> int:
    magnitude = math.floor(abs(float(value)) + 0.5)
    return int(math.copysign(magnitude, float(value)))


def _bounding_box(particle: Particle, width: int, height: int) -> Tuple[int, int, int, int]:
    x = np.float32(particle.location[0])
    y = np.float32(particle.location[1])
    radius = np.float32(particle.radius)
    x_min = max(_round_half_away(x - radius), 0)
    y_min = max(_round_half_away(y - radius), 0)
    x_max = min(_round_half_away(x + radius), width - 1)
    y_max = min(_round_half_away(y + radius), height - 1)
    return x_min, y_min, x_max, y_max


def covered_pixels(particle: Particle, width: int, height: int) -> Iterator[Tuple[int, int]]:
    """Yield the (x, y) pixels whose centres lie within the particle's radius.

    Pixels come column by column: x ascending, then y ascending within a column.
    """
    _check_shape(width, height)
    x_min, y_min, x_max, y_max = _bounding_box(particle, width, height)
    if x_min > x_max or y_min > y_max:
        return
    xs = np.arange(x_min, x_max + 1)
    ys = np.arange(y_min, y_max + 1)
    grid_x, grid_y = np.meshgrid(xs, ys, indexing="ij")
    x_ab = (grid_x.astype(np.float32) + _HALF) - np.float32(particle.location[0])
    y_ab = (grid_y.astype(np.float32) + _HALF) - np.float32(particle.location[1])
    distance = np.sqrt(x_ab * x_ab + y_ab * y_ab, dtype=np.float32)
    inside = distance <= np.float32(particle.radius)
    yield from zip(grid_x[inside].tolist(), grid_y[inside].tolist())


def _count_contributions(particles: Iterable[Particle], width: int, height: int) -> np.ndarray:
    counts = np.zeros(width * height, dtype=np.uint32)
    for particle in particles:
        for x, y in covered_pixels(particle, width, height):
            counts[y * width + x] += 1
    return counts


def skip_pixel_contribs(particles: Iterable[Particle], width: int, height: int) -> np.ndarray:
    """Return how many particles contribute to each pixel (stage 1)."""
    _check_shape(width, height)
    counts = _count_contributions(particles, width, height)
    tracker.pixel_contribs += 1
    return counts


def skip_pixel_index(pixel_contribs: Sequence[int]) -> np.ndarray:
    """Return the exclusive prefix sum of a contribution histogram, one entry longer."""
    contribs = np.asarray(pixel_contribs, dtype=np.uint32).reshape(-1)
    index = np.zeros(contribs.size + 1, dtype=np.uint32)
    np.cumsum(contribs, dtype=np.uint32, out=index[1:])
    tracker.pixel_index += 1
    return index


def _as_index(pixel_index: Sequence[int], width: int, height: int) -> np.ndarray:
    index = np.asarray(pixel_index, dtype=np.int64).reshape(-1)
    if index.size != width * height + 1:
        raise ValueError(
            f"pixel index holds {index.size} entries, expected {width * height + 1}"
        )
    return index


def skip_sorted_pairs(
    particles: Iterable[Particle], pixel_index: Sequence[int], width: int, height: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Return each pixel's contributing RGBA colours and depths, sorted by depth (stage 2).

    The colours come back as an (N, 4) uint8 array, the depths as N float32 values.
    """
    _check_shape(width, height)
    index = _as_index(pixel_index, width, height)
    total = int(index[-1])
    depths = [0.0] * total
    colours = [(0, 0, 0, 0)] * total
    filled = [0] * (width * height)
    for particle in particles:
        depth = float(np.float32(particle.location[2]))
        for x, y in covered_pixels(particle, width, height):
            offset = y * width + x
            slot = int(index[offset]) + filled[offset]
            filled[offset] += 1
            depths[slot] = depth
            colours[slot] = particle.color
    for start, stop in zip(index[:-1].tolist(), index[1:].tolist()):
        if stop - start > 1:
            sort_pairs(depths, colours, start, stop - 1)
    tracker.sorted_pairs += 1
    colour_array = np.array(colours, dtype=np.uint8).reshape(total, 4)
    return colour_array, np.array(depths, dtype=np.float32)


def skip_blend(
    pixel_index: Sequence[int], colours: Sequence, width: int, height: int
) -> CImage:
    """Blend each pixel's sorted colours over white into an RGB image (stage 3)."""
    _check_shape(width, height)
    index = _as_index(pixel_index, width, height)
    palette = np.asarray(colours, dtype=np.uint8).reshape(-1, 4)
    if palette.shape[0] < int(index[-1]):
        raise ValueError(
            f"{palette.shape[0]} colours given, pixel index needs {int(index[-1])}"
        )
    pixels = np.full((width * height, 3), 255, dtype=np.uint8)
    starts = index[:-1]
    counts = index[1:] - starts
    layers = int(counts.max()) if counts.size else 0
    for layer in range(layers):
        mask = counts > layer
        source = palette[starts[mask] + layer].astype(np.float32)
        opacity = source[:, 3] / _MAX_CHANNEL
        dest = pixels[mask].astype(np.float32)
        blended = source[:, :3] * opacity[:, None] + dest * (_ONE - opacity)[:, None]
        pixels[mask] = blended.astype(np.uint8)
    tracker.blend += 1
    return CImage(width, height, 3, pixels.reshape(-1))


def get_skip_used() -> int:
    """Uses of every reference stage together."""
    return tracker.total()


def get_stage1_skip_used() -> int:
    """Uses of the stage 1 reference."""
    return tracker.stage1()


def get_stage2_skip_used() -> int:
    """Uses of the stage 2 references."""
    return tracker.stage2()


def get_stage3_skip_used() -> int:
    """Uses of the stage 3 reference."""
    return tracker.stage3()