"""Core data types and configuration values for particle rendering."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

# The number of values a pixel channel can take.
PIXEL_RANGE = 256
# Number of runs to complete when benchmarking.
BENCHMARK_RUNS = 100

# Particle generation parameters.
CIRCLE_OPACITY_AVERAGE = 0.5
CIRCLE_OPACITY_STDDEV = 2.0
CIRCLE_RAD_AVERAGE = 10.0
CIRCLE_RAD_STDDEV = 2.0

# Bounds for particle generation.
MIN_RADIUS = 10.0
MAX_RADIUS = 512.0
MIN_OPACITY = 0.2
MAX_OPACITY = 0.8

# Dark2 palette from Colorbrewer.
BASE_COLOR_PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (29, 143, 100),
    (206, 74, 8),
    (97, 89, 164),
    (222, 0, 119),
    (86, 153, 24),
    (223, 156, 9),
    (148, 99, 23),
    (83, 83, 83),
)


def _as_float32(value: float) -> float:
    return float(np.float32(value))


@dataclass(frozen=True)
class Particle:
    """A circle particle: RGBA colour, x/y/depth location and radius."""

    color: Tuple[int, int, int, int]
    location: Tuple[float, float, float]
    radius: float

    def __post_init__(self) -> None:
        color = tuple(int(c) for c in self.color)
        if len(color) != 4:
            raise ValueError(f"color must have 4 channels, got {len(color)}")
        if any(not 0 <= c < PIXEL_RANGE for c in color):
            raise ValueError(f"color channels must be in [0, {PIXEL_RANGE}), got {color}")
        location = tuple(_as_float32(v) for v in self.location)
        if len(location) != 3:
            raise ValueError(f"location must have 3 components, got {len(location)}")
        object.__setattr__(self, "color", color)
        object.__setattr__(self, "location", location)
        object.__setattr__(self, "radius", _as_float32(self.radius))


@dataclass
class CImage:
    """A compact multi-channel image, pixels left to right, top to bottom."""

    width: int
    height: int
    channels: int
    data: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0 or self.channels < 1:
            raise ValueError(
                f"invalid image shape {self.width}x{self.height}x{self.channels}"
            )
        data = np.asarray(self.data, dtype=np.uint8).reshape(-1)
        expected = self.width * self.height * self.channels
        if data.size != expected:
            raise ValueError(f"image data holds {data.size} values, expected {expected}")
        self.data = data

    @classmethod
    def blank(cls, width: int, height: int, channels: int) -> "CImage":
        """Return an image of the given shape with every channel set to zero."""
        if width < 0 or height < 0 or channels < 1:
            raise ValueError(f"invalid image shape {width}x{height}x{channels}")
        return cls(width, height, channels, np.zeros(width * height * channels, dtype=np.uint8))


class Mode(enum.Enum):
    """Which algorithm renders the particles."""

    CPU = "CPU"
    OPENMP = "OPENMP"
    CUDA = "CUDA"

    def __str__(self) -> str:
        return self.value


@dataclass
class Config:
    """Options that control a rendering run."""

    circle_count: int
    out_image_width: int
    out_image_height: int
    output_file: Optional[str] = None
    mode: Mode = Mode.CPU
    benchmark: bool = False


@dataclass
class Runtimes:
    """Timings, in milliseconds, of each phase of a run."""

    init: float = 0.0
    stage1: float = 0.0
    stage2: float = 0.0
    stage3: float = 0.0
    cleanup: float = 0.0
    total: float = 0.0


def palette_color(index: int, opacity: int) -> Tuple[int, int, int, int]:
    """Return an RGBA colour from the base palette with the given opacity."""
    red, green, blue = BASE_COLOR_PALETTE[index % len(BASE_COLOR_PALETTE)]
    return (red, green, blue, opacity)


_ = Sequence  # re-exported typing name kept for annotations in callers