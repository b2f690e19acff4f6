"""Single-threaded particle renderer working in three timed stages."""

from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np

from .model import CImage, Particle
from .reference import covered_pixels
from .sorting import sort_pairs
from .validation import (
    ValidationResult,
    validate_blend,
    validate_pixel_contribs,
    validate_pixel_index,
    validate_sorted_pairs,
)

_ONE = np.float32(1.0)
_MAX_CHANNEL = np.float32(255.0)


class CpuRenderer:
    """Render circle particles into an RGB image, one stage at a time.

    Stage 1 counts the particles covering each pixel, stage 2 builds a
    per-pixel index and stores each pixel's contributing colours sorted by
    ascending depth, and stage 3 blends those colours over white. ``end``
    returns the finished image and releases the working buffers.
    """

    def __init__(
        self,
        particles: Iterable[Particle],
        width: int,
        height: int,
        validate: bool = False,
    ) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"invalid image size {width}x{height}")
        self.particles = tuple(particles)
        self.width = int(width)
        self.height = int(height)
        self.validate = validate
        self.validation_results: List[ValidationResult] = []
        self.pixel_contribs: Optional[np.ndarray] = None
        self.pixel_index: Optional[np.ndarray] = None
        self.pixel_contrib_colours: Optional[np.ndarray] = None
        self.pixel_contrib_depths: Optional[np.ndarray] = None
        self.output_image: Optional[CImage] = CImage.blank(self.width, self.height, 3)
        self._finished = False

    def __enter__(self) -> "CpuRenderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self._release()

    @property
    def _pixels(self) -> int:
        return self.width * self.height

    def _require_open(self) -> None:
        if self._finished:
            raise RuntimeError("renderer has already finished")

    def _offsets(self, particle: Particle) -> List[int]:
        return [y * self.width + x for x, y in covered_pixels(particle, self.width, self.height)]

    def stage1(self) -> None:
        """Count how many particles contribute to each pixel."""
        self._require_open()
        counts = np.zeros(self._pixels, dtype=np.uint32)
        for particle in self.particles:
            offsets = self._offsets(particle)
            if offsets:
                np.add.at(counts, np.asarray(offsets, dtype=np.intp), 1)
        self.pixel_contribs = counts
        if self.validate:
            self.validation_results.append(
                validate_pixel_contribs(self.particles, counts, self.width, self.height)
            )

    def stage2(self) -> None:
        """Build the pixel index and store depth-sorted colours for each pixel."""
        self._require_open()
        if self.pixel_contribs is None:
            raise RuntimeError("stage1 must run before stage2")
        index = np.zeros(self._pixels + 1, dtype=np.uint32)
        np.cumsum(self.pixel_contribs, dtype=np.uint32, out=index[1:])
        total = int(index[-1])

        starts = index[:-1].tolist()
        filled = [0] * self._pixels
        depths = [0.0] * total
        colours = [(0, 0, 0, 0)] * total
        for particle in self.particles:
            depth = float(np.float32(particle.location[2]))
            for offset in self._offsets(particle):
                slot = starts[offset] + filled[offset]
                filled[offset] += 1
                depths[slot] = depth
                colours[slot] = particle.color

        for start, stop in zip(starts, index[1:].tolist()):
            if stop - start > 1:
                sort_pairs(depths, colours, start, stop - 1)

        self.pixel_contribs = np.asarray(filled, dtype=np.uint32)
        self.pixel_index = index
        self.pixel_contrib_colours = np.array(colours, dtype=np.uint8).reshape(total, 4)
        self.pixel_contrib_depths = np.array(depths, dtype=np.float32)
        if self.validate:
            self.validation_results.append(
                validate_pixel_index(self.pixel_contribs, index, self.width, self.height)
            )
            self.validation_results.append(
                validate_sorted_pairs(
                    self.particles,
                    index,
                    self.width,
                    self.height,
                    self.pixel_contrib_colours,
                    self.pixel_contrib_depths,
                )
            )

    def stage3(self) -> None:
        """Blend each pixel's sorted colours over white into the output image."""
        self._require_open()
        if self.pixel_index is None or self.pixel_contrib_colours is None:
            raise RuntimeError("stage2 must run before stage3")
        index = self.pixel_index.astype(np.int64)
        palette = self.pixel_contrib_colours
        pixels = np.full((self._pixels, 3), 255, dtype=np.uint8)
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
        self.output_image = CImage(self.width, self.height, 3, pixels.reshape(-1))
        if self.validate:
            self.validation_results.append(
                validate_blend(index, palette, self.output_image)
            )

    def end(self) -> CImage:
        """Return a copy of the output image and release the working buffers."""
        self._require_open()
        image = self.output_image
        result = CImage(image.width, image.height, image.channels, image.data.copy())
        self._release()
        return result

    def _release(self) -> None:
        self.pixel_contribs = None
        self.pixel_index = None
        self.pixel_contrib_colours = None
        self.pixel_contrib_depths = None
        self.output_image = None
        self._finished = True