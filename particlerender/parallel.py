"""Multi-threaded particle renderer working in three timed stages."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Tuple

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


def _chunks(count: int, parts: int) -> List[Tuple[int, int]]:
    """Split range(count) into at most ``parts`` contiguous, non-empty spans."""
    if count <= 0:
        return []
    parts = max(1, min(parts, count))
    size, extra = divmod(count, parts)
    spans = []
    start = 0
    for part in range(parts):
        stop = start + size + (1 if part < extra else 0)
        spans.append((start, stop))
        start = stop
    return spans


class ParallelRenderer:
    """Render circle particles into an RGB image using a pool of worker threads.

    The stages match those of the single-threaded renderer: stage 1 counts the
    particles covering each pixel, stage 2 builds the pixel index and stores
    each pixel's colours sorted by ascending depth (contributions are stored in
    particle order, so the result is deterministic), and stage 3 blends them
    over white. ``end`` returns the finished image and releases the buffers.
    """

    def __init__(
        self,
        particles: Iterable[Particle],
        width: int,
        height: int,
        validate: bool = False,
        workers: Optional[int] = None,
    ) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"invalid image size {width}x{height}")
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.particles = tuple(particles)
        self.width = int(width)
        self.height = int(height)
        self.validate = validate
        self.workers = int(workers)
        self.validation_results: List[ValidationResult] = []
        self.pixel_contribs: Optional[np.ndarray] = None
        self.pixel_index: Optional[np.ndarray] = None
        self.pixel_contrib_colours: Optional[np.ndarray] = None
        self.pixel_contrib_depths: Optional[np.ndarray] = None
        self.output_image: Optional[CImage] = CImage.blank(self.width, self.height, 3)
        self._finished = False

    def __enter__(self) -> "ParallelRenderer":
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

    def _coverage(self) -> List[List[int]]:
        """Covered pixel offsets of every particle, in particle order."""
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(self._offsets, self.particles))

    def stage1(self) -> None:
        """Count how many particles contribute to each pixel."""
        self._require_open()
        counts = np.zeros(self._pixels, dtype=np.uint32)
        offsets = [o for covered in self._coverage() for o in covered]
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
        stops = index[1:].tolist()
        filled = [0] * self._pixels
        depths = [0.0] * total
        colours = [(0, 0, 0, 0)] * total
        for particle, covered in zip(self.particles, self._coverage()):
            depth = float(np.float32(particle.location[2]))
            for offset in covered:
                slot = starts[offset] + filled[offset]
                filled[offset] += 1
                depths[slot] = depth
                colours[slot] = particle.color

        def sort_span(span: Tuple[int, int]) -> None:
            for start, stop in zip(starts[span[0]:span[1]], stops[span[0]:span[1]]):
                if stop - start > 1:
                    sort_pairs(depths, colours, start, stop - 1)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            list(pool.map(sort_span, _chunks(self._pixels, self.workers * 4)))

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

        def blend_span(span: Tuple[int, int]) -> None:
            lo, hi = span
            starts = index[lo:hi]
            counts = index[lo + 1:hi + 1] - starts
            block = pixels[lo:hi]
            layers = int(counts.max()) if counts.size else 0
            for layer in range(layers):
                mask = counts > layer
                source = palette[starts[mask] + layer].astype(np.float32)
                opacity = source[:, 3] / _MAX_CHANNEL
                dest = block[mask].astype(np.float32)
                blended = source[:, :3] * opacity[:, None] + dest * (_ONE - opacity)[:, None]
                block[mask] = blended.astype(np.uint8)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            list(pool.map(blend_span, _chunks(self._pixels, self.workers)))

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


_ = Sequence