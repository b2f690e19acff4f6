# particlerender

Render a set of coloured, semi-transparent circles ("particles") into an RGB
image. Every particle has an RGBA colour, an x/y/depth location and a radius.
A pixel is covered by a particle when the pixel centre lies within its radius;
the colours covering each pixel are sorted by depth (ascending) and blended
over a white background with

    dest = src * opacity + dest * (1 - opacity)

where `opacity` is the colour's alpha channel divided by 255.

## Installation

    pip install particlerender

The only runtime dependency is `numpy`.

## The pipeline

Rendering runs in three stages, so that each can be timed on its own:

1. **Stage 1** counts how many particles cover each pixel.
2. **Stage 2** turns those counts into an index by an exclusive prefix sum,
   gathers the colour and depth of every contribution, and sorts each pixel's
   contributions by depth.
3. **Stage 3** blends the sorted colours into the output image.

Two renderers implement it, with the same methods:

- `particlerender.cpu.CpuRenderer(particles, width, height, validate=False)`
  – a single-threaded renderer.
- `particlerender.parallel.ParallelRenderer(particles, width, height,
  validate=False, workers=None)` – spreads the work over a pool of threads
  (`workers` defaults to the number of CPUs) and produces the same image.

```python
from particlerender.model import Particle
from particlerender.cpu import CpuRenderer

particles = [
    Particle(color=(29, 143, 100, 128), location=(32.0, 32.0, 1.0), radius=12.0),
    Particle(color=(206, 74, 8, 200), location=(40.0, 36.0, 0.5), radius=10.0),
]

renderer = CpuRenderer(particles, 64, 64)
renderer.stage1()
renderer.stage2()
renderer.stage3()
image = renderer.end()   # CImage: width, height, channels == 3, flat uint8 data
```

The stages must run in order; running stage 2 before stage 1, or stage 3
before stage 2, raises `RuntimeError`. `end()` returns a copy of the output
image and releases the working buffers, after which the renderer can no
longer be used. A renderer is also a context manager that releases its
buffers on exit.

Between stages the intermediate results are available as attributes:
`pixel_contribs`, `pixel_index`, `pixel_contrib_colours` (an `(N, 4)` uint8
array) and `pixel_contrib_depths`.

## Reference stages

`particlerender.reference` holds a reference implementation of each step:

- `covered_pixels(particle, width, height)` yields the `(x, y)` pixels a
  particle covers;
- `skip_pixel_contribs(particles, width, height)` – stage 1 histogram;
- `skip_pixel_index(pixel_contribs)` – exclusive prefix sum, one entry longer;
- `skip_sorted_pairs(particles, pixel_index, width, height)` – depth-sorted
  colours and depths;
- `skip_blend(pixel_index, colours, width, height)` – the blended `CImage`.

Every call is counted, so that timings can be flagged as meaningless when the
reference did a stage's work. The counters start at -1, so a value above -1
means the reference was used; `get_skip_used()`, `get_stage1_skip_used()`,
`get_stage2_skip_used()` and `get_stage3_skip_used()` report them, and the
`SkipTracker` class holds them.

`particlerender.sorting.sort_pairs(keys, colours, first, last)` sorts
`keys[first..last]` (inclusive) in place and moves the colours alongside.

## Validation

`particlerender.validation` compares the result of a stage with the
reference: `validate_pixel_contribs`, `validate_pixel_index`,
`validate_sorted_pairs` (depths are optional) and `validate_blend`. Each
returns a `ValidationResult` (`ok`, `bad`, `total`, `close`, `bad_depths`,
`wrong_channels`, `messages`) and prints a summary to standard error,
coloured when standard error is a terminal. Validation does not count as use
of the reference stages. In `validate_blend`, a pixel whose first differing
channel is off by exactly one counts as close rather than wrong.

Passing `validate=True` to a renderer checks every stage as it runs and
collects the results in its `validation_results` list.

## Data types

`particlerender.model` defines `Particle` (colour channels checked to lie in
0–255, location and radius held as 32-bit float values), `CImage` (with
`CImage.blank(width, height, channels)` for an all-zero image), the run
`Mode`, the run `Config`, the per-stage `Runtimes`, the particle-generation
constants, the `BASE_COLOR_PALETTE` and `palette_color(index, opacity)`.

## What the package does not do

It is a library only. It has no command-line program, does not generate
random particles, does not measure or report timings itself (`Runtimes` is
only a container), and does not write images to files: `Config.output_file`
is not used by any code in the package. There is no GPU renderer; `Mode.CUDA`
exists only as a value.