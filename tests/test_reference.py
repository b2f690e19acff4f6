import numpy as np
import pytest

from particlerender.model import Particle
from particlerender.reference import (
    SkipTracker,
    covered_pixels,
    get_skip_used,
    get_stage1_skip_used,
    get_stage2_skip_used,
    get_stage3_skip_used,
    skip_blend,
    skip_pixel_contribs,
    skip_pixel_index,
    skip_sorted_pairs,
)


def _particles():
    return [
        Particle((200, 10, 10, 255), (5.0, 5.0, 3.0), 3.0),
        Particle((10, 200, 10, 128), (6.0, 5.0, 1.0), 2.5),
        Particle((10, 10, 200, 64), (4.0, 6.0, 2.0), 2.0),
    ]


def test_covered_pixels_small_circle():
    particle = Particle((0, 0, 0, 255), (5.0, 5.0, 0.0), 1.0)
    assert list(covered_pixels(particle, 10, 10)) == [(4, 4), (4, 5), (5, 4), (5, 5)]


def test_covered_pixels_order_and_bounds():
    particle = Particle((0, 0, 0, 255), (1.0, 1.0, 0.0), 4.0)
    pixels = list(covered_pixels(particle, 6, 5))
    assert pixels == sorted(pixels)
    assert all(0 <= x < 6 and 0 <= y < 5 for x, y in pixels)
    assert (0, 0) in pixels


def test_covered_pixels_outside_image_is_empty():
    particle = Particle((0, 0, 0, 255), (-50.0, -50.0, 0.0), 3.0)
    assert list(covered_pixels(particle, 10, 10)) == []


def test_covered_pixels_symmetric_about_centre():
    particle = Particle((0, 0, 0, 255), (10.0, 10.0, 0.0), 4.0)
    pixels = set(covered_pixels(particle, 20, 20))
    assert pixels == {(19 - x, y) for x, y in pixels}
    assert pixels == {(y, x) for x, y in pixels}


def test_skip_pixel_contribs_totals_match_coverage():
    particles = _particles()
    counts = skip_pixel_contribs(particles, 10, 10)
    assert counts.shape == (100,)
    assert int(counts.sum()) == sum(len(list(covered_pixels(p, 10, 10))) for p in particles)
    assert int(counts.max()) <= len(particles)


def test_skip_pixel_contribs_rejects_negative_size():
    with pytest.raises(ValueError):
        skip_pixel_contribs(_particles(), -1, 10)


def test_skip_pixel_index_is_exclusive_prefix_sum():
    contribs = np.array([2, 0, 3, 1], dtype=np.uint32)
    index = skip_pixel_index(contribs)
    assert index.size == contribs.size + 1
    assert index[0] == 0
    assert np.array_equal(np.diff(index), contribs)
    assert int(index[-1]) == int(contribs.sum())


def test_skip_sorted_pairs_sorted_by_depth():
    particles = _particles()
    counts = skip_pixel_contribs(particles, 10, 10)
    index = skip_pixel_index(counts)
    colours, depths = skip_sorted_pairs(particles, index, 10, 10)
    assert colours.shape == (int(index[-1]), 4)
    assert depths.shape == (int(index[-1]),)
    colour_for_depth = {p.location[2]: p.color for p in particles}
    for start, stop in zip(index[:-1], index[1:]):
        segment = depths[start:stop]
        assert np.all(segment[:-1] <= segment[1:])
        for depth, colour in zip(segment, colours[start:stop]):
            assert tuple(colour.tolist()) == colour_for_depth[float(depth)]


def test_skip_sorted_pairs_rejects_bad_index():
    with pytest.raises(ValueError):
        skip_sorted_pairs(_particles(), [0, 0, 0], 10, 10)


def test_skip_blend_empty_is_white():
    image = skip_blend(np.zeros(13, dtype=np.uint32), np.zeros((0, 4)), 4, 3)
    assert (image.width, image.height, image.channels) == (4, 3, 3)
    assert np.all(image.data == 255)


def test_skip_blend_opaque_layers_last_wins():
    index = [0, 2, 2]
    colours = [(10, 20, 30, 255), (40, 50, 60, 255)]
    image = skip_blend(index, colours, 2, 1)
    assert image.data[:3].tolist() == [40, 50, 60]
    assert image.data[3:].tolist() == [255, 255, 255]


def test_skip_blend_transparent_leaves_white():
    image = skip_blend([0, 1], [(0, 0, 0, 0)], 1, 1)
    assert image.data.tolist() == [255, 255, 255]


def test_skip_blend_rejects_short_colours():
    with pytest.raises(ValueError):
        skip_blend([0, 3], [(1, 2, 3, 4)], 1, 1)


def test_full_pipeline_stays_within_colour_range():
    particles = _particles()
    counts = skip_pixel_contribs(particles, 10, 10)
    index = skip_pixel_index(counts)
    colours, _ = skip_sorted_pairs(particles, index, 10, 10)
    image = skip_blend(index, colours, 10, 10)
    covered = counts.astype(bool)
    pixels = image.data.reshape(-1, 3)
    uncovered = int((~covered).sum())
    assert pixels[~covered].tolist() == [[255, 255, 255]] * uncovered
    # The deepest particle is opaque, so it is blended last and shows its own colour.
    assert pixels[5 * 10 + 5].tolist() == [200, 10, 10]


def test_skip_tracker_starts_below_zero():
    fresh = SkipTracker()
    assert fresh.total() == -4
    assert fresh.stage1() == -1
    assert fresh.stage2() == -2
    assert fresh.stage3() == -1


def test_skip_tracker_stage_sums():
    counts = SkipTracker(pixel_contribs=1, pixel_index=2, sorted_pairs=3, blend=4)
    assert counts.stage2() == counts.pixel_index + counts.sorted_pairs
    assert counts.total() == counts.stage1() + counts.stage2() + counts.stage3()


def test_module_counters_advance_on_use():
    before = (get_stage1_skip_used(), get_stage2_skip_used(), get_stage3_skip_used())
    total_before = get_skip_used()
    counts = skip_pixel_contribs(_particles(), 8, 8)
    index = skip_pixel_index(counts)
    colours, _ = skip_sorted_pairs(_particles(), index, 8, 8)
    skip_blend(index, colours, 8, 8)
    after = (get_stage1_skip_used(), get_stage2_skip_used(), get_stage3_skip_used())
    assert after[0] == before[0] + 1
    assert after[1] == before[1] + 2
    assert after[2] == before[2] + 1
    assert get_skip_used() == total_before + 4