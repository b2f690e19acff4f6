import random

import numpy as np

from particlerender.sorting import sort_pairs


def test_sorts_lists_with_colours_attached():
    keys = [3.0, 1.0, 2.0]
    colours = [(3, 3, 3, 3), (1, 1, 1, 1), (2, 2, 2, 2)]
    sort_pairs(keys, colours, 0, 2)
    assert keys == [1.0, 2.0, 3.0]
    assert colours == [(1, 1, 1, 1), (2, 2, 2, 2), (3, 3, 3, 3)]


def test_sorts_numpy_arrays():
    keys = np.array([5.0, -1.0, 2.5, 0.0], dtype=np.float32)
    colours = np.array([[5] * 4, [9] * 4, [2] * 4, [0] * 4], dtype=np.uint8)
    sort_pairs(keys, colours, 0, 3)
    assert keys.tolist() == [-1.0, 0.0, 2.5, 5.0]
    assert colours[:, 0].tolist() == [9, 0, 2, 5]


def test_only_the_given_range_is_touched():
    keys = [9.0, 4.0, 3.0, 2.0, -5.0]
    colours = ["a", "b", "c", "d", "e"]
    sort_pairs(keys, colours, 1, 3)
    assert keys == [9.0, 2.0, 3.0, 4.0, -5.0]
    assert colours == ["a", "d", "c", "b", "e"]


def test_empty_and_single_ranges_leave_input_alone():
    keys = [2.0, 1.0]
    colours = ["x", "y"]
    sort_pairs(keys, colours, 0, -1)
    sort_pairs(keys, colours, 1, 1)
    assert keys == [2.0, 1.0]
    assert colours == ["x", "y"]


def test_unique_keys_keep_their_colours():
    rng = random.Random(7)
    keys = rng.sample(range(10000), 300)
    pairing = {k: (k % 256, 0, 0, 255) for k in keys}
    colours = [pairing[k] for k in keys]
    keys = [float(k) for k in keys]
    sort_pairs(keys, colours, 0, len(keys) - 1)
    assert keys == sorted(keys)
    assert all(pairing[int(k)] == c for k, c in zip(keys, colours))


def test_duplicates_are_preserved():
    rng = random.Random(3)
    keys = [float(rng.randint(0, 5)) for _ in range(200)]
    colours = list(range(200))
    original = sorted(zip(keys, colours))
    sort_pairs(keys, colours, 0, len(keys) - 1)
    assert keys == sorted(keys)
    assert sorted(zip(keys, colours)) == original


def test_long_sorted_input_does_not_exhaust_recursion():
    n = 5000
    keys = [float(i) for i in range(n)]
    colours = list(range(n))
    sort_pairs(keys, colours, 0, n - 1)
    assert keys == [float(i) for i in range(n)]
    assert colours == list(range(n))


def test_reverse_input_is_sorted():
    keys = np.arange(50, 0, -1).astype(np.float32)
    colours = np.stack([np.arange(50, 0, -1)] * 4, axis=1).astype(np.uint8)
    sort_pairs(keys, colours, 0, 49)
    assert keys.tolist() == sorted(keys.tolist())
    assert (colours[:, 0].astype(np.float32) == keys).all()