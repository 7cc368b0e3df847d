import pytest

from patterns import (
    BASE_PATTERNS,
    NUM_VALUES,
    all_symmetries,
    apply_symmetry,
    base_patterns,
    lut_size,
    symmetry_maps,
)


@pytest.mark.parametrize("side", [4, 5])
def test_symmetry_maps_are_permutations(side):
    maps = symmetry_maps(side)
    assert len(maps) == 8
    assert len(set(maps)) == 8
    for sym_map in maps:
        assert sorted(sym_map) == list(range(side * side))
    assert maps[0] == tuple(range(side * side))


def test_rot90_moves_top_left_to_top_right():
    rot90 = symmetry_maps(4)[1]
    # (0, 0) -> (0, 3), (0, 3) -> (3, 3)
    assert rot90[0] == 3
    assert rot90[3] == 15


def test_flip_then_rotate():
    flip = symmetry_maps(4)[4]
    flip_rot90 = symmetry_maps(4)[5]
    rot90 = symmetry_maps(4)[1]
    for i in range(16):
        assert flip_rot90[i] == rot90[flip[i]]


@pytest.mark.parametrize("side", [4, 5])
def test_catalog_variants_are_distinct(side):
    for pattern in base_patterns(side):
        variants = all_symmetries(pattern, side)
        assert 1 <= len(variants) <= 8
        assert len({tuple(v) for v in variants}) == len(variants)
        assert variants[0] == pattern


def test_asymmetric_pattern_has_eight_variants():
    stair = [0, 1, 5, 6]
    assert len(all_symmetries(stair, 4)) == 8


def test_symmetric_pattern_is_deduplicated():
    # the centre cell of a 5x5 board is fixed by every transform
    assert all_symmetries([12], 5) == [[12]]
    # index order matters: a reversed tuple is a different variant
    assert len(all_symmetries([0, 3], 4)) == 8


def test_apply_symmetry():
    rot180 = symmetry_maps(4)[2]
    assert apply_symmetry([0, 1, 2, 3], rot180) == [15, 14, 13, 12]


def test_catalog_sizes():
    assert len(BASE_PATTERNS[4]) == 7
    assert len(BASE_PATTERNS[5]) == 12
    assert sorted({len(p) for p in BASE_PATTERNS[5]}) == [4, 5, 6]
    assert lut_size(4) == NUM_VALUES ** 4 == 65536


def test_unknown_board_size():
    with pytest.raises(ValueError):
        base_patterns(3)
