from functools import lru_cache

# N-tuple patterns: each pattern is a list of board indices (row * side + col).
#
# 4x4 board layout:
#  0  1  2  3
#  4  5  6  7
#  8  9 10 11
# 12 13 14 15
#
# LUT size per tuple is NUM_VALUES ** len(tuple) float32 weights:
#   4-tuple: 65,536 entries = 256KB
#   5-tuple: 1,048,576 entries = 4MB
#   6-tuple: 16,777,216 entries = 64MB

NUM_VALUES = 16  # tile codes 0..15


def lut_size(tuple_length):
    return NUM_VALUES ** tuple_length


def _idx(side, cells):
    return [r * side + c for (r, c) in cells]


# ---- 4x4: 3 x 64MB + 4 x 256KB = ~193MB ----
PATTERNS_4X4 = [
    # rect_2x3: 2-row x 3-col rectangle at top-left
    _idx(4, [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]),
    # rect_3x2: 3-row x 2-col rectangle at top-left
    _idx(4, [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0), (2, 1)]),
    # corner_L
    _idx(4, [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (2, 0)]),
    # full top row
    _idx(4, [(0, 0), (0, 1), (0, 2), (0, 3)]),
    # 2x2 square
    _idx(4, [(0, 0), (0, 1), (1, 0), (1, 1)]),
    # staircase
    _idx(4, [(0, 0), (0, 1), (1, 1), (1, 2)]),
    # L-shape
    _idx(4, [(0, 0), (1, 0), (2, 0), (2, 1)]),
]

# ---- 5x5: 2 x 64MB + 5 x 4MB + 5 x 256KB = ~149MB ----
PATTERNS_5X5 = [
    # 6-tuples
    _idx(5, [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (2, 0)]),
    _idx(5, [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]),
    # 5-tuples
    _idx(5, [(0, 0), (0, 1), (0, 2), (0, 3), (0, 4)]),
    _idx(5, [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]),
    _idx(5, [(0, 0), (0, 1), (1, 0), (1, 1), (0, 2)]),
    _idx(5, [(0, 0), (0, 1), (1, 1), (1, 2), (2, 2)]),
    _idx(5, [(0, 0), (0, 1), (0, 2), (1, 1), (2, 1)]),
    # 4-tuples
    _idx(5, [(0, 0), (0, 1), (1, 0), (1, 1)]),
    _idx(5, [(0, 0), (0, 1), (0, 2), (0, 3)]),
    _idx(5, [(0, 0), (1, 0), (2, 0), (3, 0)]),
    _idx(5, [(0, 0), (0, 1), (1, 1), (1, 2)]),
    _idx(5, [(0, 0), (0, 1), (1, 0), (2, 0)]),
]

BASE_PATTERNS = {
    4: PATTERNS_4X4,
    5: PATTERNS_5X5,
}


def base_patterns(side):
    try:
        return BASE_PATTERNS[side]
    except KeyError:
        raise ValueError(f"no pattern catalog for a {side}x{side} board") from None


# -------------------------------
# Transformation functions on (row, col) for a side x side board.

def identity(r, c, side):
    return r, c


def rot90(r, c, side):
    # Rotate 90 degrees clockwise
    return c, side - 1 - r


def rot180(r, c, side):
    return side - 1 - r, side - 1 - c


def rot270(r, c, side):
    return side - 1 - c, r


def reflect_horizontal(r, c, side):
    # Flip left-right
    return r, side - 1 - c


def _build_map(transform, side):
    sym_map = [0] * (side * side)
    for r in range(side):
        for c in range(side):
            nr, nc = transform(r, c, side)
            sym_map[r * side + c] = nr * side + nc
    return tuple(sym_map)


@lru_cache(maxsize=None)
def symmetry_maps(side):
    """The 8 index permutations of the dihedral group: 4 rotations, then the
    same rotations applied after a horizontal reflection."""
    maps = []
    for rotate in (identity, rot90, rot180, rot270):
        maps.append(_build_map(rotate, side))
    for rotate in (identity, rot90, rot180, rot270):
        def flipped(r, c, side, rotate=rotate):
            return rotate(*reflect_horizontal(r, c, side), side)
        maps.append(_build_map(flipped, side))
    return tuple(maps)


def apply_symmetry(pattern, sym_map):
    return [sym_map[i] for i in pattern]


def all_symmetries(pattern, side):
    """Generate the symmetric variants of a pattern, dropping duplicates
    (a symmetric pattern can map onto itself)."""
    seen = set()
    variants = []
    for sym_map in symmetry_maps(side):
        transformed = apply_symmetry(pattern, sym_map)
        key = ",".join(map(str, transformed))
        if key not in seen:
            seen.add(key)
            variants.append(transformed)
    return variants
