import math
from functools import lru_cache

import numpy as np

from config import SPAWN_TWO_PROB

# Board: flat np.uint8 array of side * side tile codes
# 0 = empty, k > 0 = tile 2**k (1 = 2, 2 = 4, ..., 15 = 32768)

UP, RIGHT, DOWN, LEFT = 0, 1, 2, 3
ACTIONS = (UP, RIGHT, DOWN, LEFT)
ACTION_NAMES = ["up", "right", "down", "left"]

_rng = np.random.default_rng()


def action_name(action):
    return ACTION_NAMES[action]


def board_side(board):
    """Return the side length of a flat board, rejecting non-square boards."""
    side = math.isqrt(len(board))
    if side * side != len(board) or side < 2:
        raise ValueError(f"board of {len(board)} cells is not a square grid")
    return side


def new_board(size=4):
    return np.zeros(size * size, dtype=np.uint8)


def create(size=4, rng=None):
    """Empty board with two random tiles."""
    board = new_board(size)
    add_random_tile(board, rng)
    add_random_tile(board, rng)
    return board


def clone(board):
    return board.copy()


def tile_value(code):
    """Convert a tile code to the actual tile value."""
    return 0 if code == 0 else 1 << int(code)


def to_log2(value):
    """Convert an actual tile value to its code."""
    value = int(value)
    if value == 0:
        return 0
    if value < 2 or value & (value - 1):
        raise ValueError(f"{value} is not a valid tile value")
    return value.bit_length() - 1


def empty_cells(board):
    return np.flatnonzero(board == 0)


def empty_count(board):
    return int(np.count_nonzero(board == 0))


def add_random_tile(board, rng=None):
    """Add a random tile (2 with 90%, 4 with 10%) to an empty cell.

    Returns False when the board is full.
    """
    rng = _rng if rng is None else rng
    empty = empty_cells(board)
    if len(empty) == 0:
        return False
    idx = empty[rng.integers(len(empty))]
    board[idx] = 1 if rng.random() < SPAWN_TWO_PROB else 2
    return True


def compress(line):
    """Move non-zero codes to the front, keeping their order."""
    tiles = [v for v in line if v]
    return tiles + [0] * (len(line) - len(tiles))


def merge(line):
    """Merge equal neighbours once, front to back. Returns the merge reward."""
    reward = 0
    i = 0
    while i < len(line) - 1:
        if line[i] and line[i] == line[i + 1]:
            line[i] += 1
            reward += 1 << line[i]
            line[i + 1] = 0
            i += 2
        else:
            i += 1
    return reward


def slide_line(line):
    """Slide a single row/col toward index 0. Returns (new_line, reward)."""
    line = compress(line)
    reward = merge(line)
    return compress(line), reward


@lru_cache(maxsize=None)
def line_indices(side, action):
    """Cell indices of every line, ordered so that tiles slide toward index 0."""
    lines = []
    for k in range(side):
        if action == UP:       # column k, top to bottom
            lines.append([i * side + k for i in range(side)])
        elif action == RIGHT:  # row k, right to left
            lines.append([k * side + (side - 1 - i) for i in range(side)])
        elif action == DOWN:   # column k, bottom to top
            lines.append([(side - 1 - i) * side + k for i in range(side)])
        elif action == LEFT:   # row k, left to right
            lines.append([k * side + i for i in range(side)])
        else:
            raise ValueError(f"invalid action {action}")
    return tuple(np.array(line, dtype=np.intp) for line in lines)


def move(board, action):
    """Slide and merge the board in place (afterstate, no random tile).

    Returns (moved, reward).
    """
    moved = False
    reward = 0
    for idx in line_indices(board_side(board), action):
        original = board[idx].tolist()
        line, line_reward = slide_line(original)
        if line != original:
            moved = True
            board[idx] = line
        reward += line_reward
    return moved, reward


def move_clone(board, action):
    """Move a copy of the board. Returns (afterstate, moved, reward)."""
    after = board.copy()
    moved, reward = move(after, action)
    return after, moved, reward


def can_move(board):
    """Check if any move is possible."""
    if np.any(board == 0):
        return True
    side = board_side(board)
    grid = board.reshape(side, side)
    # Check adjacent merges
    if np.any(grid[:, :-1] == grid[:, 1:]):
        return True
    return bool(np.any(grid[:-1, :] == grid[1:, :]))


def max_tile(board):
    """Maximum tile code on the board."""
    return int(board.max())


def from_grid(grid):
    """Convert a 2D grid of actual tile values to a code board."""
    rows = [list(row) for row in grid]
    side = len(rows)
    if any(len(row) != side for row in rows):
        raise ValueError("grid must be square")
    board = new_board(side)
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            board[r * side + c] = to_log2(value)
    return board


def to_grid(board):
    """Convert a code board to a 2D list of actual tile values."""
    side = board_side(board)
    return [[tile_value(board[r * side + c]) for c in range(side)] for r in range(side)]


def format_board(board):
    side = board_side(board)
    lines = []
    for r in range(side):
        lines.append("".join(str(tile_value(board[r * side + c])).rjust(6) for c in range(side)))
    return "\n".join(lines)
