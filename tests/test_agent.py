import numpy as np
import pytest

from agent import (
    ExpectimaxPlayer,
    GreedyPlayer,
    MovePolicy,
    RandomPlayer,
    best_afterstate,
    get_action,
    legal_afterstates,
)
from approximator import NTupleApproximator
from game import DOWN, LEFT, RIGHT, UP, create, move_clone

SMALL_PATTERNS = [[0, 1, 2, 3], [0, 1, 4, 5]]

LOCKED = np.array([
    1, 2, 1, 2,
    2, 1, 2, 1,
    1, 2, 1, 2,
    2, 1, 2, 1,
], dtype=np.uint8)


@pytest.fixture
def approximator():
    approximator = NTupleApproximator(board_size=4, patterns=SMALL_PATTERNS)
    rng = np.random.default_rng(11)
    for lut in approximator.luts:
        lut[:] = rng.normal(scale=10.0, size=len(lut)).astype(np.float32)
    return approximator


def random_boards(n, seed=5):
    rng = np.random.default_rng(seed)
    boards = []
    for _ in range(n):
        board = rng.integers(0, 8, size=16).astype(np.uint8)
        board[rng.random(16) < 0.4] = 0
        boards.append(board)
    return boards


def test_legal_afterstates_order_and_filtering():
    board = np.zeros(16, dtype=np.uint8)
    board[0] = 1  # top-left: only RIGHT and DOWN move it
    actions = [action for action, _, _ in legal_afterstates(board)]
    assert actions == [RIGHT, DOWN]


def test_no_legal_move_returns_none(approximator):
    assert legal_afterstates(LOCKED) == []
    assert best_afterstate(approximator, LOCKED) is None
    assert GreedyPlayer(approximator).select_move(LOCKED) is None
    assert ExpectimaxPlayer(approximator, depth=2).select_move(LOCKED) is None
    assert RandomPlayer().select_move(LOCKED) is None


def test_greedy_maximizes_reward_plus_value(approximator):
    for board in random_boards(30):
        action = GreedyPlayer(approximator).select_move(board)
        values = {}
        for a in (UP, RIGHT, DOWN, LEFT):
            after, moved, reward = move_clone(board, a)
            if moved:
                values[a] = reward + approximator.evaluate(after)
        if not values:
            assert action is None
            continue
        assert values[action] == max(values.values())


def test_greedy_breaks_ties_in_enumeration_order():
    untrained = NTupleApproximator(board_size=4, patterns=SMALL_PATTERNS)
    board = np.zeros(16, dtype=np.uint8)
    board[5] = 1  # a single tile in the middle can move every way, no reward
    assert GreedyPlayer(untrained).select_move(board) == UP


def test_greedy_prefers_merge_on_untrained_network():
    untrained = NTupleApproximator(board_size=4, patterns=SMALL_PATTERNS)
    board = np.zeros(16, dtype=np.uint8)
    board[0] = board[1] = 1  # only horizontal moves merge
    assert GreedyPlayer(untrained).select_move(board) == RIGHT


@pytest.mark.parametrize("depth", [0, 1])
def test_shallow_expectimax_matches_greedy(approximator, depth):
    greedy = GreedyPlayer(approximator)
    expectimax = ExpectimaxPlayer(approximator, depth=depth, rng=np.random.default_rng(0))
    for board in random_boards(40):
        assert expectimax.select_move(board) == greedy.select_move(board)


def test_expectimax_returns_legal_move(approximator):
    player = ExpectimaxPlayer(approximator, depth=2, rng=np.random.default_rng(0))
    board = create(4, np.random.default_rng(2))
    action = player.select_move(board)
    assert action in [a for a, _, _ in legal_afterstates(board)]


def test_expectimax_is_reproducible_with_seed(approximator):
    boards = random_boards(10, seed=9)
    first = ExpectimaxPlayer(approximator, depth=2, rng=np.random.default_rng(4))
    second = ExpectimaxPlayer(approximator, depth=2, rng=np.random.default_rng(4))
    assert [first.select_move(b) for b in boards] == [second.select_move(b) for b in boards]


def test_chance_node_samples_at_most_cap_cells(approximator, monkeypatch):
    player = ExpectimaxPlayer(approximator, depth=2, sample_cap=8, rng=np.random.default_rng(1))
    calls = []
    monkeypatch.setattr(player, "_decision_node", lambda board, depth: calls.append(board.copy()) or 1.0)

    board = np.zeros(16, dtype=np.uint8)
    board[0] = 3
    before = board.copy()
    value = player._chance_node(board, 1)

    # 15 empty cells: only 8 are expanded, each with a 2 and a 4
    assert len(calls) == 16
    assert value == pytest.approx(1.0)
    assert np.array_equal(board, before)
    spawned = {int(np.flatnonzero(b != before)[0]) for b in calls}
    assert len(spawned) == 8


def test_chance_node_enumerates_all_cells_under_cap(approximator, monkeypatch):
    player = ExpectimaxPlayer(approximator, depth=2, sample_cap=8)
    calls = []

    def fake_decision(board, depth):
        calls.append(depth)
        return 10.0 if np.any(board == 2) else 0.0

    monkeypatch.setattr(player, "_decision_node", fake_decision)
    board = np.zeros(16, dtype=np.uint8)
    board[:12] = [5, 6, 5, 6, 6, 5, 6, 5, 5, 6, 5, 6]  # 4 empty cells, no code-1 or code-2 tiles
    value = player._chance_node(board, 1)

    assert len(calls) == 8
    # only the 10% spawn of a 4 scores
    assert value == pytest.approx(0.1 * 10.0)


def test_chance_node_at_depth_zero_is_static(approximator):
    player = ExpectimaxPlayer(approximator, depth=2)
    board = create(4, np.random.default_rng(3))
    assert player._chance_node(board, 0) == approximator.evaluate(board)


def test_decision_node_without_moves_is_static(approximator):
    player = ExpectimaxPlayer(approximator, depth=2)
    assert player._decision_node(LOCKED.copy(), 3) == approximator.evaluate(LOCKED)


def test_random_player_picks_legal_moves():
    player = RandomPlayer(np.random.default_rng(0))
    board = np.zeros(16, dtype=np.uint8)
    board[0] = 1
    picks = {player.select_move(board) for _ in range(50)}
    assert picks == {RIGHT, DOWN}


def test_get_action_from_tile_values(approximator):
    grid = [
        [2, 2, 0, 0],
        [0, 0, 0, 0],
        [0, 0, 0, 0],
        [0, 0, 0, 0],
    ]
    untrained = NTupleApproximator(board_size=4, patterns=SMALL_PATTERNS)
    assert get_action(grid, GreedyPlayer(untrained)) == RIGHT
    with pytest.raises(ValueError):
        get_action([[3, 0], [0, 0]], GreedyPlayer(untrained))


def test_move_policy_is_abstract():
    with pytest.raises(NotImplementedError):
        MovePolicy().select_move(np.zeros(16, dtype=np.uint8))
