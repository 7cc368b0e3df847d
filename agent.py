import numpy as np

from config import CHANCE_SAMPLE_CAP, EXPECTIMAX_DEPTH, SPAWN_TWO_PROB
from game import ACTIONS, empty_cells, from_grid, move_clone

_rng = np.random.default_rng()


def legal_afterstates(board):
    """(action, afterstate, reward) for every action that changes the board,
    in UP, RIGHT, DOWN, LEFT order."""
    candidates = []
    for action in ACTIONS:
        after, moved, reward = move_clone(board, action)
        if moved:
            candidates.append((action, after, reward))
    return candidates


def best_afterstate(approximator, board):
    """Pick the move maximizing reward + V(afterstate).

    Returns (action, afterstate, reward), or None if no move is legal.
    Ties go to the first action in enumeration order.
    """
    best = None
    best_value = -float("inf")
    for action, after, reward in legal_afterstates(board):
        value = reward + approximator.evaluate(after)
        if value > best_value:
            best_value = value
            best = (action, after, reward)
    return best


class MovePolicy:
    """Anything that can choose an action for a board."""

    def select_move(self, board):
        """Return the chosen action, or None if no move is legal."""
        raise NotImplementedError


class GreedyPlayer(MovePolicy):
    """1-ply: picks the move that maximizes reward + V(afterstate)."""

    def __init__(self, approximator):
        self.approximator = approximator

    def select_move(self, board):
        best = best_afterstate(self.approximator, board)
        return None if best is None else best[0]


class ExpectimaxPlayer(MovePolicy):
    """N-ply expectimax with chance nodes over random tile placement.

    When a chance node has more than sample_cap empty cells, only a uniform
    sample of sample_cap of them is expanded.
    """

    def __init__(self, approximator, depth=EXPECTIMAX_DEPTH, sample_cap=CHANCE_SAMPLE_CAP, rng=None):
        self.approximator = approximator
        self.depth = depth
        self.sample_cap = sample_cap
        self.rng = _rng if rng is None else rng

    def select_move(self, board):
        best_action = None
        best_value = -float("inf")
        for action, after, reward in legal_afterstates(board):
            value = reward + self._chance_node(after, self.depth - 1)
            if value > best_value:
                best_value = value
                best_action = action
        return best_action

    def _chance_node(self, board, depth):
        if depth <= 0:
            return self.approximator.evaluate(board)

        empty = empty_cells(board)
        if len(empty) == 0:
            return self.approximator.evaluate(board)
        if len(empty) > self.sample_cap:
            empty = self.rng.choice(empty, size=self.sample_cap, replace=False)

        total = 0.0
        for idx in empty:
            board[idx] = 1
            total += SPAWN_TWO_PROB * self._decision_node(board, depth)
            board[idx] = 2
            total += (1 - SPAWN_TWO_PROB) * self._decision_node(board, depth)
            board[idx] = 0
        return total / len(empty)

    def _decision_node(self, board, depth):
        candidates = legal_afterstates(board)
        if not candidates:
            # Terminal branch: fall back to the static evaluation
            return self.approximator.evaluate(board)
        return max(reward + self._chance_node(after, depth - 1) for _, after, reward in candidates)


class RandomPlayer(MovePolicy):
    """Uniform over legal moves. Baseline for benchmarks."""

    def __init__(self, rng=None):
        self.rng = _rng if rng is None else rng

    def select_move(self, board):
        actions = [action for action, _, _ in legal_afterstates(board)]
        if not actions:
            return None
        return actions[self.rng.integers(len(actions))]


def get_action(state, player):
    """Choose a move for a grid of actual tile values (e.g. read from a page).

    Returns the action or None.
    """
    return player.select_move(from_grid(state))
