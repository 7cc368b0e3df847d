import gymnasium as gym
import numpy as np
from gymnasium import spaces

from game import (
    ACTION_NAMES,
    ACTIONS,
    add_random_tile,
    can_move,
    create,
    format_board,
    max_tile,
    move,
    move_clone,
)
from patterns import NUM_VALUES


class Game2048AfterStateEnv(gym.Env):
    """2048 on a flat board of tile codes.

    step() slides and merges, then spawns a random tile only if the move
    changed the board. The afterstate (before the spawn) is in info.
    """

    metadata = {"render_modes": ["ansi"]}

    def __init__(self, size=4, render_mode=None):
        super().__init__()

        self.size = size
        self.board = np.zeros(size * size, dtype=np.uint8)
        self.score = 0
        self.render_mode = render_mode

        # Action space: 0: up, 1: right, 2: down, 3: left
        self.action_space = spaces.Discrete(len(ACTIONS))
        self.actions = ACTION_NAMES
        self.observation_space = spaces.Box(
            low=0, high=NUM_VALUES - 1, shape=(size * size,), dtype=np.uint8
        )

        self.last_move_valid = True  # Record if the last move was valid

    def reset(self, seed=None, options=None):
        """Reset the environment with two random tiles."""
        super().reset(seed=seed)
        self.board = create(self.size, self.np_random)
        self.score = 0
        self.last_move_valid = True
        return self.board.copy(), {"score": 0, "max_tile": max_tile(self.board)}

    def legal_actions(self):
        return [a for a in ACTIONS if move_clone(self.board, a)[1]]

    def step(self, action):
        """Execute one action"""
        assert self.action_space.contains(action), "Invalid action"

        moved, reward = move(self.board, int(action))
        afterstate = self.board.copy()
        self.last_move_valid = moved
        if moved:
            add_random_tile(self.board, self.np_random)
        self.score += reward

        terminated = not can_move(self.board)
        info = {
            "moved": moved,
            "afterstate": afterstate,
            "score": self.score,
            "max_tile": max_tile(self.board),
        }
        return self.board.copy(), reward, terminated, False, info

    def render(self):
        if self.render_mode == "ansi":
            return f"score: {self.score}\n{format_board(self.board)}"
        return None
