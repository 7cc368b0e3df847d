import logging
import os
import pickle
import time
from collections import deque, namedtuple

import numpy as np

from agent import GreedyPlayer, best_afterstate
from config import (
    CHECKPOINT_DIR,
    CHECKPOINT_INTERVAL,
    EVAL_GAMES,
    EVAL_INTERVAL,
    LEARNING_RATE,
    LR_DECAY_FACTOR,
    LR_DECAY_INTERVAL,
    NUM_EPISODES,
    PROGRESS_WINDOW,
    REACH_THRESHOLDS,
)
from game import add_random_tile, can_move, create, max_tile, move, tile_value

logger = logging.getLogger(__name__)

EpisodeResult = namedtuple("EpisodeResult", ["score", "max_tile", "steps"])


def td_update(approximator, afterstate, target, alpha):
    """Move V(afterstate) toward target. Returns the TD error."""
    delta = target - approximator.evaluate(afterstate)
    approximator.update(afterstate, alpha * delta)
    return delta


def play_episode(approximator, alpha, rng=None):
    """Play one game greedily and learn V(afterstate) with TD(0).

    The value of the previous afterstate is moved toward the reward banked
    by the previous move plus the value of the afterstate chosen now.
    The last afterstate of the game is moved toward 0.
    """
    board = create(approximator.board_size, rng)
    score = 0
    steps = 0
    prev_afterstate = None
    prev_reward = 0

    while True:
        best = best_afterstate(approximator, board)
        # No valid move = game over
        if best is None:
            break
        action, afterstate, reward = best

        # TD update for previous afterstate
        if prev_afterstate is not None:
            td_update(approximator, prev_afterstate, prev_reward + approximator.evaluate(afterstate), alpha)

        prev_afterstate = afterstate
        prev_reward = reward
        score += reward
        steps += 1

        move(board, action)
        add_random_tile(board, rng)
        if not can_move(board):
            break

    # Terminal update: no more reward after the last afterstate
    if prev_afterstate is not None:
        td_update(approximator, prev_afterstate, 0, alpha)

    return EpisodeResult(score, max_tile(board), steps)


def play_game(player, board_size, rng=None):
    """Play a single game with any MovePolicy, without learning.

    Returns (score, max_tile).
    """
    board = create(board_size, rng)
    score = 0
    while True:
        action = player.select_move(board)
        if action is None:
            break
        _, reward = move(board, action)
        score += reward
        add_random_tile(board, rng)
        if not can_move(board):
            break
    return score, max_tile(board)


def summarize_games(scores, max_tiles, thresholds=REACH_THRESHOLDS):
    """Score statistics, max tile distribution and reach rates of a batch of games."""
    num_games = len(scores)
    scores = sorted(scores)
    if num_games == 0:
        return {
            "avg_score": 0.0,
            "med_score": 0,
            "min_score": 0,
            "max_score": 0,
            "tile_dist": {},
            "reach_rates": {},
            "num_games": 0,
        }

    tile_dist = {}
    for t in max_tiles:
        val = tile_value(t)
        tile_dist[val] = tile_dist.get(val, 0) + 1

    reach_rates = {}
    for threshold in thresholds:
        count = sum(1 for t in max_tiles if t >= threshold)
        reach_rates[tile_value(threshold)] = count / num_games

    return {
        "avg_score": float(np.mean(scores)),
        "med_score": scores[num_games // 2],
        "min_score": scores[0],
        "max_score": scores[-1],
        "tile_dist": dict(sorted(tile_dist.items(), reverse=True)),
        "reach_rates": reach_rates,
        "num_games": num_games,
    }


def evaluate_network(approximator, num_games, player=None, rng=None, thresholds=REACH_THRESHOLDS):
    """Evaluate the network by playing games without learning."""
    if player is None:
        player = GreedyPlayer(approximator)
    scores = []
    max_tiles = []
    for _ in range(num_games):
        score, top = play_game(player, approximator.board_size, rng)
        scores.append(score)
        max_tiles.append(top)
    return summarize_games(scores, max_tiles, thresholds)


def format_time(seconds):
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = int(seconds % 60)
    if h > 0:
        return f"{h}h{m}m{s}s"
    if m > 0:
        return f"{m}m{s}s"
    return f"{s}s"


def checkpoint_paths(save_dir, episode):
    base = os.path.join(save_dir, f"approximator_checkpoint_episode_{episode}")
    return base + ".bin", base + ".pkl"


def save_checkpoint(approximator, save_dir, episode, alpha, final_scores):
    """Write the weights and the trainer state needed to resume."""
    weights_path, state_path = checkpoint_paths(save_dir, episode)
    approximator.save_binary(weights_path)
    with open(state_path, "wb") as f:
        pickle.dump({"episode": episode, "alpha": alpha, "final_scores": final_scores}, f)
    return weights_path


def load_checkpoint(approximator, weights_path):
    """Restore weights and, when present, the trainer state saved next to them.

    Returns the state dict (empty if there is none).
    """
    approximator.load_weights(weights_path)
    state_path = os.path.splitext(weights_path)[0] + ".pkl"
    if not os.path.exists(state_path):
        return {}
    with open(state_path, "rb") as f:
        return pickle.load(f)


def td_learning(approximator, num_episodes=NUM_EPISODES, alpha=LEARNING_RATE,
                eval_interval=EVAL_INTERVAL, eval_games=EVAL_GAMES,
                save_interval=CHECKPOINT_INTERVAL, save_dir=CHECKPOINT_DIR,
                lr_decay_interval=LR_DECAY_INTERVAL, lr_decay_factor=LR_DECAY_FACTOR,
                start_episode=0, final_scores=None, rng=None):
    """
    Trains the network with TD(0) afterstate learning, reports progress and
    saves checkpoints locally at specified intervals.

    Args:
        approximator: NTupleApproximator instance.
        num_episodes: Total number of training episodes (including resumed ones).
        alpha: Learning rate.
        eval_interval: Episodes between progress reports; a full evaluation runs
            every 5 reports and at the end (0 disables both).
        eval_games: Number of games per evaluation.
        save_interval: Number of episodes between saving checkpoints
            (0 disables checkpoints; final.bin is always written).
        save_dir: Directory to save checkpoints.
        lr_decay_interval: Multiply alpha by lr_decay_factor every this many
            episodes (0 disables decay).
        start_episode: Episode to resume from.
        final_scores: Score history to extend when resuming.
    """
    final_scores = [] if final_scores is None else list(final_scores)
    os.makedirs(save_dir, exist_ok=True)

    stats = approximator.stats()
    logger.info(
        "N-tuple Network: %d patterns, %d variants, %d entries (%.1f MB)",
        stats["num_base_patterns"], stats["total_variants"], stats["total_entries"], stats["total_mb"],
    )
    logger.info("Training %d episodes, lr=%g", num_episodes, alpha)

    recent_scores = deque(maxlen=PROGRESS_WINDOW)
    recent_max_tiles = deque(maxlen=PROGRESS_WINDOW)
    total_start = time.time()
    window_start = time.time()

    for episode in range(start_episode, num_episodes):
        # Learning rate decay
        if lr_decay_interval > 0 and episode > 0 and episode % lr_decay_interval == 0:
            alpha *= lr_decay_factor
            logger.info("  LR decayed to %.2e", alpha)

        result = play_episode(approximator, alpha, rng)
        final_scores.append(result.score)
        recent_scores.append(result.score)
        recent_max_tiles.append(result.max_tile)

        if eval_interval > 0 and (episode + 1) % eval_interval == 0:
            elapsed = time.time() - window_start
            speed = eval_interval / elapsed if elapsed > 0 else float("inf")
            logger.info(
                "Episode %d/%d | Avg Score: %.0f | Max Tile: %d | Speed: %.0f ep/s | LR: %.2e | Time: %s",
                episode + 1, num_episodes, np.mean(recent_scores), tile_value(max(recent_max_tiles)),
                speed, alpha, format_time(time.time() - total_start),
            )
            if (episode + 1) % (eval_interval * 5) == 0 or episode + 1 == num_episodes:
                log_evaluation(evaluate_network(approximator, eval_games, rng=rng), "  ")
            window_start = time.time()

        # --- Save Checkpoint ---
        if save_interval > 0 and (episode + 1) % save_interval == 0:
            path = save_checkpoint(approximator, save_dir, episode + 1, alpha, final_scores)
            logger.info("  Checkpoint saved: %s", path)

    final_path = os.path.join(save_dir, "final.bin")
    approximator.save_binary(final_path)
    logger.info("Training complete. Final weights saved to %s", final_path)
    return final_scores


def log_evaluation(result, indent=""):
    logger.info("%sEval (%d games) Avg Score: %.0f | Med Score: %d",
                indent, result["num_games"], result["avg_score"], result["med_score"])
    rates = ", ".join(f"{tile}: {rate:.1%}" for tile, rate in result["reach_rates"].items())
    logger.info("%sReach rates: %s", indent, rates)
    logger.info("%sTile dist: %s", indent, result["tile_dist"])
