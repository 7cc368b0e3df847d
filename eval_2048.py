"""Benchmark: evaluate the N-tuple network against random play.

Usage: python eval_2048.py [--weights PATH] [--games N] [--expectimax] [--depth N]
"""
import argparse
import logging
import sys
import time

import numpy as np

from afterstate_env import Game2048AfterStateEnv
from agent import ExpectimaxPlayer, GreedyPlayer, RandomPlayer
from approximator import NTupleApproximator, WeightFileError
from config import BOARD_SIZE, EXPECTIMAX_DEPTH
from TD_zero import log_evaluation, summarize_games

logger = logging.getLogger(__name__)

# Random baseline and expectimax are slow or uninformative past this many games
CAPPED_GAMES = 100


def run_benchmark(player, env, num_games, label, seed=None):
    """Play num_games through the environment and log score statistics."""
    logger.info("=== %s (%d games) ===", label, num_games)
    scores = []
    max_tiles = []
    start = time.time()

    for i in range(num_games):
        state, info = env.reset(seed=None if seed is None else seed + i)
        terminated = False
        while not terminated:
            action = player.select_move(state)
            if action is None:
                break
            state, _, terminated, _, info = env.step(action)

        scores.append(env.score)
        max_tiles.append(info["max_tile"])
        if (i + 1) % 100 == 0:
            elapsed = time.time() - start
            logger.info("  %d/%d games | Avg: %.0f | %.0f games/s",
                        i + 1, num_games, np.mean(scores), len(scores) / elapsed)

    result = summarize_games(scores, max_tiles)
    log_evaluation(result, "  ")
    logger.info("  Min/Max:   %d / %d", result["min_score"], result["max_score"])
    logger.info("  Time:      %.1fs", time.time() - start)
    return result


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--weights", default="weights/final.bin")
    parser.add_argument("--games", type=int, default=1000,
                        help=f"greedy games; random and expectimax play at most {CAPPED_GAMES}")
    parser.add_argument("--size", type=int, default=BOARD_SIZE, choices=(4, 5))
    parser.add_argument("--expectimax", action="store_true")
    parser.add_argument("--depth", type=int, default=EXPECTIMAX_DEPTH)
    parser.add_argument("--seed", type=int, default=None)
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
    opts = parse_args(argv)

    approximator = NTupleApproximator(board_size=opts.size)
    try:
        approximator.load_weights(opts.weights)
        logger.info("Loaded weights from %s", opts.weights)
    except (OSError, WeightFileError) as e:
        logger.warning("Could not load weights from %s: %s", opts.weights, e)
        logger.warning("Running with untrained network")

    rng = np.random.default_rng(opts.seed)
    env = Game2048AfterStateEnv(size=opts.size)
    capped = min(opts.games, CAPPED_GAMES)
    if capped < opts.games:
        logger.info("Random and expectimax runs capped at %d games", capped)

    results = {}
    results["random"] = run_benchmark(RandomPlayer(rng), env, capped, "Random Player", opts.seed)
    results["greedy"] = run_benchmark(GreedyPlayer(approximator), env, opts.games, "N-tuple Greedy (1-ply)", opts.seed)
    if opts.expectimax:
        player = ExpectimaxPlayer(approximator, depth=opts.depth, rng=rng)
        results["expectimax"] = run_benchmark(player, env, capped,
                                              f"N-tuple Expectimax (depth={opts.depth})", opts.seed)
    return results


if __name__ == "__main__":
    main()
