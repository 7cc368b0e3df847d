"""Train an N-tuple network for 2048 with TD(0) afterstate learning.

Usage: python train.py [--size 4|5] [--episodes N] [--lr X] [--resume PATH] [--plot]
"""
import argparse
import logging
import os
import sys
from datetime import datetime

import matplotlib.pyplot as plt
import numpy as np

import config
from approximator import NTupleApproximator
from TD_zero import evaluate_network, load_checkpoint, log_evaluation, td_learning

logger = logging.getLogger("train_2048")


def setup_logging(log_dir):
    """Log to the console and to a timestamped file in log_dir."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"training_{timestamp}.log")

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.handlers.clear()

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter("%(asctime)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    logger.info("Logging to: %s", log_file)
    return log_file


def plot_scores(final_scores, path):
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(final_scores, linewidth=0.5, alpha=0.4, label="score")
    window = min(len(final_scores), config.PROGRESS_WINDOW)
    if window > 1:
        moving = np.convolve(final_scores, np.ones(window) / window, mode="valid")
        ax.plot(np.arange(window - 1, len(final_scores)), moving, label=f"{window}-episode mean")
    ax.set_xlabel("Episodes")
    ax.set_ylabel("Scores")
    ax.set_title("Training Progress")
    ax.legend()
    fig.savefig(path)
    plt.close(fig)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--size", type=int, default=config.BOARD_SIZE, choices=(4, 5))
    parser.add_argument("--episodes", type=int, default=config.NUM_EPISODES)
    parser.add_argument("--lr", type=float, default=config.LEARNING_RATE)
    parser.add_argument("--v-init", type=float, default=config.V_INIT)
    parser.add_argument("--eval-interval", type=int, default=config.EVAL_INTERVAL)
    parser.add_argument("--eval-games", type=int, default=config.EVAL_GAMES)
    parser.add_argument("--checkpoint-interval", type=int, default=config.CHECKPOINT_INTERVAL)
    parser.add_argument("--lr-decay-interval", type=int, default=config.LR_DECAY_INTERVAL)
    parser.add_argument("--lr-decay-factor", type=float, default=config.LR_DECAY_FACTOR)
    parser.add_argument("--save-dir", default=None)
    parser.add_argument("--resume", default=None, help="checkpoint weights to resume from")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--plot", action="store_true", help="save a training curve to the save dir")
    return parser.parse_args(argv)


def main(argv=None):
    opts = parse_args(argv)
    save_dir = opts.save_dir or (config.CHECKPOINT_DIR if opts.size == 4 else f"{config.CHECKPOINT_DIR}{opts.size}x{opts.size}")
    setup_logging(save_dir)

    approximator = NTupleApproximator(board_size=opts.size, v_init=opts.v_init)
    rng = np.random.default_rng(opts.seed)

    start_episode = 0
    alpha = opts.lr
    final_scores = []
    if opts.resume:
        logger.info("Resuming from %s", opts.resume)
        state = load_checkpoint(approximator, opts.resume)
        start_episode = state.get("episode", 0)
        alpha = state.get("alpha", alpha)
        final_scores = state.get("final_scores", [])

    final_scores = td_learning(
        approximator,
        num_episodes=opts.episodes,
        alpha=alpha,
        eval_interval=opts.eval_interval,
        eval_games=opts.eval_games,
        save_interval=opts.checkpoint_interval,
        save_dir=save_dir,
        lr_decay_interval=opts.lr_decay_interval,
        lr_decay_factor=opts.lr_decay_factor,
        start_episode=start_episode,
        final_scores=final_scores,
        rng=rng,
    )

    logger.info("Final evaluation (%d games)...", opts.eval_games * 10)
    log_evaluation(evaluate_network(approximator, opts.eval_games * 10, rng=rng))

    if opts.plot and final_scores:
        plot_path = os.path.join(save_dir, "training_progress.png")
        plot_scores(final_scores, plot_path)
        logger.info("Training curve saved to %s", plot_path)
    return final_scores


if __name__ == "__main__":
    main()
