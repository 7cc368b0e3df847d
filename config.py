BOARD_SIZE = 4

# TD(0) training
LEARNING_RATE = 0.0025
NUM_EPISODES = 100000
LR_DECAY_INTERVAL = 0  # 0 = no decay
LR_DECAY_FACTOR = 0.5
V_INIT = 0.0

# reporting / checkpoints
EVAL_INTERVAL = 10000
EVAL_GAMES = 100
PROGRESS_WINDOW = 1000
CHECKPOINT_INTERVAL = 50000
CHECKPOINT_DIR = "weights"

# expectimax
EXPECTIMAX_DEPTH = 2
CHANCE_SAMPLE_CAP = 8
SPAWN_TWO_PROB = 0.9

# tile codes: 2048, 4096, 8192, 16384
REACH_THRESHOLDS = (11, 12, 13, 14)
