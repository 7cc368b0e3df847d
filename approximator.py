import json
import logging

import numpy as np

from patterns import NUM_VALUES, all_symmetries, base_patterns, lut_size

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

_HEADER = np.dtype("<i4")
_WEIGHT = np.dtype("<f4")


class WeightFileError(Exception):
    """Raised when a weight file does not match the network's pattern catalog."""


class NTupleApproximator:
    def __init__(self, board_size=4, patterns=None, v_init=0.0):
        """
        Initializes the N-Tuple network.
        'patterns' is a list of base tuple patterns (each a list of board indices);
        defaults to the catalog for the board size.
        """
        self.board_size = board_size
        self.num_cells = board_size * board_size
        if patterns is None:
            patterns = base_patterns(board_size)
        self.patterns = [list(p) for p in patterns]
        for pattern in self.patterns:
            if any(i < 0 or i >= self.num_cells for i in pattern):
                raise ValueError(f"pattern {pattern} does not fit a {board_size}x{board_size} board")

        # One LUT per base pattern, shared across its symmetric variants
        self.symmetry_groups = [all_symmetries(p, board_size) for p in self.patterns]
        self.luts = [np.zeros(lut_size(len(p)), dtype=np.float32) for p in self.patterns]
        if v_init:
            for lut in self.luts:
                lut.fill(v_init)

        # Variants as (num_variants, tuple_len) index arrays and the radix weights
        # that turn the tile codes at those cells into a LUT index, most
        # significant position first.
        self._variants = [np.array(group, dtype=np.intp) for group in self.symmetry_groups]
        self._radix = [NUM_VALUES ** np.arange(len(p) - 1, -1, -1, dtype=np.int64) for p in self.patterns]

        self.total_variants = sum(len(group) for group in self.symmetry_groups)

    def _check_board(self, board):
        board = np.asarray(board)
        if board.size != self.num_cells:
            raise ValueError(f"board has {board.size} cells, network expects {self.num_cells}")
        if board.max() >= NUM_VALUES:
            raise ValueError(f"tile code {int(board.max())} exceeds the LUT range 0..{NUM_VALUES - 1}")
        return board.reshape(-1).astype(np.int64)

    def feature_indices(self, board):
        """LUT index of every variant, one array per base pattern."""
        board = self._check_board(board)
        return [board[variants] @ radix for variants, radix in zip(self._variants, self._radix)]

    def evaluate(self, board):
        """Estimate the board value: sum of LUT reads over every variant of every pattern."""
        total_value = 0.0
        for lut, idx in zip(self.luts, self.feature_indices(board)):
            total_value += float(lut[idx].sum(dtype=np.float64))
        return total_value

    def update(self, board, delta):
        """Add delta to the LUT cell addressed by every variant.

        Variants that address the same cell each apply their delta.
        """
        delta = np.float32(delta)
        for lut, idx in zip(self.luts, self.feature_indices(board)):
            np.add.at(lut, idx, delta)

    # ---- persistence ----

    def save(self, path):
        """Save the weights as JSON."""
        data = {
            "version": FORMAT_VERSION,
            "boardSize": self.board_size,
            "numPatterns": len(self.patterns),
            "patterns": [
                {
                    "tupleLen": len(pattern),
                    "numVariants": len(group),
                    "lutSize": len(lut),
                    "lut": lut.tolist(),
                }
                for pattern, group, lut in zip(self.patterns, self.symmetry_groups, self.luts)
            ],
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        logger.debug("Saved text weights to %s", path)

    def load(self, path):
        """Load JSON weights. Nothing is applied unless the whole file matches."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        self._check_version(data.get("version"))
        if data.get("boardSize", self.board_size) != self.board_size:
            raise WeightFileError(
                f"Board size mismatch: file has {data['boardSize']}, network has {self.board_size}"
            )
        self._check_pattern_count(data.get("numPatterns"))
        saved_patterns = data.get("patterns", [])
        if len(saved_patterns) != len(self.patterns):
            raise WeightFileError(f"File lists {len(saved_patterns)} patterns, header says {data['numPatterns']}")

        staged = []
        for i, saved in enumerate(saved_patterns):
            try:
                self._check_pattern(i, saved["tupleLen"], saved["lutSize"])
                lut = np.asarray(saved["lut"], dtype=np.float32)
            except (KeyError, TypeError, ValueError) as e:
                raise WeightFileError(f"Malformed entry for pattern {i}: {e}") from e
            if lut.shape != (saved["lutSize"],):
                raise WeightFileError(f"LUT size mismatch at pattern {i}")
            staged.append(lut)
        self._apply(staged)
        logger.debug("Loaded text weights from %s", path)

    def save_binary(self, path):
        """[version:int32][num_patterns:int32] then per pattern
        [tuple_len:int32][lut_len:int32][lut_len x float32], little-endian."""
        with open(path, "wb") as f:
            f.write(np.array([FORMAT_VERSION, len(self.patterns)], dtype=_HEADER).tobytes())
            for pattern, lut in zip(self.patterns, self.luts):
                f.write(np.array([len(pattern), len(lut)], dtype=_HEADER).tobytes())
                f.write(lut.astype(_WEIGHT).tobytes())
        logger.debug("Saved binary weights to %s", path)

    def load_binary(self, path):
        """Load binary weights. Nothing is applied unless the whole file matches."""
        with open(path, "rb") as f:
            buf = f.read()

        offset = 0

        def read(dtype, count):
            nonlocal offset
            end = offset + dtype.itemsize * count
            if end > len(buf):
                raise WeightFileError(f"Truncated weight file {path}")
            values = np.frombuffer(buf, dtype=dtype, count=count, offset=offset)
            offset = end
            return values

        version, num_patterns = read(_HEADER, 2)
        self._check_version(int(version))
        self._check_pattern_count(int(num_patterns))

        staged = []
        for i in range(len(self.patterns)):
            tuple_len, lut_len = read(_HEADER, 2)
            self._check_pattern(i, int(tuple_len), int(lut_len))
            staged.append(read(_WEIGHT, int(lut_len)))
        if offset != len(buf):
            raise WeightFileError(f"{len(buf) - offset} trailing bytes in weight file {path}")
        self._apply(staged)
        logger.debug("Loaded binary weights from %s", path)

    def save_weights(self, path):
        if str(path).endswith(".bin"):
            self.save_binary(path)
        else:
            self.save(path)

    def load_weights(self, path):
        if str(path).endswith(".bin"):
            self.load_binary(path)
        else:
            self.load(path)

    def _check_version(self, version):
        if not isinstance(version, int) or version < 1 or version > FORMAT_VERSION:
            raise WeightFileError(f"Unsupported weight file version {version}")

    def _check_pattern_count(self, num_patterns):
        if num_patterns != len(self.patterns):
            raise WeightFileError(
                f"Pattern count mismatch: file has {num_patterns}, network has {len(self.patterns)}"
            )

    def _check_pattern(self, i, tuple_len, lut_len):
        if tuple_len != len(self.patterns[i]):
            raise WeightFileError(f"Tuple length mismatch at pattern {i}")
        if lut_len != len(self.luts[i]):
            raise WeightFileError(f"LUT size mismatch at pattern {i}")

    def _apply(self, staged):
        for lut, weights in zip(self.luts, staged):
            lut[:] = weights

    def stats(self):
        total_entries = sum(len(lut) for lut in self.luts)
        total_bytes = sum(lut.nbytes for lut in self.luts)
        return {
            "num_base_patterns": len(self.patterns),
            "total_variants": self.total_variants,
            "total_entries": total_entries,
            "total_mb": round(total_bytes / (1024 * 1024), 1),
        }
