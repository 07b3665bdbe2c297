from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Playfield: rows are numbered from the bottom of the screen (row 0) upward.
NB_ROWS = 7
TOP_ROW = NB_ROWS - 1
NB_BUFFER_ROWS = 2  # rows above TOP_ROW, only used to detect overflow
NB_COLS = 6

# Per-tick motion step (pixels) and fade increment
DELTA_MOVE_X = 3
DELTA_MOVE_Y = 5
DELTA_ALPHA = 0.02

# Sprite geometry, in pixels
SPT_WIDTH = 30
SPT_HEIGHT = 30
BOARD_Y = 118
TOP_ROW_Y = 120 - 5 * SPT_HEIGHT // 2
NEXT_ELT_X1 = SPT_WIDTH * 7
NEXT_ELT_X2 = SPT_WIDTH * 8
NEXT_ELT_Y = BOARD_Y + SPT_HEIGHT * 6 // 5

# Spawn position of a new piece
DEFAULT_COL = 2
SPAWN_OFFSETS: Tuple[Tuple[int, int], Tuple[int, int]] = ((0, 0), (0, 1))

# Relative frequency of each tier when generating a new piece
ELT_GEN_WEIGHT: Tuple[int, ...] = (18, 18, 18, 18, 12, 8, 7, 5, 4, 1, 1)
NB_TIERS = len(ELT_GEN_WEIGHT)
INITIAL_MAX_TIER = 2


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass(frozen=True)
class EngineConfig:
    """All tunable numbers of a game session, validated once at construction."""
    nb_rows: int = NB_ROWS
    nb_cols: int = NB_COLS
    delta_move_x: int = DELTA_MOVE_X
    delta_move_y: int = DELTA_MOVE_Y
    delta_alpha: float = DELTA_ALPHA
    weights: Tuple[int, ...] = ELT_GEN_WEIGHT
    initial_max_tier: int = INITIAL_MAX_TIER
    default_col: int = DEFAULT_COL
    spawn_offsets: Tuple[Tuple[int, int], Tuple[int, int]] = SPAWN_OFFSETS
    spt_width: int = SPT_WIDTH
    spt_height: int = SPT_HEIGHT
    board_y: int = BOARD_Y
    top_row_y: int = TOP_ROW_Y
    next_slots: Tuple[Tuple[int, int], Tuple[int, int]] = field(
        default=((NEXT_ELT_X1, NEXT_ELT_Y), (NEXT_ELT_X2, NEXT_ELT_Y))
    )
    seed: Optional[int] = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.nb_rows < 1:
            raise ValueError(f"nb_rows must be positive, got {self.nb_rows}")
        if self.nb_cols < 2:
            raise ValueError(f"a piece needs at least 2 columns, got {self.nb_cols}")
        if self.delta_move_x <= 0 or self.delta_move_y <= 0:
            raise ValueError("motion steps must be positive")
        if not 0 < self.delta_alpha <= 1:
            raise ValueError(f"delta_alpha must be in (0, 1], got {self.delta_alpha}")
        if len(self.weights) < 2 or any(w <= 0 for w in self.weights):
            raise ValueError("weights must hold at least two positive values")
        if not 0 <= self.initial_max_tier < len(self.weights):
            raise ValueError(f"initial_max_tier out of range: {self.initial_max_tier}")
        cols = [self.default_col + dc for _, dc in self.spawn_offsets]
        if min(cols) < 0 or max(cols) >= self.nb_cols:
            raise ValueError(f"spawn column {self.default_col} leaves the piece off-board")

    @property
    def top_row(self) -> int:
        return self.nb_rows - 1

    @property
    def board_rows(self) -> int:
        """Total rows including the buffer rows above the visible playfield."""
        return self.nb_rows + NB_BUFFER_ROWS

    @property
    def nb_tiers(self) -> int:
        return len(self.weights)

    @property
    def max_tier(self) -> int:
        return len(self.weights) - 1

    @classmethod
    def from_env(cls, **overrides) -> 'EngineConfig':
        """Builds a config from ALCHEMY_* environment variables, explicit overrides winning."""
        values = {}
        seed = _env_int("ALCHEMY_SEED")
        if seed is not None:
            values["seed"] = seed
        rows = _env_int("ALCHEMY_ROWS")
        if rows is not None:
            values["nb_rows"] = rows
        cols = _env_int("ALCHEMY_COLS")
        if cols is not None:
            values["nb_cols"] = cols
        alpha = os.getenv("ALCHEMY_DELTA_ALPHA")
        if alpha:
            values["delta_alpha"] = float(alpha)
        values["verbose"] = _env_flag("ALCHEMY_VERBOSE")
        values.update(overrides)
        return cls(**values)
