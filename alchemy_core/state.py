from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from .alchemy import Transmutation
from .board import Board
from .config import EngineConfig
from .events import Event
from .motion import MotionGroup
from .piece import Piece
from .sprites import SpriteTable


class GamePhase(Enum):
    NEW_ELEMENT = 'NEW_ELEMENT'
    LANDING = 'LANDING'
    IDLE = 'IDLE'
    MOVING_LR = 'MOVING_LR'
    ROTATING = 'ROTATING'
    MOVING_DOWN = 'MOVING_DOWN'
    ALCHEMY = 'ALCHEMY'
    TRANSMUTATION = 'TRANSMUTATION'
    ALCHEMY_FALL = 'ALCHEMY_FALL'
    LOSS = 'LOSS'


class Direction(Enum):
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'
    DOWN = 'DOWN'
    UP = 'UP'

    @classmethod
    def parse(cls, name: str) -> 'Direction':
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"unknown direction: {name!r}") from None


# The player may queue moves while the piece is still settling, never during alchemy
ACCEPTING_PHASES: FrozenSet[GamePhase] = frozenset({
    GamePhase.IDLE,
    GamePhase.LANDING,
    GamePhase.MOVING_LR,
    GamePhase.ROTATING,
})

# Presses kept while waiting for IDLE; only the newest one is ever played
MAX_PENDING = 4

# Phases that only wait for their motion groups to finish, and where they go next
MOTION_EXITS = {
    GamePhase.LANDING: GamePhase.IDLE,
    GamePhase.MOVING_LR: GamePhase.IDLE,
    GamePhase.ROTATING: GamePhase.IDLE,
    GamePhase.MOVING_DOWN: GamePhase.ALCHEMY,
    GamePhase.ALCHEMY_FALL: GamePhase.ALCHEMY,
}


@dataclass
class Fade:
    """A transmutation being animated: sources fade out while the new element fades in."""
    transmutation: Transmutation
    new_sprite: int
    old_sprites: List[int]
    alpha: float = 0.0


@dataclass
class Session:
    """All mutable state of one game, owned by a single GameEngine."""
    config: EngineConfig
    board: Board
    sprites: SpriteTable
    phase: GamePhase = GamePhase.NEW_ELEMENT
    piece: Optional[Piece] = None
    next_tiers: Tuple[int, int] = (0, 0)
    max_tier: int = 0
    discovered: List[int] = field(default_factory=list)
    pending: List[Direction] = field(default_factory=list)
    accepting: bool = False
    motions: List[MotionGroup] = field(default_factory=list)
    fading: List[Fade] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    pieces_played: int = 0
    ticks: int = 0
    closed: bool = False

    @property
    def lost(self) -> bool:
        return self.phase is GamePhase.LOSS
