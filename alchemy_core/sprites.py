from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .config import EngineConfig


@dataclass
class Sprite:
    """What an external renderer needs to draw one element."""
    sprite_id: int
    tier: int
    x: int
    y: int
    alpha: float = 1.0


def sprite_x_from_col(cfg: EngineConfig, col: int) -> int:
    return col * cfg.spt_width


def sprite_y_from_row(cfg: EngineConfig, row: int) -> int:
    """Pixel y of a board row; rows above TOP_ROW (the buffer) sit above the playfield."""
    return cfg.board_y + (cfg.top_row - row) * cfg.spt_height


class SpriteTable:
    """Owns every live sprite and indexes the ones resting on the board by cell.

    Board cells are keyed by ``row * width + col``.
    """

    def __init__(self, width: int):
        self.width = width
        self._sprites: Dict[int, Sprite] = {}
        self._by_cell: Dict[int, int] = {}
        self._next_id = 1
        # Piece being controlled and the preview of the next one
        self.current: List[Optional[int]] = [None, None]
        self.next: List[Optional[int]] = [None, None]

    def _key(self, row: int, col: int) -> int:
        return row * self.width + col

    def create(self, tier: int, x: int, y: int, alpha: float = 1.0) -> Sprite:
        sp = Sprite(self._next_id, tier, x, y, alpha)
        self._sprites[sp.sprite_id] = sp
        self._next_id += 1
        return sp

    def get(self, sprite_id: int) -> Sprite:
        return self._sprites[sprite_id]

    def release(self, sprite_id: int) -> None:
        del self._sprites[sprite_id]

    def place(self, row: int, col: int, sprite_id: int) -> None:
        self._by_cell[self._key(row, col)] = sprite_id

    def at(self, row: int, col: int) -> Optional[int]:
        return self._by_cell.get(self._key(row, col))

    def take(self, row: int, col: int) -> int:
        """Removes and returns the sprite indexed at a cell; the sprite itself stays alive."""
        return self._by_cell.pop(self._key(row, col))

    def __iter__(self) -> Iterator[Sprite]:
        return iter(sorted(self._sprites.values(), key=lambda s: s.sprite_id))

    def __len__(self) -> int:
        return len(self._sprites)

    def clear(self) -> List[int]:
        released = sorted(self._sprites)
        self._sprites.clear()
        self._by_cell.clear()
        self.current = [None, None]
        self.next = [None, None]
        return released
