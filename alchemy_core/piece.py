from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from .board import Board, Coord, next_free_row
from .errors import InvariantError

Offset = Tuple[int, int]  # (row_delta, col_delta), each 0 or 1, relative to the pivot column

# Clockwise rotation of a cell around the 2x2 box anchored at the pivot column
ROTATION_CYCLE: Dict[Offset, Offset] = {
    (0, 0): (1, 0),
    (1, 0): (1, 1),
    (1, 1): (0, 1),
    (0, 1): (0, 0),
}


def rotate_offsets(row_delta: int, col_delta: int) -> Offset:
    """Rotates one cell offset a quarter turn clockwise; any pair outside the cycle is a defect."""
    try:
        return ROTATION_CYCLE[(row_delta, col_delta)]
    except KeyError:
        raise InvariantError(f"invalid rotation input: {(row_delta, col_delta)}") from None


@dataclass(frozen=True)
class Piece:
    """The player-controlled pair of cells hovering above the playfield."""
    base_col: int
    primary: Offset
    secondary: Offset
    primary_tier: int
    secondary_tier: int

    def columns(self) -> Tuple[int, int]:
        return self.base_col + self.primary[1], self.base_col + self.secondary[1]

    def is_vertical(self) -> bool:
        return self.primary[1] == self.secondary[1]

    def shifted(self, direction: int, nb_cols: int) -> Optional['Piece']:
        """Moves the pair by one column; returns None when either cell would leave the board."""
        moved = replace(self, base_col=self.base_col + direction)
        if any(c < 0 or c >= nb_cols for c in moved.columns()):
            return None
        return moved

    def rotated(self, nb_cols: int) -> Tuple['Piece', int]:
        """Rotates clockwise, nudging the pivot back on-board when a cell would leave it.

        Returns the new piece and the pivot correction that was applied (-1, 0 or +1).
        """
        primary = rotate_offsets(*self.primary)
        secondary = rotate_offsets(*self.secondary)
        cols = (self.base_col + primary[1], self.base_col + secondary[1])
        nudge = 0
        if min(cols) < 0:
            nudge = -min(cols)
        elif max(cols) >= nb_cols:
            nudge = nb_cols - 1 - max(cols)
        return Piece(self.base_col + nudge, primary, secondary, self.primary_tier, self.secondary_tier), nudge

    def drop_targets(self, board: Board) -> Tuple[Coord, Coord]:
        """Board cells where the primary and secondary elements come to rest when dropped."""
        col1, col2 = self.columns()
        row1 = next_free_row(board, col1)
        row2 = next_free_row(board, col2)
        if row1 is None or row2 is None:
            raise InvariantError(f"no room to drop into columns {col1} and {col2}")
        if col1 == col2:
            # Stacked pair: the upper cell lands on top of the lower one
            if self.secondary[0] > self.primary[0]:
                row2 += 1
            else:
                row1 += 1
        if row1 >= board.height or row2 >= board.height:
            raise InvariantError(f"drop target above the board: rows {row1} and {row2}")
        return (row1, col1), (row2, col2)


def spawn_piece(base_col: int, offsets: Tuple[Offset, Offset], tiers: Tuple[int, int]) -> Piece:
    return Piece(base_col, offsets[0], offsets[1], tiers[0], tiers[1])
