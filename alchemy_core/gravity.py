from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence

from .board import EMPTY, Board


class Fall(NamedTuple):
    source_row: int
    col: int
    target_row: int


def detect_falls(board: Board) -> List[Fall]:
    """Finds the moves that close every gap, column by column, bottom to top.

    Within a column each cell lands on the lowest row still available once the
    cells below it have fallen, so applying the falls in order never overlaps.
    """
    falls: List[Fall] = []
    for col in range(board.width):
        free: Optional[int] = None
        for row in range(board.height):
            if board.at(row, col) is EMPTY:
                if free is None:
                    free = row
            elif free is not None:
                falls.append(Fall(row, col, free))
                free += 1
    return falls


def apply_falls(board: Board, falls: Sequence[Fall]) -> None:
    """Moves cells in place, in the order given by ``detect_falls``."""
    for source_row, col, target_row in falls:
        board.set(target_row, col, board.at(source_row, col))
        board.set(source_row, col, EMPTY)
