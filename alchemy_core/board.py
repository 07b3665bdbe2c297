from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

Tier = Optional[int]  # None marks an empty cell, otherwise a 0-based tier index
Coord = Tuple[int, int]  # (row, col), row 0 is the bottom of the playfield

EMPTY: Tier = None

# One letter per tier in ASCII boards: 'a' is tier 0, 'k' is tier 10
TIER_LETTERS = 'abcdefghijklmnopqrstuvwxyz'
EMPTY_LETTER = '.'


@dataclass
class Board:
    """The playfield grid, stored bottom-up: ``cells[0]`` is the lowest row.

    Rows at or above ``visible_rows`` are buffer rows: they exist so that a
    combination can still happen in a visually full column, and any element
    left there once the board has settled means the game is lost.
    """
    height: int
    width: int
    visible_rows: int
    cells: List[List[Tier]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.cells:
            self.cells = [[EMPTY] * self.width for _ in range(self.height)]
        if len(self.cells) != self.height or any(len(r) != self.width for r in self.cells):
            raise ValueError(f"cells do not match a {self.height}x{self.width} board")
        if not 0 < self.visible_rows <= self.height:
            raise ValueError(f"visible_rows out of range: {self.visible_rows}")

    @classmethod
    def empty(cls, visible_rows: int, width: int, buffer_rows: int = 2) -> 'Board':
        return cls(height=visible_rows + buffer_rows, width=width, visible_rows=visible_rows)

    def at(self, r: int, c: int) -> Tier:
        return self.cells[r][c]

    def set(self, r: int, c: int, tier: Tier) -> None:
        self.cells[r][c] = tier

    def inside(self, r: int, c: int) -> bool:
        return 0 <= r < self.height and 0 <= c < self.width

    def coords(self) -> Iterator[Coord]:
        """Iterates over all coordinates, bottom row first, left to right."""
        for r in range(self.height):
            for c in range(self.width):
                yield (r, c)

    def copy(self) -> 'Board':
        return Board(self.height, self.width, self.visible_rows, [row[:] for row in self.cells])

    def buffer_rows(self) -> range:
        return range(self.visible_rows, self.height)

    def occupied(self) -> List[Coord]:
        return [(r, c) for r, c in self.coords() if self.cells[r][c] is not EMPTY]

    def pretty(self, highlight: Iterable[Coord] = ()) -> str:
        """ASCII rendering, highest row on the first line; buffer rows are separated by a rule."""
        marks = set(highlight)
        lines: List[str] = []
        for r in reversed(range(self.height)):
            row = []
            for c in range(self.width):
                ch = _tier_to_letter(self.cells[r][c])
                row.append(ch.upper() if (r, c) in marks else ch)
            lines.append(''.join(row))
            if r == self.visible_rows and self.visible_rows < self.height:
                lines.append('-' * self.width)
        return '\n'.join(lines)

    def to_ascii(self) -> List[str]:
        return [''.join(_tier_to_letter(t) for t in self.cells[r]) for r in reversed(range(self.height))]

    @classmethod
    def from_ascii(cls, lines: Sequence[str], visible_rows: Optional[int] = None) -> 'Board':
        """Parses rows written top line first, e.g. ``["......", "..aaa."]``.

        With no ``visible_rows`` every parsed row is visible (no buffer rows).
        """
        rows = [ln.strip() for ln in lines if ln.strip()]
        if not rows:
            raise ValueError('empty board description')
        width = len(rows[0])
        if any(len(r) != width for r in rows):
            raise ValueError('all board lines must have the same width')
        cells = [[_letter_to_tier(ch) for ch in r] for r in reversed(rows)]
        height = len(cells)
        return cls(height=height, width=width, visible_rows=visible_rows or height, cells=cells)


def _tier_to_letter(tier: Tier) -> str:
    if tier is EMPTY:
        return EMPTY_LETTER
    return TIER_LETTERS[tier]


def _letter_to_tier(ch: str) -> Tier:
    if ch == EMPTY_LETTER:
        return EMPTY
    idx = TIER_LETTERS.find(ch)
    if idx < 0:
        raise ValueError(f"invalid board character: {ch!r}")
    return idx


def next_free_row(board: Board, col: int) -> Optional[int]:
    """Returns the lowest empty row of a column, buffer rows included, or None when it is full."""
    for r in range(board.height):
        if board.cells[r][col] is EMPTY:
            return r
    return None


def is_overflowing(board: Board) -> bool:
    """True when any buffer row holds an element: the loss condition once alchemy is quiescent."""
    return any(board.cells[r][c] is not EMPTY for r in board.buffer_rows() for c in range(board.width))
