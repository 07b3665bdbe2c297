from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .board import EMPTY, Board, Coord

MIN_CLUSTER_SIZE = 3


@dataclass(frozen=True)
class Transmutation:
    """A cluster turning into one element of the next tier.

    ``sources`` are every cell of the cluster, ``(row, col)`` is where the new
    element appears and ``tier`` its value.
    """
    sources: Tuple[Coord, ...]
    row: int
    col: int
    tier: int

    @property
    def destination(self) -> Coord:
        return (self.row, self.col)


def neighbors(board: Board, coord: Coord) -> List[Coord]:
    """Gets the orthogonal neighbors of a coordinate that lie on the board."""
    r, c = coord
    out: List[Coord] = []
    if r > 0:
        out.append((r - 1, c))
    if r + 1 < board.height:
        out.append((r + 1, c))
    if c > 0:
        out.append((r, c - 1))
    if c + 1 < board.width:
        out.append((r, c + 1))
    return out


def find_clusters(board: Board) -> List[List[Coord]]:
    """Splits every non-empty cell into maximal 4-connected groups of equal tier.

    Uses an explicit stack so that a board full of one tier cannot hit the
    recursion limit. Clusters come out in scan order: bottom row first, left to right.
    """
    seen = [[False] * board.width for _ in range(board.height)]
    clusters: List[List[Coord]] = []
    for start in board.coords():
        sr, sc = start
        tier = board.at(sr, sc)
        if seen[sr][sc] or tier is EMPTY:
            continue
        cluster: List[Coord] = []
        seen[sr][sc] = True
        stack = [start]
        while stack:
            pos = stack.pop()
            cluster.append(pos)
            for nr, nc in neighbors(board, pos):
                if not seen[nr][nc] and board.at(nr, nc) == tier:
                    seen[nr][nc] = True
                    stack.append((nr, nc))
        clusters.append(cluster)
    return clusters


def find_new_element_position(cluster: Sequence[Coord]) -> Coord:
    """The physically lowest cell of a cluster, and the left-most one among ties."""
    return min(cluster, key=lambda rc: (rc[0], rc[1]))


def calc_transmutations(board: Board, nb_tiers: int) -> List[Transmutation]:
    """Lists the combinations present on the board, in discovery order.

    Clusters smaller than three, and clusters already at the top tier, produce nothing.
    """
    out: List[Transmutation] = []
    for cluster in find_clusters(board):
        if len(cluster) < MIN_CLUSTER_SIZE:
            continue
        tier = board.at(*cluster[0])
        if tier + 1 >= nb_tiers:
            continue
        row, col = find_new_element_position(cluster)
        out.append(Transmutation(tuple(sorted(cluster)), row, col, tier + 1))
    return out


def apply_transmutations(board: Board, transmutations: Sequence[Transmutation]) -> Board:
    """Returns a new board with every combination applied at once.

    All sources are cleared before any destination is written, so the order of
    ``transmutations`` does not change the result.
    """
    out = board.copy()
    for trans in transmutations:
        for r, c in trans.sources:
            out.set(r, c, EMPTY)
    for trans in transmutations:
        out.set(trans.row, trans.col, trans.tier)
    return out
