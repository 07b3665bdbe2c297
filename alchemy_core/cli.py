from __future__ import annotations

import argparse
import random
from typing import List, Optional

from .board import TIER_LETTERS
from .config import EngineConfig
from .engine import GameEngine
from .state import Direction

KEYS = {
    'l': Direction.LEFT,
    'r': Direction.RIGHT,
    'd': Direction.DOWN,
    'u': Direction.UP,
}


def render(engine: GameEngine) -> str:
    """ASCII view: the piece in its two hover rows, then the board with buffer rows on top."""
    s = engine.session
    width = s.board.width
    hover = [['.'] * width for _ in range(2)]
    if s.piece is not None:
        p = s.piece
        for (dr, dc), tier in ((p.primary, p.primary_tier), (p.secondary, p.secondary_tier)):
            hover[1 - dr][p.base_col + dc] = TIER_LETTERS[tier].upper()
    lines: List[str] = [''.join(r) for r in hover]
    lines.append('=' * width)
    lines.append(s.board.pretty())
    nxt = ''.join(TIER_LETTERS[t] for t in s.next_tiers)
    lines.append(f"next: {nxt}   max tier: {TIER_LETTERS[s.max_tier]} ({s.max_tier})")
    return '\n'.join(lines)


def autoplay(engine: GameEngine, rng: random.Random, max_pieces: int) -> None:
    """Plays random moves, each piece ends with a drop."""
    s = engine.session
    while not s.closed and s.pieces_played <= max_pieces:
        engine.run_until_idle()
        if s.closed:
            break
        for _ in range(rng.randrange(4)):
            engine.press(rng.choice([Direction.LEFT, Direction.RIGHT, Direction.UP]))
            engine.run_until_idle()
        engine.press(Direction.DOWN)
        engine.run_until_idle()


def play(engine: GameEngine) -> None:
    s = engine.session
    while not s.closed:
        engine.run_until_idle()
        if s.closed:
            break
        print(render(engine))
        text = input('Move (l/r/u/d, q to quit): ').strip().lower()
        if text == 'q':
            engine.teardown()
            break
        direction = KEYS.get(text[:1])
        if direction is None:
            print('Could not parse. Try again.')
            continue
        engine.press(direction)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description='Alchemy falling-pair puzzle engine')
    parser.add_argument('--seed', type=int, default=None, help='RNG seed for generated pieces')
    parser.add_argument('--play', action='store_true', help='Play interactively in the terminal')
    parser.add_argument('--max-pieces', type=int, default=200, help='Piece limit for autoplay')
    parser.add_argument('--verbose', action='store_true', help='Log state changes')
    args = parser.parse_args(argv)

    overrides = {'verbose': True} if args.verbose else {}
    if args.seed is not None:
        overrides['seed'] = args.seed
    config = EngineConfig.from_env(**overrides)
    engine = GameEngine(
        config,
        on_tier_discovered=lambda tier: print(f"New element discovered: {TIER_LETTERS[tier]} ({tier})"),
        on_lost=lambda tier: print('You lost!'),
    )

    if args.play:
        play(engine)
    else:
        autoplay(engine, random.Random(config.seed), args.max_pieces)
    print(render(engine))
    print(f"Pieces played: {engine.session.pieces_played}")


if __name__ == '__main__':
    main()
