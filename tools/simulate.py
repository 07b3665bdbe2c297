from __future__ import annotations

import argparse
import os
import random
import sys
import time
from collections import Counter
from typing import Tuple

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from game import EngineConfig, GameEngine, TIER_LETTERS  # type: ignore
from alchemy_core.cli import autoplay  # type: ignore


def play_one(seed: int, max_pieces: int) -> Tuple[int, int, bool, int]:
    """Returns (max tier, pieces played, lost, ticks) for one random game."""
    engine = GameEngine(EngineConfig(seed=seed))
    autoplay(engine, random.Random(seed), max_pieces)
    s = engine.session
    return s.max_tier, s.pieces_played, s.lost, s.ticks


def process(args: argparse.Namespace) -> None:
    start_time = time.time()
    tiers: Counter = Counter()
    lost = 0
    pieces = 0
    ticks = 0
    for i in range(args.games):
        max_tier, played, was_lost, n = play_one(args.seed + i, args.max_pieces)
        tiers[max_tier] += 1
        lost += int(was_lost)
        pieces += played
        ticks += n
        if args.verbose:
            print(f"game={i} seed={args.seed + i} max_tier={max_tier} pieces={played} lost={was_lost} ticks={n}")

    elapsed = time.time() - start_time
    print(f"Games={args.games} lost={lost} avg_pieces={pieces / max(1, args.games):.1f} "
          f"avg_ticks={ticks / max(1, args.games):.0f} elapsed_sec={elapsed:.1f}")
    for tier in sorted(tiers):
        print(f"  max tier {TIER_LETTERS[tier]} ({tier}): {tiers[tier]}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Play many random Alchemy games headlessly and report statistics")
    parser.add_argument('--games', type=int, default=20, help='Number of games to play')
    parser.add_argument('--seed', type=int, default=0, help='Seed of the first game; game i uses seed+i')
    parser.add_argument('--max-pieces', type=int, default=300, help='Piece limit per game')
    parser.add_argument('--verbose', action='store_true', help='Print one line per game')
    args = parser.parse_args()
    process(args)


if __name__ == '__main__':
    main()
