from __future__ import annotations

import random
from typing import Optional, Sequence, Tuple

from .errors import InvariantError


def weighted_tier(rng: random.Random, max_tier: int, weights: Sequence[int]) -> int:
    """Samples a tier in ``0..max_tier`` (inclusive) proportionally to its weight."""
    total = sum(weights[: max_tier + 1])
    remaining = rng.randrange(total) + 1
    for tier in range(max_tier + 1):
        remaining -= weights[tier]
        if remaining <= 0:
            return tier
    # The draw is bounded by the sum above, so this only happens if the table is inconsistent
    raise InvariantError(f"weighted draw exhausted the tier table: {remaining} left")


class ElementGenerator:
    """Produces the tiers of upcoming pieces from a seeded RNG."""

    def __init__(self, weights: Sequence[int], seed: Optional[int] = None):
        self.weights = tuple(weights)
        self.rng = random.Random(seed)

    def next_tier(self, max_tier: int) -> int:
        if not 0 <= max_tier < len(self.weights):
            raise ValueError(f"max_tier out of range: {max_tier}")
        return weighted_tier(self.rng, max_tier, self.weights)

    def next_pair(self, max_tier: int) -> Tuple[int, int]:
        return self.next_tier(max_tier), self.next_tier(max_tier)
