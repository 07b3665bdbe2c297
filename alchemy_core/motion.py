from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple


def _step_toward(pos: int, dest: int, step: int) -> int:
    if pos < dest:
        return min(pos + step, dest)
    if pos > dest:
        return max(pos - step, dest)
    return pos


@dataclass(frozen=True)
class Motion:
    """One sprite travelling in a straight line, a fixed step per axis and per tick."""
    sprite_id: int
    x: int
    y: int
    dest_x: int
    dest_y: int
    step_x: int
    step_y: int

    @property
    def done(self) -> bool:
        return self.x == self.dest_x and self.y == self.dest_y


def advance(motion: Motion) -> Tuple[Motion, bool]:
    """Moves one tick closer to the destination, never past it; reports arrival."""
    if motion.done:
        return motion, True
    moved = replace(
        motion,
        x=_step_toward(motion.x, motion.dest_x, motion.step_x),
        y=_step_toward(motion.y, motion.dest_y, motion.step_y),
    )
    return moved, moved.done


@dataclass
class MotionGroup:
    """Motions that must all finish before the game moves on, e.g. both cells of a piece."""
    motions: List[Motion]

    @property
    def done(self) -> bool:
        return all(m.done for m in self.motions)

    def advance(self) -> bool:
        self.motions = [advance(m)[0] for m in self.motions]
        return self.done


def advance_groups(
    groups: List[MotionGroup],
    on_step: Optional[Callable[[Motion], None]] = None,
) -> List[MotionGroup]:
    """Advances every group by one tick and returns the groups still in flight.

    ``on_step`` sees every motion after its step, finished groups included, so
    a sprite always ends exactly on its destination.
    """
    remaining: List[MotionGroup] = []
    for group in groups:
        done = group.advance()
        if on_step is not None:
            for m in group.motions:
                on_step(m)
        if not done:
            remaining.append(group)
    return remaining
