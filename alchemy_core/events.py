from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Union


@dataclass(frozen=True)
class SpriteCreated:
    sprite_id: int
    tier: int
    x: int
    y: int
    alpha: float


@dataclass(frozen=True)
class SpriteRemoved:
    sprite_id: int


@dataclass(frozen=True)
class TierDiscovered:
    tier: int


@dataclass(frozen=True)
class PlayerLost:
    max_tier: int


@dataclass(frozen=True)
class SessionTeardown:
    pass


Event = Union[SpriteCreated, SpriteRemoved, TierDiscovered, PlayerLost, SessionTeardown]


def event_to_json(ev: Event) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": type(ev).__name__}
    out.update(asdict(ev))
    return out
