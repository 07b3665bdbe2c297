from __future__ import annotations

# Facade module that re-exports the Alchemy core functionality.
# Used by the Flask app, the tools and the tests.
# Single-responsibility modules live under alchemy_core/*.

# Prefer the package-relative import, fall back to the top-level package.
try:
    from .alchemy_core.board import (  # type: ignore
        EMPTY,
        TIER_LETTERS,
        Board,
        Coord,
        Tier,
        is_overflowing,
        next_free_row,
    )
    from .alchemy_core.config import EngineConfig  # type: ignore
    from .alchemy_core.errors import InvariantError  # type: ignore
    from .alchemy_core.piece import Piece, rotate_offsets, spawn_piece  # type: ignore
    from .alchemy_core.generator import ElementGenerator, weighted_tier  # type: ignore
    from .alchemy_core.alchemy import (  # type: ignore
        Transmutation,
        apply_transmutations,
        calc_transmutations,
        find_clusters,
        find_new_element_position,
        neighbors,
    )
    from .alchemy_core.gravity import Fall, apply_falls, detect_falls  # type: ignore
    from .alchemy_core.motion import Motion, MotionGroup, advance, advance_groups  # type: ignore
    from .alchemy_core.sprites import Sprite, SpriteTable, sprite_x_from_col, sprite_y_from_row  # type: ignore
    from .alchemy_core.events import (  # type: ignore
        PlayerLost,
        SessionTeardown,
        SpriteCreated,
        SpriteRemoved,
        TierDiscovered,
        event_to_json,
    )
    from .alchemy_core.state import ACCEPTING_PHASES, Direction, GamePhase, Session  # type: ignore
    from .alchemy_core.engine import GameEngine  # type: ignore
except ImportError:
    from alchemy_core.board import (  # type: ignore
        EMPTY,
        TIER_LETTERS,
        Board,
        Coord,
        Tier,
        is_overflowing,
        next_free_row,
    )
    from alchemy_core.config import EngineConfig  # type: ignore
    from alchemy_core.errors import InvariantError  # type: ignore
    from alchemy_core.piece import Piece, rotate_offsets, spawn_piece  # type: ignore
    from alchemy_core.generator import ElementGenerator, weighted_tier  # type: ignore
    from alchemy_core.alchemy import (  # type: ignore
        Transmutation,
        apply_transmutations,
        calc_transmutations,
        find_clusters,
        find_new_element_position,
        neighbors,
    )
    from alchemy_core.gravity import Fall, apply_falls, detect_falls  # type: ignore
    from alchemy_core.motion import Motion, MotionGroup, advance, advance_groups  # type: ignore
    from alchemy_core.sprites import Sprite, SpriteTable, sprite_x_from_col, sprite_y_from_row  # type: ignore
    from alchemy_core.events import (  # type: ignore
        PlayerLost,
        SessionTeardown,
        SpriteCreated,
        SpriteRemoved,
        TierDiscovered,
        event_to_json,
    )
    from alchemy_core.state import ACCEPTING_PHASES, Direction, GamePhase, Session  # type: ignore
    from alchemy_core.engine import GameEngine  # type: ignore


def new_game(seed: int | None = None, **overrides) -> GameEngine:
    """Starts a session with the default configuration, environment overrides applied."""
    if seed is not None:
        overrides['seed'] = seed
    return GameEngine(EngineConfig.from_env(**overrides))


def main() -> None:
    # CLI driver delegated to alchemy_core.cli
    try:
        from .alchemy_core.cli import main as _main  # type: ignore
    except ImportError:
        from alchemy_core.cli import main as _main  # type: ignore
    _main()


if __name__ == '__main__':
    main()
