from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple, Union

from .alchemy import apply_transmutations, calc_transmutations
from .board import Board, is_overflowing
from .config import EngineConfig
from .errors import InvariantError
from .events import (
    Event,
    PlayerLost,
    SessionTeardown,
    SpriteCreated,
    SpriteRemoved,
    TierDiscovered,
)
from .generator import ElementGenerator
from .gravity import apply_falls, detect_falls
from .motion import Motion, MotionGroup, advance_groups
from .piece import Offset, spawn_piece
from .sprites import Sprite, SpriteTable, sprite_x_from_col, sprite_y_from_row
from .state import (
    ACCEPTING_PHASES,
    MAX_PENDING,
    MOTION_EXITS,
    Direction,
    Fade,
    GamePhase,
    Session,
)

# Handler run on each tick, per phase. Every phase must appear here.
_PHASE_HANDLERS: Dict[GamePhase, str] = {
    GamePhase.NEW_ELEMENT: '_on_new_element',
    GamePhase.LANDING: '_on_moving',
    GamePhase.IDLE: '_on_idle',
    GamePhase.MOVING_LR: '_on_moving',
    GamePhase.ROTATING: '_on_moving',
    GamePhase.MOVING_DOWN: '_on_moving',
    GamePhase.ALCHEMY: '_on_alchemy',
    GamePhase.TRANSMUTATION: '_on_transmutation',
    GamePhase.ALCHEMY_FALL: '_on_moving',
    GamePhase.LOSS: '_on_loss',
}

_missing = set(GamePhase) - set(_PHASE_HANDLERS)
if _missing:
    raise InvariantError(f"phases without a handler: {sorted(p.value for p in _missing)}")


class GameEngine:
    """Drives one game session, one state-machine step per tick.

    The engine owns the board, the piece and every sprite. Collaborators talk to
    it through ``press`` (input), ``tick`` (clock), the sprite table (rendering)
    and the event list / callbacks (tier discovery, loss, teardown).
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        on_tier_discovered: Optional[Callable[[int], None]] = None,
        on_lost: Optional[Callable[[int], None]] = None,
    ):
        cfg = config or EngineConfig()
        self.config = cfg
        self.generator = ElementGenerator(cfg.weights, cfg.seed)
        self.on_tier_discovered = on_tier_discovered
        self.on_lost = on_lost
        self.session = Session(
            config=cfg,
            board=Board.empty(cfg.nb_rows, cfg.nb_cols),
            sprites=SpriteTable(cfg.nb_cols),
            max_tier=cfg.initial_max_tier,
            discovered=list(range(cfg.initial_max_tier + 1)),
        )
        self._log('Attention, on alchimise ici!!')
        self._generate_next()
        self._enter(GamePhase.NEW_ELEMENT)

    # ----- Collaborator surface -----

    @property
    def phase(self) -> GamePhase:
        return self.session.phase

    @property
    def board(self) -> Board:
        return self.session.board

    def press(self, direction: Union[Direction, str], repeat: bool = False) -> bool:
        """Queues a direction, keeping only the latest MAX_PENDING presses.

        Auto-repeats and presses outside accepting phases are dropped.
        """
        s = self.session
        if not isinstance(direction, Direction):
            direction = Direction.parse(direction)
        if repeat or s.closed or not s.accepting:
            return False
        s.pending.append(direction)
        del s.pending[:-MAX_PENDING]
        self._log(f"Registering keypress: {direction.value}")
        return True

    def tick(self) -> GamePhase:
        """Runs exactly one state-machine step and returns the phase reached.

        An ``InvariantError`` closes the session before propagating.
        """
        s = self.session
        if not s.closed:
            s.ticks += 1
            try:
                getattr(self, _PHASE_HANDLERS[s.phase])()
            except InvariantError as e:
                print(f"[alchemy] invariant broken in {s.phase.value}: {e}")
                self.teardown()
                raise
        return s.phase

    def run_until_idle(self, max_ticks: int = 100_000) -> int:
        """Ticks until the piece waits for input with nothing queued, or the game ends."""
        s = self.session
        ticks = 0
        while not s.closed and not (s.phase is GamePhase.IDLE and not s.pending):
            if ticks >= max_ticks:
                phase = s.phase.value
                print(f"[alchemy] still in {phase} after {max_ticks} ticks")
                self.teardown()
                raise InvariantError(f"still in {phase} after {max_ticks} ticks")
            self.tick()
            ticks += 1
        return ticks

    def drain_events(self) -> List[Event]:
        out = list(self.session.events)
        self.session.events.clear()
        return out

    def sprite(self, sprite_id: int) -> Sprite:
        return self.session.sprites.get(sprite_id)

    def teardown(self) -> None:
        """Releases every sprite and closes the session; later ticks and presses do nothing."""
        s = self.session
        if s.closed:
            return
        for sprite_id in s.sprites.clear():
            s.events.append(SpriteRemoved(sprite_id))
        s.motions.clear()
        s.fading.clear()
        s.pending.clear()
        s.accepting = False
        s.closed = True
        s.events.append(SessionTeardown())
        self._log('The end already ?')

    # ----- Phase changes -----

    def _enter(self, phase: GamePhase) -> None:
        s = self.session
        self._log(f"Entering state {phase.value}")
        s.phase = phase
        s.accepting = phase in ACCEPTING_PHASES
        if not s.accepting:
            s.pending.clear()

    def _log(self, msg: str) -> None:
        if self.config.verbose:
            print(f"[alchemy] {msg}")

    # ----- New piece -----

    def _new_sprite(self, tier: int, x: int, y: int, alpha: float = 1.0) -> int:
        sp = self.session.sprites.create(tier, x, y, alpha)
        self.session.events.append(SpriteCreated(sp.sprite_id, sp.tier, sp.x, sp.y, sp.alpha))
        return sp.sprite_id

    def _generate_next(self) -> None:
        s = self.session
        s.next_tiers = self.generator.next_pair(s.max_tier)
        s.sprites.next = [
            self._new_sprite(tier, x, y)
            for tier, (x, y) in zip(s.next_tiers, self.config.next_slots)
        ]

    def _piece_pixel(self, base_col: int, offset: Offset) -> Tuple[int, int]:
        cfg = self.config
        return (sprite_x_from_col(cfg, base_col + offset[1]),
                cfg.top_row_y - offset[0] * cfg.spt_height)

    def _on_new_element(self) -> None:
        s, cfg = self.session, self.config
        s.piece = spawn_piece(cfg.default_col, cfg.spawn_offsets, s.next_tiers)
        s.sprites.current = list(s.sprites.next)
        self._generate_next()

        motions = []
        for sprite_id, offset in zip(s.sprites.current, (s.piece.primary, s.piece.secondary)):
            sp = s.sprites.get(sprite_id)
            dest_x, dest_y = self._piece_pixel(s.piece.base_col, offset)
            sp.x, sp.y = dest_x, -cfg.spt_height
            motions.append(self._motion(sp, dest_x, dest_y))
        s.motions.append(MotionGroup(motions))
        s.pieces_played += 1
        self._enter(GamePhase.LANDING)

    # ----- Player input -----

    def _on_idle(self) -> None:
        s = self.session
        if not s.pending:
            return
        # Most recent press wins, the rest of the queue is stale
        direction = s.pending.pop()
        s.pending.clear()
        if direction is Direction.LEFT:
            self._shift(-1)
        elif direction is Direction.RIGHT:
            self._shift(1)
        elif direction is Direction.DOWN:
            self._drop()
        elif direction is Direction.UP:
            self._rotate()
        else:
            raise InvariantError(f"invalid key pressed: {direction}")

    def _current_sprites(self) -> List[Sprite]:
        s = self.session
        if s.piece is None or None in s.sprites.current:
            raise InvariantError(f"no piece under control in {s.phase.value}")
        return [s.sprites.get(i) for i in s.sprites.current]

    def _shift(self, direction: int) -> None:
        s, cfg = self.session, self.config
        sprites = self._current_sprites()
        moved = s.piece.shifted(direction, cfg.nb_cols)
        if moved is None:
            return
        s.motions.append(MotionGroup([
            self._motion(sp, sp.x + direction * cfg.spt_width, sp.y) for sp in sprites
        ]))
        s.piece = moved
        self._enter(GamePhase.MOVING_LR)

    def _rotate(self) -> None:
        s, cfg = self.session, self.config
        sprites = self._current_sprites()
        old = s.piece
        new, nudge = old.rotated(cfg.nb_cols)
        motions = []
        for sp, before, after in zip(sprites, (old.primary, old.secondary), (new.primary, new.secondary)):
            dest_x = sp.x + (after[1] - before[1] + nudge) * cfg.spt_width
            dest_y = sp.y - (after[0] - before[0]) * cfg.spt_height
            motions.append(self._motion(sp, dest_x, dest_y))
        s.motions.append(MotionGroup(motions))
        s.piece = new
        self._enter(GamePhase.ROTATING)

    def _drop(self) -> None:
        s, cfg = self.session, self.config
        sprites = self._current_sprites()
        targets = s.piece.drop_targets(s.board)
        motions = []
        for sp, tier, (row, col) in zip(sprites, (s.piece.primary_tier, s.piece.secondary_tier), targets):
            s.board.set(row, col, tier)
            s.sprites.place(row, col, sp.sprite_id)
            motions.append(self._motion(sp, sp.x, sprite_y_from_row(cfg, row)))
        s.motions.append(MotionGroup(motions))
        s.piece = None
        s.sprites.current = [None, None]
        self._enter(GamePhase.MOVING_DOWN)

    # ----- Motion -----

    def _motion(self, sp: Sprite, dest_x: int, dest_y: int) -> Motion:
        cfg = self.config
        return Motion(sp.sprite_id, sp.x, sp.y, dest_x, dest_y, cfg.delta_move_x, cfg.delta_move_y)

    def _sync_sprite(self, motion: Motion) -> None:
        sp = self.session.sprites.get(motion.sprite_id)
        sp.x, sp.y = motion.x, motion.y

    def _on_moving(self) -> None:
        s = self.session
        s.motions = advance_groups(s.motions, on_step=self._sync_sprite)
        if not s.motions:
            self._enter(MOTION_EXITS[s.phase])

    # ----- Alchemy -----

    def _on_alchemy(self) -> None:
        s, cfg = self.session, self.config
        transmutations = calc_transmutations(s.board, cfg.nb_tiers)
        if not transmutations:
            if is_overflowing(s.board):
                self._lose()
            else:
                self._enter(GamePhase.NEW_ELEMENT)
            return

        s.fading = []
        for trans in transmutations:
            old_sprites = [s.sprites.take(r, c) for r, c in trans.sources]
            new_sprite = self._new_sprite(
                trans.tier,
                sprite_x_from_col(cfg, trans.col),
                sprite_y_from_row(cfg, trans.row),
                alpha=0.0,
            )
            s.sprites.place(trans.row, trans.col, new_sprite)
            s.fading.append(Fade(trans, new_sprite, old_sprites))
            self._log(f"Transmutation of {len(trans.sources)} cells into tier {trans.tier} at {trans.destination}")
            if trans.tier > s.max_tier:
                self._discover(trans.tier)
        s.board = apply_transmutations(s.board, transmutations)
        self._enter(GamePhase.TRANSMUTATION)

    def _discover(self, tier: int) -> None:
        s = self.session
        s.max_tier = tier
        s.discovered.append(tier)
        s.events.append(TierDiscovered(tier))
        self._log(f"New element discovered: {tier}")
        if self.on_tier_discovered is not None:
            self.on_tier_discovered(tier)

    def _on_transmutation(self) -> None:
        s, cfg = self.session, self.config
        finished = 0
        for fade in s.fading:
            if fade.alpha >= 1.0:
                for sprite_id in fade.old_sprites:
                    s.sprites.release(sprite_id)
                    s.events.append(SpriteRemoved(sprite_id))
                fade.old_sprites = []
                finished += 1
                continue
            fade.alpha = min(fade.alpha + cfg.delta_alpha, 1.0)
            for sprite_id in fade.old_sprites:
                s.sprites.get(sprite_id).alpha = 1.0 - fade.alpha
            s.sprites.get(fade.new_sprite).alpha = fade.alpha
        if finished == len(s.fading):
            s.fading = []
            self._start_fall()

    def _start_fall(self) -> None:
        s, cfg = self.session, self.config
        self._enter(GamePhase.ALCHEMY_FALL)
        falls = detect_falls(s.board)
        for fall in falls:
            sprite_id = s.sprites.take(fall.source_row, fall.col)
            sp = s.sprites.get(sprite_id)
            s.motions.append(MotionGroup([self._motion(sp, sp.x, sprite_y_from_row(cfg, fall.target_row))]))
            s.sprites.place(fall.target_row, fall.col, sprite_id)
        apply_falls(s.board, falls)

    # ----- End of game -----

    def _lose(self) -> None:
        s = self.session
        self._log('You lost!')
        self._enter(GamePhase.LOSS)
        s.events.append(PlayerLost(s.max_tier))
        if self.on_lost is not None:
            self.on_lost(s.max_tier)
        self.teardown()

    def _on_loss(self) -> None:
        pass
