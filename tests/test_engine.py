import io
import unittest
from contextlib import redirect_stdout

from alchemy_core.engine import _PHASE_HANDLERS
from alchemy_core.state import MAX_PENDING
from game import (
    Board,
    Direction,
    EngineConfig,
    GameEngine,
    GamePhase,
    InvariantError,
    PlayerLost,
    SessionTeardown,
    SpriteCreated,
    SpriteRemoved,
    TierDiscovered,
    sprite_x_from_col,
    sprite_y_from_row,
)

LANDING_TICKS = 16  # one tick to spawn, fifteen to slide from y=-30 down to y=45


def mk_engine(**kwargs):
    """Engine whose pieces are always tier 0 until something better is discovered."""
    kwargs.setdefault('seed', 1)
    kwargs.setdefault('initial_max_tier', 0)
    callbacks = {k: kwargs.pop(k) for k in ('on_tier_discovered', 'on_lost') if k in kwargs}
    return GameEngine(EngineConfig(**kwargs), **callbacks)


def seed_board(engine, rows):
    """Places elements (and their sprites) on the visible rows, top line first."""
    s = engine.session
    cfg = engine.config
    lines = ['.' * cfg.nb_cols] * (s.board.height - len(rows)) + list(rows)
    s.board = Board.from_ascii(lines, visible_rows=cfg.nb_rows)
    for r, c in s.board.occupied():
        sp = s.sprites.create(s.board.at(r, c), sprite_x_from_col(cfg, c), sprite_y_from_row(cfg, r))
        s.sprites.place(r, c, sp.sprite_id)


def drop(engine):
    engine.press(Direction.DOWN)
    return engine.run_until_idle()


class TestLanding(unittest.TestCase):
    def test_phase_table_covers_every_phase(self):
        self.assertEqual(set(_PHASE_HANDLERS), set(GamePhase))

    def test_given_new_engine_when_created_then_preview_ready_and_waiting_to_spawn(self):
        engine = mk_engine()
        s = engine.session
        self.assertIs(engine.phase, GamePhase.NEW_ELEMENT)
        self.assertEqual(s.next_tiers, (0, 0))
        self.assertEqual(s.discovered, [0])
        created = [ev for ev in engine.drain_events() if isinstance(ev, SpriteCreated)]
        self.assertEqual([(ev.x, ev.y) for ev in created], [(210, 154), (240, 154)])

    def test_given_new_engine_when_ticking_then_piece_lands_and_waits(self):
        engine = mk_engine()
        self.assertIs(engine.tick(), GamePhase.LANDING)
        for _ in range(LANDING_TICKS - 2):
            self.assertIs(engine.tick(), GamePhase.LANDING)
        self.assertIs(engine.tick(), GamePhase.IDLE)
        s = engine.session
        self.assertEqual(s.piece.columns(), (2, 3))
        primary, secondary = (engine.sprite(i) for i in s.sprites.current)
        self.assertEqual((primary.x, primary.y), (60, 45))
        self.assertEqual((secondary.x, secondary.y), (90, 45))
        self.assertEqual(s.pieces_played, 1)

    def test_given_idle_engine_when_ticking_then_nothing_changes(self):
        engine = mk_engine()
        engine.run_until_idle()
        before = engine.session.piece
        for _ in range(10):
            self.assertIs(engine.tick(), GamePhase.IDLE)
        self.assertEqual(engine.session.piece, before)


class TestInput(unittest.TestCase):
    def test_given_engine_before_spawn_when_pressing_then_ignored(self):
        engine = mk_engine()
        self.assertFalse(engine.press(Direction.LEFT))
        self.assertEqual(engine.session.pending, [])

    def test_given_landing_piece_when_pressing_then_move_applied_after_landing(self):
        engine = mk_engine()
        engine.tick()
        self.assertTrue(engine.press('right'))
        engine.run_until_idle()
        self.assertEqual(engine.session.piece.columns(), (3, 4))

    def test_given_auto_repeat_when_pressing_then_ignored(self):
        engine = mk_engine()
        engine.run_until_idle()
        self.assertFalse(engine.press(Direction.LEFT, repeat=True))
        self.assertEqual(engine.session.pending, [])

    def test_given_unknown_direction_when_pressing_then_value_error(self):
        engine = mk_engine()
        with self.assertRaises(ValueError):
            engine.press('sideways')

    def test_given_several_queued_presses_when_idle_then_last_one_wins(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.press(Direction.LEFT)
        engine.press(Direction.UP)
        engine.press(Direction.RIGHT)
        self.assertIs(engine.tick(), GamePhase.MOVING_LR)
        self.assertEqual(engine.session.pending, [])
        engine.run_until_idle()
        self.assertEqual(engine.session.piece.columns(), (3, 4))

    def test_given_many_presses_without_ticks_when_queued_then_only_latest_kept(self):
        engine = mk_engine()
        engine.run_until_idle()
        for _ in range(50):
            self.assertTrue(engine.press(Direction.LEFT))
        engine.press(Direction.UP)
        pending = engine.session.pending
        self.assertEqual(len(pending), MAX_PENDING)
        self.assertIs(pending[-1], Direction.UP)
        self.assertIs(engine.tick(), GamePhase.ROTATING)

    def test_given_drop_in_progress_when_pressing_then_ignored(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.press(Direction.DOWN)
        self.assertIs(engine.tick(), GamePhase.MOVING_DOWN)
        self.assertFalse(engine.press(Direction.LEFT))
        self.assertFalse(engine.session.accepting)


class TestMoves(unittest.TestCase):
    def test_given_piece_when_moving_left_then_sprites_slide_one_column(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.press(Direction.LEFT)
        ticks = engine.run_until_idle()
        s = engine.session
        self.assertEqual(s.piece.columns(), (1, 2))
        self.assertEqual([engine.sprite(i).x for i in s.sprites.current], [30, 60])
        self.assertEqual(ticks, 1 + 10)

    def test_given_piece_at_left_edge_when_moving_left_then_nothing_happens(self):
        engine = mk_engine()
        engine.run_until_idle()
        for _ in range(2):
            engine.press(Direction.LEFT)
            engine.run_until_idle()
        self.assertEqual(engine.session.piece.columns(), (0, 1))
        engine.press(Direction.LEFT)
        self.assertIs(engine.tick(), GamePhase.IDLE)
        self.assertEqual(engine.session.piece.columns(), (0, 1))

    def test_given_piece_when_rotating_then_primary_goes_up_and_secondary_to_pivot(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.press(Direction.UP)
        self.assertIs(engine.tick(), GamePhase.ROTATING)
        engine.run_until_idle()
        s = engine.session
        self.assertEqual((s.piece.primary, s.piece.secondary), ((1, 0), (0, 0)))
        primary, secondary = (engine.sprite(i) for i in s.sprites.current)
        self.assertEqual((primary.x, primary.y), (60, 15))
        self.assertEqual((secondary.x, secondary.y), (60, 45))

    def test_given_vertical_piece_at_right_edge_when_rotating_then_pulled_back_on_board(self):
        engine = mk_engine()
        engine.run_until_idle()
        for direction in [Direction.UP, Direction.RIGHT, Direction.RIGHT, Direction.RIGHT]:
            engine.press(direction)
            engine.run_until_idle()
        self.assertEqual(engine.session.piece.columns(), (5, 5))
        engine.press(Direction.UP)
        engine.run_until_idle()
        s = engine.session
        self.assertEqual(s.piece.columns(), (5, 4))
        self.assertEqual([engine.sprite(i).x for i in s.sprites.current], [150, 120])

    def test_given_vertical_piece_at_left_edge_when_rotating_then_pulled_back_on_board(self):
        engine = mk_engine()
        engine.run_until_idle()
        for direction in [Direction.UP] * 3 + [Direction.LEFT] * 4:
            engine.press(direction)
            engine.run_until_idle()
        self.assertEqual(engine.session.piece.columns(), (0, 0))
        engine.press(Direction.UP)
        engine.run_until_idle()
        s = engine.session
        self.assertEqual(s.piece.columns(), (0, 1))
        self.assertEqual([engine.sprite(i).x for i in s.sprites.current], [0, 30])


class TestDropAndAlchemy(unittest.TestCase):
    def test_given_piece_when_dropped_then_board_updated_and_next_piece_spawned(self):
        engine = mk_engine()
        engine.run_until_idle()
        current = list(engine.session.sprites.current)
        drop(engine)
        s = engine.session
        self.assertEqual(s.board.to_ascii()[-1], '..aa..')
        self.assertEqual([s.sprites.at(0, 2), s.sprites.at(0, 3)], current)
        self.assertEqual([engine.sprite(i).y for i in current], [298, 298])
        self.assertEqual(s.pieces_played, 2)
        self.assertIs(engine.phase, GamePhase.IDLE)

    def test_given_vertical_piece_when_dropped_then_cells_stack(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.press(Direction.UP)
        engine.run_until_idle()
        drop(engine)
        self.assertEqual(engine.board.to_ascii()[-2:], ['..a...', '..a...'])

    def test_given_four_matching_cells_when_dropped_then_transmuted_into_next_tier(self):
        discovered = []
        engine = mk_engine(on_tier_discovered=discovered.append)
        engine.run_until_idle()
        drop(engine)
        engine.drain_events()
        drop(engine)
        s = engine.session
        self.assertEqual(s.board.to_ascii()[-2:], ['......', '..b...'])
        self.assertEqual(s.max_tier, 1)
        self.assertEqual(s.discovered, [0, 1])
        self.assertEqual(discovered, [1])
        events = engine.drain_events()
        self.assertEqual([ev for ev in events if isinstance(ev, TierDiscovered)], [TierDiscovered(1)])
        self.assertEqual(len([ev for ev in events if isinstance(ev, SpriteRemoved)]), 4)
        board_sprite = engine.sprite(s.sprites.at(0, 2))
        self.assertEqual((board_sprite.tier, board_sprite.alpha), (1, 1.0))
        # One on the board, two under control, two in the preview
        self.assertEqual(len(s.sprites), 5)

    def test_given_transmutation_when_fading_then_new_sprite_fades_in_and_input_ignored(self):
        engine = mk_engine()
        engine.run_until_idle()
        drop(engine)
        engine.press(Direction.DOWN)
        while engine.phase is not GamePhase.TRANSMUTATION:
            engine.tick()
        created = [ev for ev in engine.drain_events() if isinstance(ev, SpriteCreated) and ev.alpha == 0.0]
        self.assertEqual(len(created), 1)
        new_id = created[0].sprite_id
        self.assertFalse(engine.press(Direction.LEFT))
        engine.tick()
        self.assertAlmostEqual(engine.sprite(new_id).alpha, 0.02)
        old_id = engine.session.fading[0].old_sprites[0]
        self.assertAlmostEqual(engine.sprite(old_id).alpha, 0.98)

    def test_given_combination_that_leaves_gaps_when_resolved_then_cascade_runs_to_rest(self):
        engine = mk_engine()
        seed_board(engine, [
            '.c....',
            'bb....',
            'aa....',
        ])
        engine.run_until_idle()
        drop(engine)
        s = engine.session
        self.assertEqual(s.board.to_ascii()[-3:], ['......', '......', 'cc....'])
        tiers = [ev.tier for ev in engine.drain_events() if isinstance(ev, TierDiscovered)]
        self.assertEqual(tiers, [1, 2])
        self.assertEqual(s.discovered, [0, 1, 2])
        for col in (0, 1):
            sp = engine.sprite(s.sprites.at(0, col))
            self.assertEqual((sp.tier, sp.x, sp.y, sp.alpha), (2, col * 30, 298, 1.0))
        self.assertIsNone(s.sprites.at(1, 1))
        self.assertEqual(len(s.sprites), 6)

    def test_given_known_tier_when_created_again_then_no_discovery(self):
        engine = mk_engine(initial_max_tier=1)
        seed_board(engine, ['aa....'])
        engine.session.next_tiers = (0, 1)
        engine.run_until_idle()
        engine.drain_events()
        drop(engine)
        self.assertEqual(engine.board.to_ascii()[-1], 'b..b..')
        self.assertEqual(engine.session.max_tier, 1)
        self.assertEqual(engine.session.discovered, [0, 1])
        self.assertFalse(any(isinstance(ev, TierDiscovered) for ev in engine.drain_events()))


class TestLoss(unittest.TestCase):
    FULL_COLUMNS = [
        '..bc..',
        '..cb..',
        '..bc..',
        '..cb..',
        '..bc..',
        '..cb..',
        '..bc..',
    ]

    def test_given_full_columns_when_piece_lands_in_buffer_then_game_lost(self):
        lost = []
        engine = mk_engine(on_lost=lost.append)
        seed_board(engine, self.FULL_COLUMNS)
        engine.run_until_idle()
        engine.drain_events()
        drop(engine)
        s = engine.session
        self.assertIs(engine.phase, GamePhase.LOSS)
        self.assertTrue(s.lost)
        self.assertTrue(s.closed)
        self.assertEqual(lost, [0])
        events = engine.drain_events()
        self.assertIn(PlayerLost(0), events)
        self.assertEqual(events[-1], SessionTeardown())
        # 14 seeded, the dropped pair and the preview pair
        self.assertEqual(len([ev for ev in events if isinstance(ev, SpriteRemoved)]), 18)
        self.assertEqual(len(s.sprites), 0)

    def test_given_lost_game_when_ticking_or_pressing_then_nothing_happens(self):
        engine = mk_engine()
        seed_board(engine, self.FULL_COLUMNS)
        engine.run_until_idle()
        drop(engine)
        engine.drain_events()
        ticks = engine.session.ticks
        self.assertIs(engine.tick(), GamePhase.LOSS)
        self.assertEqual(engine.session.ticks, ticks)
        self.assertFalse(engine.press(Direction.LEFT))
        engine.teardown()
        self.assertEqual(engine.drain_events(), [])

    def test_given_full_visible_board_without_overflow_when_settled_then_game_goes_on(self):
        engine = mk_engine()
        seed_board(engine, self.FULL_COLUMNS[1:])
        engine.run_until_idle()
        drop(engine)
        self.assertIs(engine.phase, GamePhase.IDLE)
        self.assertFalse(engine.session.lost)


class TestTeardown(unittest.TestCase):
    def test_given_tick_budget_too_small_when_running_until_idle_then_session_halted(self):
        engine = mk_engine()
        with redirect_stdout(io.StringIO()) as out:
            with self.assertRaises(InvariantError):
                engine.run_until_idle(max_ticks=3)
        self.assertIn('[alchemy] still in LANDING after 3 ticks', out.getvalue())
        self.assertTrue(engine.session.closed)
        self.assertEqual(len(engine.session.sprites), 0)
        self.assertEqual(engine.drain_events()[-1], SessionTeardown())

    def test_given_broken_invariant_when_ticking_then_session_halted_and_error_raised(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.session.piece = None
        engine.press(Direction.LEFT)
        with redirect_stdout(io.StringIO()) as out:
            with self.assertRaises(InvariantError):
                engine.tick()
        self.assertIn('[alchemy] invariant broken in IDLE', out.getvalue())
        self.assertTrue(engine.session.closed)
        self.assertEqual(engine.drain_events()[-1], SessionTeardown())

    def test_given_running_game_when_torn_down_then_sprites_released_once(self):
        engine = mk_engine()
        engine.run_until_idle()
        engine.drain_events()
        engine.teardown()
        events = engine.drain_events()
        self.assertEqual(sorted(ev.sprite_id for ev in events if isinstance(ev, SpriteRemoved)), [1, 2, 3, 4])
        self.assertEqual(events[-1], SessionTeardown())
        self.assertEqual(engine.run_until_idle(), 0)
        engine.teardown()
        self.assertEqual(engine.drain_events(), [])


if __name__ == '__main__':
    unittest.main(verbosity=2)
