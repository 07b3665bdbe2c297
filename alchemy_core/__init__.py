"""
Alchemy core Python package.

Pure-logic rules engine of the falling-pair alchemy puzzle, kept free of any
rendering or input-device code so that every rule can be tested in isolation.
Modules:
- board.py: Board, Tier, Coord, next_free_row, is_overflowing
- piece.py: Piece, rotation cycle, shift/rotate/drop rules
- generator.py: weighted tier sampling for new pieces
- alchemy.py: cluster flood fill and transmutations
- gravity.py: falls closing the holes left by transmutations
- motion.py: per-tick stepped motion and motion groups
- sprites.py / events.py: data handed to the renderer and other collaborators
- state.py: GamePhase, Direction, Session
- engine.py: GameEngine, the tick-driven state machine
"""
