from __future__ import annotations

import os
import sys
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, request

# Ensure package imports work when executed directly from repo root or as module
if __package__ in (None, ""):
    sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

try:
    from .game import (  # type: ignore
        Direction,
        EngineConfig,
        GameEngine,
        InvariantError,
        event_to_json,
    )
except ImportError:
    from game import (  # type: ignore
        Direction,
        EngineConfig,
        GameEngine,
        InvariantError,
        event_to_json,
    )

MAX_SESSIONS = int(os.getenv("ALCHEMY_MAX_SESSIONS", "64"))
MAX_TICKS_PER_CALL = 600

app = Flask(__name__)


@dataclass
class HostedGame:
    """One session's engine and the lock that serializes every request touching it."""
    engine: GameEngine
    lock: threading.Lock = field(default_factory=threading.Lock)


# In-memory sessions, oldest first; a renderer drives one through /api/tick.
# SESSIONS_LOCK guards the registry only, each HostedGame.lock guards its engine.
SESSIONS: "OrderedDict[str, HostedGame]" = OrderedDict()
SESSIONS_LOCK = threading.Lock()


def state_to_json(engine: GameEngine) -> Dict[str, Any]:
    s = engine.session
    piece = None
    if s.piece is not None:
        piece = {
            "baseCol": s.piece.base_col,
            "primary": list(s.piece.primary),
            "secondary": list(s.piece.secondary),
            "tiers": [s.piece.primary_tier, s.piece.secondary_tier],
        }
    return {
        "phase": s.phase.value,
        # bottom row first, None for empty cells
        "board": [list(row) for row in s.board.cells],
        "visibleRows": s.board.visible_rows,
        "piece": piece,
        "next": list(s.next_tiers),
        "maxTier": s.max_tier,
        "discovered": list(s.discovered),
        "acceptingInput": s.accepting,
        "pending": [d.value for d in s.pending],
        "lost": s.lost,
        "closed": s.closed,
        "piecesPlayed": s.pieces_played,
        "sprites": [
            {"id": sp.sprite_id, "tier": sp.tier, "x": sp.x, "y": sp.y, "alpha": sp.alpha}
            for sp in s.sprites
        ],
    }



def _store(engine: GameEngine) -> Tuple[str, HostedGame]:
    session_id = uuid.uuid4().hex
    hosted = HostedGame(engine)
    evicted: List[HostedGame] = []
    with SESSIONS_LOCK:
        SESSIONS[session_id] = hosted
        while len(SESSIONS) > MAX_SESSIONS:
            evicted.append(SESSIONS.popitem(last=False)[1])
    for old in evicted:
        with old.lock:
            old.engine.teardown()
    return session_id, hosted


def _lookup(body: Dict[str, Any]) -> Tuple[Optional[str], Optional[HostedGame]]:
    session_id = body.get("sessionId")
    if not isinstance(session_id, str):
        return None, None
    with SESSIONS_LOCK:
        return session_id, SESSIONS.get(session_id)


def _discard(session_id: str) -> Optional[HostedGame]:
    with SESSIONS_LOCK:
        return SESSIONS.pop(session_id, None)


def _missing_session(session_id: Optional[str]) -> Any:
    if session_id is None:
        return jsonify({"ok": False, "error": "sessionId required"}), 400
    return jsonify({"ok": False, "error": f"unknown session: {session_id}"}), 404


@app.get("/")
def index() -> Any:
    try:
        cfg = EngineConfig.from_env()
    except ValueError as e:
        return jsonify({"ok": False, "error": f"bad server config: {e}"}), 500
    with SESSIONS_LOCK:
        count = len(SESSIONS)
    return jsonify({
        "ok": True,
        "name": "alchemy",
        "config": {
            "rows": cfg.nb_rows,
            "bufferRows": cfg.board_rows - cfg.nb_rows,
            "cols": cfg.nb_cols,
            "deltaMove": [cfg.delta_move_x, cfg.delta_move_y],
            "deltaAlpha": cfg.delta_alpha,
            "weights": list(cfg.weights),
            "spriteSize": [cfg.spt_width, cfg.spt_height],
        },
        "sessions": count,
    })


@app.post("/api/new")
def api_new() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    seed = body.get("seed", None)
    try:
        overrides = {} if seed is None else {"seed": int(seed)}
        engine = GameEngine(EngineConfig.from_env(**overrides))
    except (TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": f"bad config: {e}"}), 400
    session_id, hosted = _store(engine)
    with hosted.lock:
        return jsonify({
            "ok": True,
            "sessionId": session_id,
            "state": state_to_json(engine),
            "events": [event_to_json(ev) for ev in engine.drain_events()],
        })


@app.post("/api/input")
def api_input() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    session_id, hosted = _lookup(body)
    if hosted is None:
        return _missing_session(session_id)
    try:
        direction = Direction.parse(body.get("direction", ""))
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    with hosted.lock:
        engine = hosted.engine
        accepted = engine.press(direction, repeat=bool(body.get("repeat", False)))
        return jsonify({"ok": True, "accepted": accepted, "phase": engine.phase.value})


@app.post("/api/tick")
def api_tick() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    session_id, hosted = _lookup(body)
    if hosted is None:
        return _missing_session(session_id)
    try:
        count = int(body.get("count", 1))
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "count must be an integer"}), 400
    if not 1 <= count <= MAX_TICKS_PER_CALL:
        return jsonify({"ok": False, "error": f"count must be in 1..{MAX_TICKS_PER_CALL}"}), 400
    with hosted.lock:
        engine = hosted.engine
        try:
            for _ in range(count):
                engine.tick()
        except InvariantError as e:
            # The engine has already torn itself down
            _discard(session_id)
            return jsonify({
                "ok": False,
                "error": f"session halted: {e}",
                "events": [event_to_json(ev) for ev in engine.drain_events()],
            }), 500
        return jsonify({
            "ok": True,
            "state": state_to_json(engine),
            "events": [event_to_json(ev) for ev in engine.drain_events()],
        })


@app.post("/api/state")
def api_state() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    session_id, hosted = _lookup(body)
    if hosted is None:
        return _missing_session(session_id)
    with hosted.lock:
        return jsonify({"ok": True, "state": state_to_json(hosted.engine)})


@app.post("/api/end")
def api_end() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    session_id = body.get("sessionId")
    hosted = _discard(session_id) if isinstance(session_id, str) else None
    if hosted is None:
        return _missing_session(session_id if isinstance(session_id, str) else None)
    with hosted.lock:
        hosted.engine.teardown()
        return jsonify({"ok": True, "events": [event_to_json(ev) for ev in hosted.engine.drain_events()]})


# Entrypoint for "python app.py"
if __name__ == "__main__":
    debug = os.getenv("FLASK_DEBUG", os.getenv("DEBUG", "0")).lower() in ("1", "true", "yes", "on")
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port, debug=debug)
