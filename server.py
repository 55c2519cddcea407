"""
Minimal Flask API that wires the llmchess_play service into a UI.

Endpoints:
- GET    /api/games                      -> saved (paused) games, oldest first
- POST   /api/games                      -> start a new game or resume a saved one
- GET    /api/games/<id>                 -> live game state
- POST   /api/games/<id>/move            -> submit a human move; the agent replies when it is its turn
- POST   /api/games/<id>/agent-move      -> ask the agent seat to move now
- GET    /api/games/<id>/conversation    -> thinking-mode log of the round in progress
- POST   /api/games/<id>/pause           -> save and unload the game
- DELETE /api/games/<id>                 -> end the game (its saved record is removed)
- DELETE /api/saved-games/<id>           -> drop a paused game from the saved list

Live games are kept in memory; the saved-games file always reflects the last applied move.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import aclosing
from typing import Dict, Optional

from flask import Flask, jsonify, request

from llmchess_play.config import SETTINGS
from llmchess_play.errors import ChessPlayError, InvalidSetup, MissingCredential, NotYourTurn, ProviderError, SessionBusy, SessionClosed
from llmchess_play.llm_client import DEFAULT_PROVIDER
from llmchess_play.resolver import Accepted, Exhausted
from llmchess_play.service import GameService, Rejected
from llmchess_play.session import AgentConfig, GameMode, GameSession, SessionStatus
from llmchess_play.session_manager import SessionManager
from llmchess_play.store import JsonSessionStore

logging.basicConfig(level=getattr(logging, SETTINGS.log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = Flask(__name__)
games_lock = threading.Lock()

SERVICE = GameService(SessionManager(JsonSessionStore(SETTINGS.store_path)))
LIVE_GAMES: Dict[str, dict] = {}
LIVE_GAME_TTL_S = 3600  # drop inactive games from memory after an hour; saved state is on disk
AGENT_REPLY_DELAY_S = SETTINGS.agent_reply_delay_s

ERROR_STATUS = {
    NotYourTurn: 409,
    SessionBusy: 409,
    SessionClosed: 409,
    InvalidSetup: 400,
    MissingCredential: 400,
    ProviderError: 502,
}


def _cleanup_stale_games(max_age_s: int = LIVE_GAME_TTL_S):
    now = time.time()
    with games_lock:
        expired = [gid for gid, entry in LIVE_GAMES.items() if now - entry.get("updated_at", now) > max_age_s]
        for gid in expired:
            LIVE_GAMES.pop(gid, None)


def _register(session: GameSession) -> dict:
    entry = {"session": session, "lock": threading.Lock(), "updated_at": time.time()}
    with games_lock:
        LIVE_GAMES[session.id] = entry
    return entry


def _live(game_id: str) -> Optional[dict]:
    with games_lock:
        return LIVE_GAMES.get(game_id)


def _agent_config_from_payload(data: dict) -> Optional[AgentConfig]:
    provider = data.get("llmProvider") or DEFAULT_PROVIDER
    return AgentConfig(
        provider=provider,
        credential=(data.get("apiKey") or "").strip(),
        thinking_mode=bool(data.get("thinkingMode", False)),
        provider_2=data.get("llmProvider2") or None,
        credential_2=(data.get("apiKey2") or "").strip() or None,
    )


def _serialize(session: GameSession) -> dict:
    engine = session.engine
    return {
        "id": session.id,
        "position": session.position,
        "history": list(session.history),
        "turn": session.turn_owner.value,
        "player_to_move": session.player_to_move(),
        "mode": session.mode.value,
        "players": dict(session.players),
        "thinking_mode": session.thinking_mode,
        "provider": session.agent_config.provider if session.agent_config else None,
        "status": session.status.value,
        "result": engine.result(),
        "termination_reason": engine.termination_reason(),
        "captured": engine.captured_pieces(),
        "conversation": [t.to_dict() for t in session.conversation_log],
        "date_played": session.date_played,
    }


def _public_snapshot(snap: dict) -> dict:
    """Saved snapshot without credentials."""
    return {k: v for k, v in snap.items() if k not in ("agentCredential", "agentCredential2")}


def _outcome_dict(outcome) -> dict:
    if isinstance(outcome, Accepted):
        return {"status": "accepted", "san": outcome.san, "uci": outcome.move.uci(), "attempts": outcome.attempts}
    if isinstance(outcome, Rejected):
        return {"status": "rejected", "reason": outcome.reason, "detail": str(outcome.error)}
    if isinstance(outcome, Exhausted):
        return {"status": "exhausted", "attempts": outcome.attempts, "rejected": outcome.rejected_tokens}
    return {"status": "unknown"}


async def _agent_reply(session: GameSession, delay_s: float = 0.0) -> dict:
    """One agent move: a negotiation round in thinking mode, a single-agent resolution otherwise."""
    if delay_s:
        await asyncio.sleep(delay_s)
    if session.thinking_mode:
        async with aclosing(SERVICE.run_negotiation(session)) as stream:
            updates = [u async for u in stream]
        final = updates[-1] if updates else None
        return {
            "status": "accepted" if final and final.kind == "resolved" else "exhausted",
            "san": final.san if final else None,
            "uci": final.move.uci() if final and final.move else None,
            "rounds": final.rounds if final else 0,
            "updates": [u.to_dict() for u in updates],
        }
    return _outcome_dict(await SERVICE.play_agent_turn(session))


@app.errorhandler(ChessPlayError)
def handle_chess_error(exc: ChessPlayError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    if status >= 500:
        logging.error("Provider failure: %s", exc)
    return jsonify({"error": exc.code, "detail": str(exc)}), status


@app.route("/api/games", methods=["GET"])
def list_saved_games():
    return jsonify([_public_snapshot(s) for s in SERVICE.manager.saved_games()])


@app.route("/api/games", methods=["POST"])
def create_game():
    """Start a new game, or resume the saved game named by `resume`."""
    _cleanup_stale_games()
    data = request.get_json(force=True) or {}
    resume_id = data.get("resume") or data.get("id")
    mode_raw = str(data.get("mode", GameMode.HUMAN_VS_HUMAN.value)).lower()
    try:
        mode = GameMode(mode_raw)
    except ValueError:
        return jsonify({"error": "invalid_setup", "detail": f"unknown mode {mode_raw!r}"}), 400
    players = {"white": data.get("playerWhite", ""), "black": data.get("playerBlack", "")}
    agent_config = _agent_config_from_payload(data) if mode == GameMode.HUMAN_VS_AGENT else None
    session = SERVICE.manager.create_or_resume(resume_id, players=players, mode=mode, agent_config=agent_config)
    entry = _register(session)

    agent = None
    if session.agent_to_move():
        with entry["lock"]:
            agent = asyncio.run(_agent_reply(session))
    body = _serialize(session)
    body["agent"] = agent
    return jsonify(body)


@app.route("/api/games/<game_id>", methods=["GET"])
def get_game(game_id: str):
    entry = _live(game_id)
    if not entry:
        return jsonify({"error": "not found"}), 404
    return jsonify(_serialize(entry["session"]))


@app.route("/api/games/<game_id>/move", methods=["POST"])
def game_move(game_id: str):
    _cleanup_stale_games()
    entry = _live(game_id)
    if not entry:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(force=True) or {}
    from_square = (data.get("from") or "").strip()
    to_square = (data.get("to") or "").strip()
    if not from_square or not to_square:
        return jsonify({"error": "from and to are required"}), 400

    session: GameSession = entry["session"]
    with entry["lock"]:
        outcome = asyncio.run(SERVICE.resolve_move(session, from_square, to_square))
        entry["updated_at"] = time.time()
        agent = None
        if isinstance(outcome, Accepted) and session.agent_to_move():
            agent = asyncio.run(_agent_reply(session, AGENT_REPLY_DELAY_S))
    body = _serialize(session)
    body["move"] = _outcome_dict(outcome)
    body["agent"] = agent
    status = 200 if isinstance(outcome, Accepted) else 422
    return jsonify(body), status


@app.route("/api/games/<game_id>/agent-move", methods=["POST"])
def agent_move(game_id: str):
    entry = _live(game_id)
    if not entry:
        return jsonify({"error": "not found"}), 404
    session: GameSession = entry["session"]
    with entry["lock"]:
        agent = asyncio.run(_agent_reply(session))
        entry["updated_at"] = time.time()
    body = _serialize(session)
    body["agent"] = agent
    return jsonify(body)


@app.route("/api/games/<game_id>/conversation", methods=["GET"])
def game_conversation(game_id: str):
    entry = _live(game_id)
    if not entry:
        return jsonify({"error": "not found"}), 404
    return jsonify([t.to_dict() for t in entry["session"].conversation_log])


@app.route("/api/games/<game_id>/pause", methods=["POST"])
def pause_game(game_id: str):
    entry = _live(game_id)
    if not entry:
        return jsonify({"error": "not found"}), 404
    with entry["lock"]:
        snap = SERVICE.pause(entry["session"])
    with games_lock:
        LIVE_GAMES.pop(game_id, None)
    return jsonify(_public_snapshot(snap))


@app.route("/api/games/<game_id>", methods=["DELETE"])
def end_game(game_id: str):
    with games_lock:
        entry = LIVE_GAMES.pop(game_id, None)
    if entry:
        with entry["lock"]:
            SERVICE.end(entry["session"])
    else:
        SERVICE.manager.delete_saved(game_id)
    return jsonify({"ended": game_id, "status": SessionStatus.TERMINAL.value})


@app.route("/api/saved-games/<game_id>", methods=["DELETE"])
def delete_saved_game(game_id: str):
    if not SERVICE.manager.delete_saved(game_id):
        return jsonify({"error": "not found"}), 404
    return jsonify({"deleted": game_id})


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    resp = app.make_response(("", 204))
    resp.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    resp.headers["Access-Control-Allow-Credentials"] = "true"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
    return resp


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8000, debug=True)
