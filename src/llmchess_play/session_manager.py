"""
Session state manager: the single writer of GameSession records.

- create_or_resume(): restore a saved snapshot by id or start a fresh, validated session.
- apply_accepted_move(): sync position/history/turn from the session's Referee after a move was
  played on it, then persist (or delete the record once the game is over).
- pause()/terminate(): explicit save and explicit end.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import chess

from .errors import InvalidSetup, MissingCredential, SessionClosed
from .session import AgentConfig, GameMode, GameSession, Seat, SessionStatus
from .store import JsonSessionStore

DEFAULT_AGENT_NAME = "LLM"


def new_session_id() -> str:
    return str(int(time.time() * 1000))


def validate_setup(players: Dict[str, str], mode: GameMode, agent_config: Optional[AgentConfig]) -> Dict[str, str]:
    """Check player names and agent credentials; returns the normalized player names."""
    white = (players.get("white") or "").strip()
    black = (players.get("black") or "").strip()
    if not white:
        raise InvalidSetup("Player (White) name is required.")
    if mode == GameMode.HUMAN_VS_HUMAN:
        if not black or black == white:
            raise InvalidSetup("Player (Black) name is required and must be different.")
        return {"white": white, "black": black}
    if agent_config is None or not agent_config.provider:
        raise InvalidSetup("An LLM provider is required for a game against an agent.")
    if not agent_config.credential.strip():
        raise MissingCredential("API key is required for the selected LLM provider.")
    if agent_config.thinking_mode and agent_config.provider_2 and not (agent_config.credential_2 or "").strip():
        raise MissingCredential("API key is required for the second LLM provider.")
    return {"white": white, "black": black or DEFAULT_AGENT_NAME}


class SessionManager:
    def __init__(self, store: JsonSessionStore):
        self.store = store
        self.log = logging.getLogger("SessionManager")

    def create_or_resume(
        self,
        session_id: Optional[str] = None,
        players: Optional[Dict[str, str]] = None,
        mode: GameMode = GameMode.HUMAN_VS_HUMAN,
        agent_config: Optional[AgentConfig] = None,
    ) -> GameSession:
        """Resume the saved game with this id, or create a fresh session when there is none."""
        if session_id:
            snap = self.store.load(session_id)
            if snap is not None:
                session = GameSession.from_snapshot(snap)
                self.log.info("Resumed session %s (%d moves played)", session.id, len(session.history))
                return session
            self.log.info("No saved game %s; starting a fresh session", session_id)
            if not (players or {}).get("white"):
                raise InvalidSetup(f"No saved game {session_id}; player names are required to start a new one.")
        names = validate_setup(players or {}, mode, agent_config)
        session = GameSession(
            id=session_id or new_session_id(),
            mode=mode,
            players=names,
            agent_config=agent_config if mode == GameMode.HUMAN_VS_AGENT else None,
        )
        self.log.info("Created session %s (%s): %s vs %s", session.id, mode.value, names["white"], names["black"])
        return session

    def apply_accepted_move(self, session: GameSession, move: chess.Move) -> None:
        """Record a move the session's Referee has just played and persist the result."""
        if session.status == SessionStatus.TERMINAL:
            raise SessionClosed(f"Session {session.id} is over")
        engine = session.engine
        if engine.last_move() != move:
            raise ValueError(f"Move {move.uci()} is not the last move played on session {session.id}")
        expected = len(session.history) + 1
        session.position = engine.position()
        session.history = engine.history_notation()
        session.turn_owner = Seat.from_color(engine.turn())
        session.conversation_log.clear()
        if len(session.history) != expected:
            self.log.warning("Session %s history length %d, expected %d", session.id, len(session.history), expected)
        if engine.is_terminal():
            session.status = SessionStatus.TERMINAL
            self.store.remove(session.id)
            self.log.info("Session %s finished: %s (%s)", session.id, engine.result(), engine.termination_reason())
            return
        self.store.save(session.to_snapshot())
        self.log.debug("Session %s: %s played, %s to move", session.id, session.history[-1], session.turn_owner.value)

    def pause(self, session: GameSession) -> Dict[str, Any]:
        if session.status == SessionStatus.TERMINAL:
            raise SessionClosed(f"Session {session.id} is over")
        snap = session.to_snapshot()
        self.store.save(snap)
        self.log.info("Paused session %s", session.id)
        return snap

    def terminate(self, session: GameSession) -> None:
        session.engine.reset()
        session.conversation_log.clear()
        session.status = SessionStatus.TERMINAL
        self.store.remove(session.id)
        self.log.info("Ended session %s", session.id)

    def saved_games(self) -> List[Dict[str, Any]]:
        return self.store.list()

    def delete_saved(self, session_id: str) -> bool:
        return self.store.remove(session_id)
