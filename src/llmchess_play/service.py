"""
GameService: the surface the presentation layer talks to.

- resolve_move(): a human move, tried as entered; in human-vs-agent games with correction
  assistance on, rejected moves are handed to the agent for a corrected proposal.
- play_agent_turn(): single-agent move for the agent seat.
- run_negotiation(): thinking-mode round as an async stream of ConversationUpdate.
- pause()/end(): save the snapshot / finish the game and drop its record.

Turn ownership is checked here, and only one resolution may run per session at a time.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Union

from .config import SETTINGS
from .errors import ChessPlayError, IllegalMove, MalformedToken, NotYourTurn, SessionBusy, SessionClosed
from .llm_client import CompletionClient, ProviderClient
from .move_codec import Malformed, decode
from .negotiation import ConversationOrchestrator, ConversationUpdate
from .resolver import Accepted, Exhausted, MoveResolver
from .session import GameMode, GameSession, SessionStatus
from .session_manager import SessionManager


@dataclass
class Rejected:
    error: ChessPlayError

    @property
    def reason(self) -> str:
        return self.error.code


MoveOutcome = Union[Accepted, Rejected, Exhausted]


class GameService:
    def __init__(
        self,
        manager: SessionManager,
        client: Optional[CompletionClient] = None,
        correction_assist: Optional[bool] = None,
        resolver: Optional[MoveResolver] = None,
        orchestrator: Optional[ConversationOrchestrator] = None,
    ):
        self.manager = manager
        self.client = client or ProviderClient()
        self.correction_assist = SETTINGS.correction_assist if correction_assist is None else correction_assist
        self.resolver = resolver or MoveResolver(self.client, manager)
        self.orchestrator = orchestrator or ConversationOrchestrator(self.client, manager)
        self.log = logging.getLogger("GameService")
        self._busy: set[str] = set()
        self._busy_lock = threading.Lock()

    # ---------------- Guards -----------------
    def _acquire(self, session: GameSession) -> None:
        with self._busy_lock:
            if session.id in self._busy:
                raise SessionBusy(f"A move is already being resolved for session {session.id}")
            self._busy.add(session.id)

    def _release(self, session: GameSession) -> None:
        with self._busy_lock:
            self._busy.discard(session.id)

    @contextmanager
    def _exclusive(self, session: GameSession):
        self._acquire(session)
        try:
            yield
        finally:
            self._release(session)

    @staticmethod
    def _check_open(session: GameSession) -> None:
        if session.status == SessionStatus.TERMINAL:
            raise SessionClosed(f"Session {session.id} is over")

    # ---------------- Moves -----------------
    async def resolve_move(self, session: GameSession, from_square: str, to_square: str) -> MoveOutcome:
        """Apply a human move for the seat to move."""
        self._check_open(session)
        if session.agent_to_move():
            raise NotYourTurn(f"It is the agent's turn in session {session.id}")
        with self._exclusive(session):
            if session.mode == GameMode.HUMAN_VS_AGENT and self.correction_assist:
                return await self.resolver.correct_human_move(session, from_square, to_square)
            token = f"{from_square}{to_square}"
            decoded = decode(token)
            if isinstance(decoded, Malformed):
                return Rejected(MalformedToken(token, decoded.reason))
            mv = session.engine.apply_move(decoded.from_square, decoded.to_square)
            if mv is None:
                self.log.info("Rejected illegal move %s in session %s", token, session.id)
                return Rejected(IllegalMove(token))
            san = session.engine.history_notation()[-1]
            self.manager.apply_accepted_move(session, mv)
            return Accepted(move=mv, san=san, token=token.lower())

    async def play_agent_turn(self, session: GameSession) -> Union[Accepted, Exhausted]:
        self._check_open(session)
        if not session.agent_to_move():
            raise NotYourTurn(f"It is not the agent's turn in session {session.id}")
        with self._exclusive(session):
            return await self.resolver.resolve_self_move(session)

    async def run_negotiation(self, session: GameSession, cancel: Optional[threading.Event] = None) -> AsyncIterator[ConversationUpdate]:
        self._check_open(session)
        if not session.agent_to_move():
            raise NotYourTurn(f"It is not the agent's turn in session {session.id}")
        self._acquire(session)
        held = True
        try:
            async for update in self.orchestrator.run(session, cancel=cancel):
                if held and update.kind in ("resolved", "exhausted"):
                    # Round is over; the session is free even if the consumer stops iterating here
                    self._release(session)
                    held = False
                yield update
        finally:
            if held:
                self._release(session)

    # ---------------- Lifecycle -----------------
    def pause(self, session: GameSession) -> Dict[str, Any]:
        return self.manager.pause(session)

    def end(self, session: GameSession) -> None:
        self.manager.terminate(session)
