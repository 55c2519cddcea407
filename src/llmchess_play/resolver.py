"""
Single-agent move resolution.

- resolve_self_move(): the agent seat proposes a move; malformed or illegal proposals are fed back
  with a corrective prompt, up to max_attempts provider calls.
- correct_human_move(): a human move is tried as entered; if rejected, the agent proposes a
  corrected move in its place using the same feedback loop (the human try counts as attempt 1).

Accepted moves go through SessionManager.apply_accepted_move exactly once. Exhausted leaves the
session and its Referee untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

import chess

from .config import SETTINGS
from .errors import ChessPlayError, IllegalMove, InvalidSetup, MalformedToken, MissingCredential, SessionClosed
from .llm_client import CompletionClient
from .move_codec import Malformed, decode, extract_answer
from .prompting import Phase, build_prompt
from .session import GameSession, SessionStatus, Speaker
from .session_manager import SessionManager


@dataclass
class Accepted:
    move: chess.Move
    san: str
    token: str
    attempts: int = 1


@dataclass
class Exhausted:
    attempts: int
    rejections: List[ChessPlayError] = field(default_factory=list)

    @property
    def rejected_tokens(self) -> List[str]:
        return [r.token for r in self.rejections]


Resolution = Union[Accepted, Exhausted]


class MoveResolver:
    def __init__(self, client: CompletionClient, manager: SessionManager, max_attempts: int | None = None):
        self.client = client
        self.manager = manager
        self.max_attempts = max_attempts or SETTINGS.max_attempts
        self.log = logging.getLogger("MoveResolver")

    # ---------------- Entry points -----------------
    async def resolve_self_move(self, session: GameSession) -> Resolution:
        self._check_open(session)
        provider, credential = self._agent_pair(session)
        rejections: List[ChessPlayError] = []
        for attempt in range(1, self.max_attempts + 1):
            if rejections:
                prompt = build_prompt(session.position, session.history, Phase.FEEDBACK, rejections[-1].token)
            else:
                prompt = build_prompt(session.position, session.history, Phase.INITIAL)
            raw = await self.client.complete(provider, credential, prompt)
            result = self._try_token(session, extract_answer(raw) or raw.strip(), attempt)
            if isinstance(result, Accepted):
                return result
            rejections.append(result)
        self.log.error("Agent failed to provide a legal move after %d attempts (session %s)", self.max_attempts, session.id)
        return Exhausted(self.max_attempts, rejections)

    async def correct_human_move(self, session: GameSession, from_square: str, to_square: str) -> Resolution:
        self._check_open(session)
        first = self._try_token(session, f"{from_square}{to_square}", 1)
        if isinstance(first, Accepted):
            return first
        provider, credential = self._agent_pair(session)
        rejections: List[ChessPlayError] = [first]
        for attempt in range(2, self.max_attempts + 1):
            self.log.info("Requesting correction from agent (attempt %d) for session %s", attempt, session.id)
            prompt = build_prompt(session.position, session.history, Phase.FEEDBACK, rejections[-1].token)
            raw = await self.client.complete(provider, credential, prompt)
            result = self._try_token(session, extract_answer(raw) or raw.strip(), attempt)
            if isinstance(result, Accepted):
                return result
            rejections.append(result)
        self.log.error("Move correction failed after %d attempts (session %s)", self.max_attempts, session.id)
        return Exhausted(self.max_attempts, rejections)

    # ---------------- Helpers -----------------
    def _check_open(self, session: GameSession) -> None:
        if session.status == SessionStatus.TERMINAL:
            raise SessionClosed(f"Session {session.id} is over")

    @staticmethod
    def _agent_pair(session: GameSession) -> tuple[str, str]:
        cfg = session.agent_config
        if cfg is None:
            raise InvalidSetup(f"Session {session.id} has no agent seat")
        provider, credential = cfg.pair_for(Speaker.AGENT_ONE)
        if not credential:
            raise MissingCredential(f"No API key provided for LLM provider {provider!r}")
        return provider, credential

    def _try_token(self, session: GameSession, token: str, attempt: int) -> Union[Accepted, ChessPlayError]:
        """Decode and apply one proposal. Returns Accepted, or the rejection (not raised)."""
        decoded = decode(token)
        if isinstance(decoded, Malformed):
            self.log.warning("Attempt %d: malformed token %r (%s)", attempt, token[:40], decoded.reason)
            return MalformedToken(token[:20], decoded.reason)
        mv = session.engine.apply_move(decoded.from_square, decoded.to_square)
        if mv is None:
            self.log.warning("Attempt %d: illegal move %s", attempt, token)
            return IllegalMove(token.lower())
        san = session.engine.history_notation()[-1]
        self.manager.apply_accepted_move(session, mv)
        self.log.info("Attempt %d: accepted %s (%s) for session %s", attempt, token, san, session.id)
        return Accepted(move=mv, san=san, token=mv.uci()[:4], attempts=attempt)
