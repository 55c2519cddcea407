"""
Two-agent "thinking mode" negotiation.

NegotiationRound is the state machine for one round (no I/O, easy to unit-test):

    IDLE -> AGENT_ONE -> AGENT_TWO -> RESOLVED
                ^            |
                +------------+   (system corrective turn appended)

Consensus, in priority order:
  1. agent 1's ANSWER token is legal  -> resolve at once, agent 2 is not asked;
  2. agent 2's ANSWER token is legal;
  3. past the first exchange, both agents gave the same token and it applies;
  4. otherwise a system message asks for a legal ANSWER and agent 1 goes again.

ConversationOrchestrator drives a round against the provider client and yields each appended
turn as it happens.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional

import chess

from .config import SETTINGS
from .errors import InvalidSetup, MissingCredential, SessionClosed
from .llm_client import CompletionClient
from .move_codec import Squares, decode, extract_answer
from .prompting import NegotiationContext, Phase, build_prompt
from .session import ConversationTurn, GameSession, SessionStatus, Speaker
from .session_manager import SessionManager

CORRECTIVE_MESSAGE = (
    "No legal move has been agreed yet. Agent 1, respond with a legal move in the exact format "
    "ANSWER: <4-character move> (UCI, e.g. ANSWER: e7e5)."
)


class RoundPhase(str, Enum):
    IDLE = "idle"
    AGENT_ONE = "agent-one-turn"
    AGENT_TWO = "agent-two-turn"
    RESOLVED = "resolved"


class NegotiationRound:
    def __init__(self, log: Optional[List[ConversationTurn]] = None):
        self.log: List[ConversationTurn] = log if log is not None else []
        self.phase = RoundPhase.IDLE
        self.exchange = 0
        self.accepted: Optional[str] = None
        self._tokens: Dict[Speaker, Optional[str]] = {}

    @property
    def include_answer_format(self) -> bool:
        # First exchange is open reasoning; the strict format comes afterwards
        return self.exchange > 0

    @property
    def speaker(self) -> Speaker:
        if self.phase == RoundPhase.AGENT_ONE:
            return Speaker.AGENT_ONE
        if self.phase == RoundPhase.AGENT_TWO:
            return Speaker.AGENT_TWO
        raise RuntimeError(f"No agent turn in phase {self.phase.value}")

    def begin(self) -> None:
        if self.phase != RoundPhase.IDLE:
            raise RuntimeError(f"Round already started (phase {self.phase.value})")
        self.phase = RoundPhase.AGENT_ONE
        self._tokens = {}

    def prompt_for(self, position: str, history: List[str]) -> str:
        ctx = NegotiationContext(log=list(self.log), include_answer_format=self.include_answer_format)
        return build_prompt(position, history, Phase.NEGOTIATION, ctx)

    def record(self, text: str) -> Optional[str]:
        """Append the current agent's reply and return its ANSWER token, if any."""
        speaker = self.speaker
        self.log.append(ConversationTurn(speaker, (text or "").strip()))
        token = extract_answer(text)
        self._tokens[speaker] = token
        return token

    def settle(self, is_legal: Callable[[str], bool]) -> Optional[str]:
        """Apply the consensus rule after the current agent's turn; returns the accepted token."""
        if self.phase == RoundPhase.AGENT_ONE:
            token = self._tokens.get(Speaker.AGENT_ONE)
            if token and is_legal(token):
                return self._resolve(token)
            self.phase = RoundPhase.AGENT_TWO
            return None
        if self.phase != RoundPhase.AGENT_TWO:
            raise RuntimeError(f"Nothing to settle in phase {self.phase.value}")
        first = self._tokens.get(Speaker.AGENT_ONE)
        second = self._tokens.get(Speaker.AGENT_TWO)
        if second and is_legal(second):
            return self._resolve(second)
        if self.exchange > 0 and first and second and first == second and is_legal(first):
            return self._resolve(first)
        self.log.append(ConversationTurn(Speaker.SYSTEM, CORRECTIVE_MESSAGE))
        self.exchange += 1
        self._tokens = {}
        self.phase = RoundPhase.AGENT_ONE
        return None

    def _resolve(self, token: str) -> str:
        self.accepted = token
        self.phase = RoundPhase.RESOLVED
        return token

    def finish(self) -> None:
        self.phase = RoundPhase.IDLE


@dataclass
class ConversationUpdate:
    kind: str  # "turn" | "resolved" | "exhausted"
    turn: Optional[ConversationTurn] = None
    token: Optional[str] = None
    san: Optional[str] = None
    move: Optional[chess.Move] = None
    rounds: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "turn": self.turn.to_dict() if self.turn else None,
            "token": self.token,
            "san": self.san,
            "rounds": self.rounds,
        }


class ConversationOrchestrator:
    def __init__(self, client: CompletionClient, manager: SessionManager,
                 max_rounds: Optional[int] = -1, delay_s: Optional[float] = None):
        self.client = client
        self.manager = manager
        # -1 means "use settings"; None or 0 means no bound
        self.max_rounds = SETTINGS.negotiation_max_rounds if max_rounds == -1 else (max_rounds or None)
        self.delay_s = SETTINGS.negotiation_delay_s if delay_s is None else delay_s
        self.log = logging.getLogger("ConversationOrchestrator")

    @staticmethod
    def _cancelled(cancel: Optional[threading.Event]) -> bool:
        return bool(cancel and cancel.is_set())

    def _pairs(self, session: GameSession) -> Dict[Speaker, tuple[str, str]]:
        cfg = session.agent_config
        if cfg is None:
            raise InvalidSetup(f"Session {session.id} has no agent seat")
        pairs = {s: cfg.pair_for(s) for s in (Speaker.AGENT_ONE, Speaker.AGENT_TWO)}
        for provider, credential in pairs.values():
            if not credential:
                raise MissingCredential(f"No API key provided for LLM provider {provider!r}")
        return pairs

    async def run(self, session: GameSession, cancel: Optional[threading.Event] = None) -> AsyncIterator[ConversationUpdate]:
        """Run one negotiation round, yielding every appended turn and finally the outcome.

        Each call starts a fresh round. Nothing is applied unless the round resolves.
        """
        if session.status == SessionStatus.TERMINAL:
            raise SessionClosed(f"Session {session.id} is over")
        pairs = self._pairs(session)
        engine = session.engine

        def is_legal(token: str) -> bool:
            decoded = decode(token)
            return isinstance(decoded, Squares) and engine.is_legal(decoded.from_square, decoded.to_square)

        session.conversation_log = []
        rnd = NegotiationRound(session.conversation_log)
        rnd.begin()
        self.log.info("Negotiation started for session %s", session.id)
        while True:
            speaker = rnd.speaker
            prompt = rnd.prompt_for(session.position, session.history)
            if self._cancelled(cancel):
                self.log.info("Negotiation for session %s cancelled", session.id)
                return
            provider, credential = pairs[speaker]
            raw = await self.client.complete(provider, credential, prompt)
            if self._cancelled(cancel):
                self.log.info("Negotiation for session %s cancelled", session.id)
                return
            token = rnd.record(raw)
            self.log.debug("%s (exchange %d) token=%s", speaker.value, rnd.exchange, token)
            yield ConversationUpdate("turn", turn=rnd.log[-1], token=token, rounds=rnd.exchange)

            log_size = len(rnd.log)
            accepted = rnd.settle(is_legal)
            if accepted:
                squares = decode(accepted)
                mv = engine.apply_move(squares.from_square, squares.to_square)
                san = engine.history_notation()[-1]
                rounds = rnd.exchange + 1
                self.manager.apply_accepted_move(session, mv)
                rnd.finish()
                self.log.info("Negotiation for session %s resolved on %s (%s) after %d exchange(s)", session.id, accepted, san, rounds)
                yield ConversationUpdate("resolved", token=accepted, san=san, move=mv, rounds=rounds)
                return
            if len(rnd.log) > log_size:
                yield ConversationUpdate("turn", turn=rnd.log[-1], rounds=rnd.exchange)
                if self.max_rounds and rnd.exchange >= self.max_rounds:
                    self.log.warning("Negotiation for session %s gave up after %d exchange(s)", session.id, rnd.exchange)
                    yield ConversationUpdate("exhausted", rounds=rnd.exchange)
                    return
                if self.delay_s:
                    await asyncio.sleep(self.delay_s)
