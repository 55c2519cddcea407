"""
Game session data model and snapshot conversion.

GameSession is the in-memory record of one live game. Its snapshot (plain JSON dict) is what
the store persists; the conversation log and the owned Referee never go into a snapshot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import chess

from .referee import Referee

STATUS_IN_PROGRESS_LABEL = "Game in Progress"


class Seat(str, Enum):
    FIRST = "w"
    SECOND = "b"

    @classmethod
    def from_color(cls, color: chess.Color) -> "Seat":
        return cls.FIRST if color == chess.WHITE else cls.SECOND


class GameMode(str, Enum):
    HUMAN_VS_HUMAN = "human"
    HUMAN_VS_AGENT = "llm"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    TERMINAL = "terminal"


class Speaker(str, Enum):
    AGENT_ONE = "agent-1"
    AGENT_TWO = "agent-2"
    SYSTEM = "system"


@dataclass
class ConversationTurn:
    speaker: Speaker
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"speaker": self.speaker.value, "text": self.text}


@dataclass
class AgentConfig:
    """Provider/credential for the agent seat; a second pair is used in thinking mode."""

    provider: str
    credential: str = ""
    thinking_mode: bool = False
    provider_2: Optional[str] = None
    credential_2: Optional[str] = None

    def pair_for(self, speaker: Speaker) -> tuple[str, str]:
        if speaker == Speaker.AGENT_TWO:
            # Agent 2 falls back to agent 1's pair when not configured separately
            if self.provider_2:
                return self.provider_2, self.credential_2 or ""
            return self.provider, self.credential
        return self.provider, self.credential


# The agent plays the second seat (black) in human-vs-agent games
AGENT_SEAT = Seat.SECOND


@dataclass
class GameSession:
    id: str
    position: str = chess.STARTING_FEN
    history: list[str] = field(default_factory=list)
    turn_owner: Seat = Seat.FIRST
    mode: GameMode = GameMode.HUMAN_VS_HUMAN
    players: dict[str, str] = field(default_factory=lambda: {"white": "", "black": ""})
    agent_config: Optional[AgentConfig] = None
    conversation_log: list[ConversationTurn] = field(default_factory=list)
    status: SessionStatus = SessionStatus.IN_PROGRESS
    date_played: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    engine: Referee = field(default_factory=Referee, repr=False, compare=False)

    @property
    def thinking_mode(self) -> bool:
        return bool(self.agent_config and self.agent_config.thinking_mode)

    def is_agent_seat(self, seat: Seat) -> bool:
        return self.mode == GameMode.HUMAN_VS_AGENT and seat == AGENT_SEAT

    def agent_to_move(self) -> bool:
        return self.status == SessionStatus.IN_PROGRESS and self.is_agent_seat(self.turn_owner)

    def player_to_move(self) -> str:
        return self.players["white"] if self.turn_owner == Seat.FIRST else self.players["black"]

    # ---------------- Snapshot -----------------
    def to_snapshot(self) -> dict[str, Any]:
        snap: dict[str, Any] = {
            "id": self.id,
            "position": self.position,
            "history": list(self.history),
            "status": STATUS_IN_PROGRESS_LABEL,
            "turn": self.turn_owner.value,
            "mode": self.mode.value,
            "players": {"white": self.players.get("white", ""), "black": self.players.get("black", "")},
            "datePlayed": self.date_played,
        }
        cfg = self.agent_config
        if cfg:
            snap["agentProvider"] = cfg.provider
            snap["agentCredential"] = cfg.credential
            snap["thinkingMode"] = cfg.thinking_mode
            if cfg.provider_2:
                snap["agentProvider2"] = cfg.provider_2
                snap["agentCredential2"] = cfg.credential_2 or ""
        return snap

    @classmethod
    def from_snapshot(cls, snap: dict[str, Any]) -> "GameSession":
        """Rebuild a session (with a fresh Referee loaded from the saved FEN)."""
        agent_config = None
        if snap.get("agentProvider"):
            agent_config = AgentConfig(
                provider=snap["agentProvider"],
                credential=snap.get("agentCredential") or "",
                thinking_mode=bool(snap.get("thinkingMode", False)),
                provider_2=snap.get("agentProvider2") or None,
                credential_2=snap.get("agentCredential2") or None,
            )
        history = list(snap.get("history") or [])
        engine = Referee(snap["position"], history)
        players = snap.get("players") or {}
        return cls(
            id=str(snap["id"]),
            position=engine.position(),
            history=history,
            turn_owner=Seat.from_color(engine.turn()),
            mode=GameMode(snap.get("mode", GameMode.HUMAN_VS_HUMAN.value)),
            players={"white": players.get("white", ""), "black": players.get("black", "")},
            agent_config=agent_config,
            date_played=snap.get("datePlayed") or datetime.now(timezone.utc).isoformat(),
            engine=engine,
        )
