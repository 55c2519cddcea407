"""
Prompt builders for agent move requests.

One template per phase, rendered with placeholder substitution:
- INITIAL: ask for one best move, strictly as `ANSWER: <token>`.
- FEEDBACK: same, plus the rejected token that must not be repeated.
- NEGOTIATION: collaborative transcript between two agents; the strict answer format is only
  requested once the first exchange is over.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence

from .session import ConversationTurn, Speaker

SYSTEM = "You are a strong chess player. When asked for a move, decide the best legal move."

ANSWER_FORMAT_LINE = "Output should be exactly: ANSWER: <4-character move>"

INITIAL_TEMPLATE = """Analyze the chess position given in the FEN string: "{FEN}".
Move history: {HISTORY}
Side to move: {SIDE_TO_MOVE}
Suggest a valid chess move in Universal Chess Interface (UCI) format (e.g., 'e2e4', 'g8f6').
Do not use algebraic notation.
{ANSWER_FORMAT} and nothing else."""

FEEDBACK_TEMPLATE = INITIAL_TEMPLATE + """
The previous move "{REJECTED}" was invalid. Do not suggest "{REJECTED}" again.
Ensure that the suggested move follows all chess rules and is legal."""

NEGOTIATION_TEMPLATE = """You are engaged in a collaborative conversation with another advanced chess analysis AI.
FEN: {FEN}
Side to move: {SIDE_TO_MOVE}

Move history:
{HISTORY}

Conversation so far:
{TRANSCRIPT}
{ANSWER_INSTRUCTION}
Provide your detailed reasoning, analysis, and (when appropriate) your final move suggestion."""

NEGOTIATION_ANSWER_INSTRUCTION = """
ONLY when you are completely aligned with your partner, output your final agreed move in the exact format:
ANSWER: <4-character move>
The answer must be strictly in UCI format. If the move is e5, the output should be: ANSWER: e7e5.
Do not use algebraic notation.
"""

PLACEHOLDER_RE = re.compile(r"\{([A-Z_][A-Z0-9_]*)\}")

SPEAKER_LABELS = {
    Speaker.AGENT_ONE: "Agent 1",
    Speaker.AGENT_TWO: "Agent 2",
    Speaker.SYSTEM: "System",
}


class Phase(str, Enum):
    INITIAL = "initial"
    FEEDBACK = "feedback"
    NEGOTIATION = "negotiation"


@dataclass
class NegotiationContext:
    """Extra input for the NEGOTIATION phase."""

    log: Sequence[ConversationTurn] = field(default_factory=list)
    include_answer_format: bool = False


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact.

    Substitution is a single pass, so placeholder-like text inside a value is never expanded.
    """
    return PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template or "")


def render_transcript(log: Sequence[ConversationTurn]) -> str:
    if not log:
        return "(no messages yet)"
    return "\n\n".join(f"{SPEAKER_LABELS[t.speaker]}: {t.text.strip()}" for t in log)


def side_to_move(position: str) -> str:
    fields = position.split()
    return "black" if len(fields) > 1 and fields[1] == "b" else "white"


def build_prompt(position: str, history: Sequence[str], phase: Phase, extra: Optional[object] = None) -> str:
    """Pure function of (position, history, phase, extra) to prompt text.

    extra is the rejected token for FEEDBACK and a NegotiationContext for NEGOTIATION.
    """
    values = {
        "FEN": position,
        "HISTORY": ", ".join(history) if history else "(none)",
        "SIDE_TO_MOVE": side_to_move(position),
        "ANSWER_FORMAT": ANSWER_FORMAT_LINE,
    }
    if phase == Phase.INITIAL:
        return render_custom_prompt(INITIAL_TEMPLATE, values)
    if phase == Phase.FEEDBACK:
        values["REJECTED"] = str(extra or "")
        return render_custom_prompt(FEEDBACK_TEMPLATE, values)
    if phase == Phase.NEGOTIATION:
        ctx = extra if isinstance(extra, NegotiationContext) else NegotiationContext()
        values["TRANSCRIPT"] = render_transcript(ctx.log)
        values["ANSWER_INSTRUCTION"] = NEGOTIATION_ANSWER_INSTRUCTION if ctx.include_answer_format else ""
        return render_custom_prompt(NEGOTIATION_TEMPLATE, values)
    raise ValueError(f"Unknown prompt phase: {phase!r}")
