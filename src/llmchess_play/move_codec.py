"""
Coordinate move tokens exchanged with LLM text ("e2e4").

- encode()/decode(): 4-character <file><rank><file><rank> tokens. decode() is total and
  returns Malformed instead of raising.
- extract_answer(): best-effort pull of an `ANSWER: <token>` line out of a free-text reply.
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional, Union

TOKEN_RE = re.compile(r"^[a-h][1-8][a-h][1-8]$")
SQUARE_RE = re.compile(r"^[a-h][1-8]$")
ANSWER_RE = re.compile(r"ANSWER:\s*\**\s*([a-h][1-8][a-h][1-8])", re.I)


class Squares(NamedTuple):
    from_square: str
    to_square: str


class Malformed(NamedTuple):
    token: str
    reason: str


Decoded = Union[Squares, Malformed]


def encode(from_square: str, to_square: str) -> str:
    """Join two square names into a token. Raises ValueError for invalid squares."""
    for sq in (from_square, to_square):
        if not isinstance(sq, str) or not SQUARE_RE.match(sq.lower()):
            raise ValueError(f"Invalid square: {sq!r}")
    return f"{from_square}{to_square}".lower()


def decode(token) -> Decoded:
    if not isinstance(token, str):
        return Malformed(repr(token), "not_a_string")
    if not token:
        return Malformed(token, "empty")
    if len(token) != 4:
        return Malformed(token, "bad_length")
    lowered = token.lower()
    if not TOKEN_RE.match(lowered):
        return Malformed(token, "bad_format")
    return Squares(lowered[:2], lowered[2:])


def extract_answer(text: Optional[str]) -> Optional[str]:
    """Return the token from the last `ANSWER: xxxx` in text, lowercased, or None."""
    if not text:
        return None
    matches = ANSWER_RE.findall(text)
    if not matches:
        return None
    return matches[-1].lower()


__all__ = ["Squares", "Malformed", "Decoded", "encode", "decode", "extract_answer"]
