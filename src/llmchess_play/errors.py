"""
Error taxonomy for move resolution and session handling.

MalformedToken and IllegalMove are recovered locally by the resolver loops
(re-prompt with feedback). Exhaustion is reported as a result value
(resolver.Exhausted), not raised. Everything else propagates to the caller, which
decides what the user sees.
"""
from __future__ import annotations


class ChessPlayError(Exception):
    """Base class; `code` is the short identifier used in API payloads."""

    code = "error"


class MalformedToken(ChessPlayError):
    code = "malformed_token"

    def __init__(self, token: str, reason: str = "bad_format"):
        super().__init__(f"Malformed move token {token!r}: {reason}")
        self.token = token
        self.reason = reason


class IllegalMove(ChessPlayError):
    code = "illegal_move"

    def __init__(self, token: str):
        super().__init__(f"Illegal move {token!r}")
        self.token = token


class ProviderError(ChessPlayError):
    code = "provider_error"

    def __init__(self, provider: str, message: str, status: int | None = None):
        super().__init__(f"{provider}: {message}" + (f" (status {status})" if status else ""))
        self.provider = provider
        self.status = status


class MissingCredential(ChessPlayError):
    code = "missing_credential"


class InvalidSetup(ChessPlayError):
    code = "invalid_setup"


class NotYourTurn(ChessPlayError):
    code = "not_your_turn"


class SessionClosed(ChessPlayError):
    code = "session_closed"


class SessionBusy(ChessPlayError):
    code = "session_busy"
