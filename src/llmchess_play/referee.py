"""
Referee: rules engine for one game session, wrapping a python-chess Board.

- Applies coordinate moves (from/to + optional promotion letter) and reports legality without
  mutating state.
- Tracks SAN history across resumes: a game restored from FEN keeps the SAN list it was saved with.
- Exposes terminal detection, captured pieces, and PGN export.

One Referee per session; nothing here is shared between games.
"""
from __future__ import annotations

import datetime
from typing import Iterable, Optional, Sequence

import chess
import chess.pgn

PROMOTION_PIECES = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}

CAPTURE_GLYPHS = {
    chess.PAWN: ("♙", "♟"),
    chess.KNIGHT: ("♘", "♞"),
    chess.BISHOP: ("♗", "♝"),
    chess.ROOK: ("♖", "♜"),
    chess.QUEEN: ("♕", "♛"),
    chess.KING: ("♔", "♚"),
}


class Referee:
    """Plain chess referee around python-chess Board."""

    def __init__(self, starting_fen: str | None = None, history: Sequence[str] = ()):
        self.board = chess.Board()
        self._prior_history: list[str] = []
        if starting_fen:
            self.load(starting_fen, history)

    # ---------------- State -----------------
    def position(self) -> str:
        return self.board.fen()

    def history_notation(self) -> list[str]:
        """SAN of every move: restored history first, then moves played on this board."""
        replay = self.board.root()
        sans: list[str] = []
        for mv in self.board.move_stack:
            sans.append(replay.san(mv))
            replay.push(mv)
        return self._prior_history + sans

    def turn(self) -> chess.Color:
        return self.board.turn

    def load(self, fen: str, history: Iterable[str] = ()) -> None:
        """Replace the position. Raises ValueError for an invalid FEN."""
        self.board = chess.Board(fen=fen)
        self._prior_history = list(history)

    def reset(self) -> None:
        self.board = chess.Board()
        self._prior_history = []

    # ---------------- Move Application -----------------
    def _build_move(self, from_square: str, to_square: str, promotion: Optional[str]) -> Optional[chess.Move]:
        try:
            src = chess.parse_square(from_square)
            dst = chess.parse_square(to_square)
        except ValueError:
            return None
        piece = self.board.piece_at(src)
        promo = None
        # Promotion letter only matters for a pawn reaching the last rank
        if piece and piece.piece_type == chess.PAWN and chess.square_rank(dst) in (0, 7):
            promo = PROMOTION_PIECES.get((promotion or "q").lower(), chess.QUEEN)
        return chess.Move(src, dst, promotion=promo)

    def is_legal(self, from_square: str, to_square: str, promotion: Optional[str] = "q") -> bool:
        mv = self._build_move(from_square, to_square, promotion)
        return mv is not None and mv in self.board.legal_moves

    def apply_move(self, from_square: str, to_square: str, promotion: Optional[str] = "q") -> Optional[chess.Move]:
        """Play the move if legal and return it; return None (state untouched) otherwise."""
        mv = self._build_move(from_square, to_square, promotion)
        if mv is None or mv not in self.board.legal_moves:
            return None
        self.board.push(mv)
        return mv

    def last_move(self) -> Optional[chess.Move]:
        return self.board.peek() if self.board.move_stack else None

    # ---------------- Status -----------------
    def is_terminal(self) -> bool:
        return self.board.is_game_over()

    def result(self) -> str:
        if self.board.is_game_over():
            return self.board.result()
        return "*"

    def termination_reason(self) -> Optional[str]:
        """Readable reason for a finished board, None while the game goes on."""
        if self.board.is_checkmate():
            return "checkmate"
        if self.board.is_stalemate():
            return "stalemate"
        if self.board.is_insufficient_material():
            return "insufficient_material"
        if self.board.is_seventyfive_moves():
            return "seventyfive_move_rule"
        if self.board.is_fivefold_repetition():
            return "fivefold_repetition"
        if self.board.is_game_over():
            return "game_over"
        return None

    def _game_board(self) -> chess.Board:
        """Board whose move stack covers the whole game.

        A restored game is replayed from the standard start through its saved SAN history when
        that leads to the position it was loaded from; otherwise the loaded position is the root.
        """
        if not self._prior_history:
            return self.board
        replay = chess.Board()
        try:
            for san in self._prior_history:
                replay.push_san(san)
        except ValueError:
            return self.board
        if replay.fen() != self.board.root().fen():
            return self.board
        for mv in self.board.move_stack:
            replay.push(mv)
        return replay

    def captured_pieces(self) -> dict[str, list[str]]:
        """Glyphs of pieces each side has lost, in capture order."""
        lost_white: list[str] = []
        lost_black: list[str] = []
        board = self._game_board()
        replay = board.root()
        for mv in board.move_stack:
            if replay.is_capture(mv):
                if replay.is_en_passant(mv):
                    captured = chess.PAWN
                else:
                    captured = replay.piece_type_at(mv.to_square)
                white_glyph, black_glyph = CAPTURE_GLYPHS[captured]
                if replay.turn == chess.WHITE:
                    lost_black.append(black_glyph)
                else:
                    lost_white.append(white_glyph)
            replay.push(mv)
        return {"white": lost_white, "black": lost_black}

    def pgn(self, white: str = "?", black: str = "?", event: str = "LLM Chess Play") -> str:
        """PGN of the game; a restored game keeps its earlier moves when they replay from the start."""
        game = chess.pgn.Game.from_board(self._game_board())
        game.headers["Event"] = event
        game.headers["Date"] = datetime.date.today().strftime("%Y.%m.%d")
        game.headers["White"] = white
        game.headers["Black"] = black
        game.headers["Result"] = self.result()
        exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=False)
        return game.accept(exporter)
