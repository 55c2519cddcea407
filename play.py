"""
Terminal client: play a game (human vs human, or human vs LLM) through GameService.

  python play.py --white Alice --black Bob
  python play.py --white Alice --mode llm --provider "Google Gemini" --api-key ... [--thinking]
  python play.py --list
  python play.py --resume 1718000000000

Moves are entered as coordinates (e2e4). Type 'pause' to save and quit, 'end' to abandon.
"""
import argparse
import asyncio
import logging
import os
import sys
from contextlib import aclosing
from typing import List, Optional

from llmchess_play.config import SETTINGS
from llmchess_play.errors import ChessPlayError
from llmchess_play.llm_client import DEFAULT_PROVIDER, PROVIDERS
from llmchess_play.resolver import Accepted, Exhausted
from llmchess_play.service import GameService, Rejected
from llmchess_play.session import AgentConfig, GameMode, GameSession, SessionStatus, Speaker
from llmchess_play.session_manager import SessionManager
from llmchess_play.store import JsonSessionStore

SPEAKER_NAMES = {Speaker.AGENT_ONE: "Agent 1", Speaker.AGENT_TWO: "Agent 2", Speaker.SYSTEM: "System"}


def print_saved(manager: SessionManager) -> None:
    games = manager.saved_games()
    if not games:
        print("No recently paused games.")
        return
    for g in games:
        players = g.get("players") or {}
        print(f"{g['id']}: {players.get('white')} vs {players.get('black')}  [{g.get('mode')}]  "
              f"{len(g.get('history') or [])} moves  {g.get('datePlayed')}")


async def agent_turn(service: GameService, session: GameSession, log: logging.Logger) -> bool:
    """Let the agent move; returns False when it could not produce a legal move."""
    if session.thinking_mode:
        async with aclosing(service.run_negotiation(session)) as stream:
            async for update in stream:
                if update.kind == "turn" and update.turn:
                    print(f"\n[{SPEAKER_NAMES[update.turn.speaker]}] {update.turn.text}")
                elif update.kind == "resolved":
                    print(f"\nAgents agreed on {update.san} ({update.token})")
                    return True
                elif update.kind == "exhausted":
                    log.error("Agents did not agree on a legal move after %d exchanges", update.rounds)
        return False
    outcome = await service.play_agent_turn(session)
    if isinstance(outcome, Accepted):
        print(f"\n{session.players['black']} plays {outcome.san}")
        return True
    log.error("Agent failed to provide a valid move after %d attempts", outcome.attempts)
    return False


async def play(service: GameService, session: GameSession, log: logging.Logger) -> None:
    while session.status == SessionStatus.IN_PROGRESS:
        if session.agent_to_move():
            if not await agent_turn(service, session, log):
                snap = service.pause(session)
                print(f"Game {snap['id']} saved; resume it later with --resume {snap['id']}")
                return
            continue
        print(f"\n{session.engine.board}\n")
        print("Moves:", " ".join(session.history) or "(none)")
        raw = input(f"{session.player_to_move()} to move (e.g. e2e4, 'pause', 'end'): ").strip().lower()
        if not raw:
            continue
        if raw == "pause":
            snap = service.pause(session)
            print(f"Game {snap['id']} saved.")
            return
        if raw == "end":
            service.end(session)
            print("Game ended.")
            return
        outcome = await service.resolve_move(session, raw[:2], raw[2:4])
        if isinstance(outcome, Rejected):
            print(f"Illegal move attempted! ({outcome.reason})")
        elif isinstance(outcome, Exhausted):
            print(f"Move failed after {outcome.attempts} attempts.")
        elif outcome.attempts > 1:
            print(f"Your move was corrected to {outcome.san}")
    engine = session.engine
    print(f"\n{engine.board}\n")
    print("Result:", engine.result(), f"({engine.termination_reason()})")
    print("PGN:\n", engine.pgn(white=session.players["white"], black=session.players["black"]))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser()
    ap.add_argument("--white", default=None, help="Name of the White player")
    ap.add_argument("--black", default=None, help="Name of the Black player (defaults to LLM in llm mode)")
    ap.add_argument("--mode", choices=[m.value for m in GameMode], default=GameMode.HUMAN_VS_HUMAN.value)
    ap.add_argument("--provider", choices=sorted(PROVIDERS), default=DEFAULT_PROVIDER)
    ap.add_argument("--api-key", default=None, help="Provider API key (or LLMCHESS_API_KEY)")
    ap.add_argument("--thinking", action="store_true", help="Two agents negotiate each move")
    ap.add_argument("--provider2", choices=sorted(PROVIDERS), default=None, help="Provider of the second agent")
    ap.add_argument("--api-key2", default=None, help="API key of the second agent (or LLMCHESS_API_KEY2)")
    ap.add_argument("--resume", default=None, help="Id of a saved game to resume")
    ap.add_argument("--list", action="store_true", help="List saved games and exit")
    ap.add_argument("--store", default=None, help="Saved games file (default from settings)")
    ap.add_argument("--no-correction", action="store_true", help="Do not let the agent correct illegal human moves")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = (args.log_level or SETTINGS.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play")

    manager = SessionManager(JsonSessionStore(args.store or SETTINGS.store_path))
    if args.list:
        print_saved(manager)
        return 0

    mode = GameMode(args.mode)
    agent_config = None
    if mode == GameMode.HUMAN_VS_AGENT:
        agent_config = AgentConfig(
            provider=args.provider,
            credential=args.api_key or os.environ.get("LLMCHESS_API_KEY", ""),
            thinking_mode=args.thinking,
            provider_2=args.provider2,
            credential_2=args.api_key2 or os.environ.get("LLMCHESS_API_KEY2"),
        )
    try:
        session = manager.create_or_resume(
            args.resume,
            players={"white": args.white or "", "black": args.black or ""},
            mode=mode,
            agent_config=agent_config,
        )
    except ChessPlayError as exc:
        print(f"error: {exc.code}: {exc}", file=sys.stderr)
        return 2

    service = GameService(manager, correction_assist=False if args.no_correction else None)
    log.info("Starting game %s: %s vs %s (%s)", session.id, session.players["white"], session.players["black"], session.mode.value)
    try:
        asyncio.run(play(service, session, log))
    except ChessPlayError as exc:
        print(f"error: {exc.code}: {exc}", file=sys.stderr)
        if session.status == SessionStatus.IN_PROGRESS:
            snap = service.pause(session)
            print(f"Game {snap['id']} saved; resume it later with --resume {snap['id']}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
