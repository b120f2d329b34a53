"""MCP server for chess-sessions.

Exposes session lifecycle controls and board events as FastMCP tools.
One SessionController lives for the server's lifetime, so each mode
has at most one session and engine replies arrive on the server's
event loop between tool calls.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP

from chess_sessions.models import Mode
from chess_sessions.session import SessionController, drag_start as arbiter_drag_start, drop
from chess_sessions.solutions import training_modules

from response_schemas import minify_drop, minify_session  # noqa: E402

logger = logging.getLogger(__name__)

mcp = FastMCP("chess-sessions")

_controller = SessionController()


def _parse_mode(mode: str) -> Mode | None:
    try:
        return Mode(mode)
    except ValueError:
        return None


def _unknown_mode(mode: str) -> dict:
    modes = [m.value for m in Mode]
    return {"error": f"Unknown mode: {mode}. Modes: {modes}"}


def _no_session(mode: Mode) -> dict:
    return {"error": f"No active {mode.value} session. Call start_session first."}


# ---------------------------------------------------------------------------
# Lifecycle tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def start_session(mode: str, player_color: str = "white", module: int = 0) -> dict:
    """Start a session for a mode, or return the one already running.

    Args:
        mode: free_play, coaching, puzzle, challenge or training.
        player_color: Side the player takes in free_play. Default 'white'.
        module: Training module index for training. Default 0.

    Returns:
        Session snapshot dict.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)

    options: dict = {}
    if parsed is Mode.FREE_PLAY:
        options["player_color"] = player_color
    elif parsed is Mode.TRAINING:
        options["module"] = module

    try:
        session = await _controller.start(parsed, **options)
    except FileNotFoundError as exc:
        logger.warning("Could not start %s session: %s", parsed.value, exc)
        return {"error": str(exc)}
    except ValueError as exc:
        return {"error": f"Invalid option: {exc}"}
    return minify_session(session.snapshot())


@mcp.tool()
async def reset_session(mode: str) -> dict:
    """Discard the mode's session and start a fresh one.

    Free play and coaching get a new engine process. Puzzle and
    challenge pick a new random entry.

    Args:
        mode: Mode to reset.

    Returns:
        Snapshot of the new session.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)
    if _controller.get(parsed) is None:
        return _no_session(parsed)

    try:
        session = await _controller.reset(parsed)
    except FileNotFoundError as exc:
        return {"error": str(exc)}
    return minify_session(session.snapshot())


@mcp.tool()
async def end_session(mode: str) -> dict:
    """Tear down the mode's session and its engine.

    Args:
        mode: Mode to end.

    Returns:
        Dict with 'ended' flag.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)
    ended = await _controller.destroy(parsed)
    return {"mode": parsed.value, "ended": ended}


@mcp.tool()
def get_session(mode: str) -> dict:
    """Get the current snapshot of a mode's session.

    Args:
        mode: Mode to inspect.

    Returns:
        Session snapshot dict.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)
    session = _controller.get(parsed)
    if session is None:
        return _no_session(parsed)
    return minify_session(session.snapshot())


# ---------------------------------------------------------------------------
# Board events
# ---------------------------------------------------------------------------


@mcp.tool()
def drag_start(mode: str, square: str, piece: str) -> dict:
    """Ask whether a piece may be picked up.

    Args:
        mode: Mode of the session.
        square: Square the piece is on, e.g. 'e2'.
        piece: Piece code, colour then kind, e.g. 'wP' or 'bN'.

    Returns:
        Dict with 'allowed' flag and current status.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)
    session = _controller.get(parsed)
    if session is None:
        return _no_session(parsed)
    allowed = arbiter_drag_start(session, square, piece)
    return {"allowed": allowed, "status": session.status}


@mcp.tool()
def drop_piece(mode: str, from_square: str, to_square: str, promotion: str | None = None) -> dict:
    """Drop a piece: the move is arbitrated and either accepted or snapped back.

    Args:
        mode: Mode of the session.
        from_square: Origin square, e.g. 'e2'.
        to_square: Target square, e.g. 'e4'.
        promotion: Optional promotion piece (q, r, b, n). Defaults to queen.

    Returns:
        Snapshot dict with 'result' = 'accepted' or 'snapback'.
    """
    parsed = _parse_mode(mode)
    if parsed is None:
        return _unknown_mode(mode)
    session = _controller.get(parsed)
    if session is None:
        return _no_session(parsed)
    result = drop(session, from_square, to_square, promotion)
    return minify_drop(result.value, session.snapshot())


@mcp.tool()
def list_training_modules() -> dict:
    """List the opening training modules.

    Returns:
        Dict with modules list (index, title, description, fen).
    """
    modules = [
        {"index": i, "title": m.title, "description": m.description, "fen": m.fen}
        for i, m in enumerate(training_modules())
    ]
    return {"modules": modules}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    mcp.run()
