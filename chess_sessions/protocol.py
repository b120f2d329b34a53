"""Engine line protocol: decode inbound lines, format outbound commands.

Only two inbound shapes carry meaning:

    info depth 12 seldepth 18 score cp 34 pv e2e4 ...
    bestmove e2e4 ponder e7e5

Everything else (id lines, uciok, info string, currmove updates) is
chatter and decodes to None. Decoding is pure: the same line always
yields the same result.
"""

from __future__ import annotations

import logging

from chess_sessions.models import BestMove, EngineEvent, Info, Move

logger = logging.getLogger(__name__)

UCI_HANDSHAKE = "uci"
QUIT = "quit"

_BESTMOVE = "bestmove"
_INFO = "info"
_NO_MOVE = "(none)"


def format_position(fen: str) -> str:
    return f"position fen {fen}"


def format_go(depth: int) -> str:
    return f"go depth {depth}"


def decode_line(line: str) -> EngineEvent | None:
    """Decode one engine output line.

    Args:
        line: Raw line, with or without trailing newline.

    Returns:
        BestMove, Info, or None when the line carries no semantics.
    """
    tokens = (line or "").split()
    if not tokens:
        return None

    head = tokens[0]
    if head == _BESTMOVE:
        return _decode_bestmove(tokens)
    if head == _INFO:
        return _decode_info(tokens)
    return None


def _decode_bestmove(tokens: list[str]) -> BestMove:
    # Still a BestMove when unreadable: it retires the search either way
    if len(tokens) < 2:
        logger.debug("bestmove line without payload")
        return BestMove(move=None, malformed=True)
    if tokens[1] == _NO_MOVE:
        return BestMove(move=None)
    try:
        return BestMove(move=Move.from_uci(tokens[1]))
    except ValueError:
        logger.debug("Unparseable bestmove payload: %r", tokens[1])
        return BestMove(move=None, malformed=True)


def _decode_info(tokens: list[str]) -> Info | None:
    if "depth" not in tokens or "score" not in tokens:
        return None

    depth_idx = tokens.index("depth")
    score_idx = tokens.index("score")
    try:
        depth = int(tokens[depth_idx + 1])
    except (IndexError, ValueError):
        return None

    score_cp = None
    # mate/lowerbound/upperbound scores leave score_cp unset
    if score_idx + 1 < len(tokens) and tokens[score_idx + 1] == "cp":
        try:
            score_cp = int(tokens[score_idx + 2])
        except (IndexError, ValueError):
            return None

    return Info(depth=depth, score_cp=score_cp)
