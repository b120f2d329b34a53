"""Configuration constants for chess-sessions.

Defaults live here as module constants. A few can be overridden through
environment variables, read once at import time.
"""

from __future__ import annotations

import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to default."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# Search depth for the engine's reply in free play
FREE_PLAY_DEPTH = _env_int("CHESS_SESSIONS_FREE_PLAY_DEPTH", 12)

# Shallower depth for advisory analysis in coaching
COACHING_DEPTH = _env_int("CHESS_SESSIONS_COACHING_DEPTH", 10)

DATA_DIR = Path(os.environ.get("CHESS_SESSIONS_DATA_DIR", _PROJECT_ROOT / "data"))
PUZZLES_PATH = DATA_DIR / "puzzles.json"
CHALLENGES_PATH = DATA_DIR / "challenges.json"
TRAINING_PATH = DATA_DIR / "training.json"

STOCKFISH_ENV = "CHESS_SESSIONS_STOCKFISH"

# Stockfish search paths in priority order
STOCKFISH_PATHS = [
    "/opt/homebrew/bin/stockfish",
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
]
