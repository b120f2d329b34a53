"""Fixed-solution data sets: puzzles, offline challenges and training modules.

Each set is a JSON array shipped under data/. Sets are read once on
first use and cached as tuples; nothing mutates them afterwards.

Usage:
    from chess_sessions.solutions import puzzles, pick_entry
    entry = pick_entry(puzzles())
"""

from __future__ import annotations

import json
import random
from functools import lru_cache
from pathlib import Path

import chess

from chess_sessions import config
from chess_sessions.models import Move, SolutionEntry, TrainingModule

_ENTRY_FIELDS = ("fen", "solution", "description")
_TRAINING_FIELDS = ("title", "description", "fen")


def _read_rows(path: Path, fields: tuple[str, ...]) -> list[dict]:
    """Read a JSON array of objects and check required fields.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: If the file is not a JSON array of complete rows.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc})") from exc

    if not isinstance(data, list) or not data:
        raise ValueError(f"{path}: expected a non-empty JSON array")

    for i, row in enumerate(data):
        if not isinstance(row, dict):
            raise ValueError(f"{path}[{i}]: expected an object")
        missing = [f for f in fields if f not in row]
        if missing:
            raise ValueError(f"{path}[{i}]: missing fields {missing}")
    return data


def _check_fen(path: Path, i: int, fen: str) -> None:
    try:
        board = chess.Board(fen)
    except ValueError as exc:
        raise ValueError(f"{path}[{i}]: invalid FEN ({exc})") from exc
    if not board.is_valid():
        raise ValueError(f"{path}[{i}]: impossible position {fen}")


def load_entries(path: Path) -> tuple[SolutionEntry, ...]:
    """Load puzzle/challenge rows of {fen, solution, description}.

    Args:
        path: JSON file to read.

    Returns:
        Tuple of SolutionEntry, in file order.
    """
    entries = []
    for i, row in enumerate(_read_rows(path, _ENTRY_FIELDS)):
        _check_fen(path, i, row["fen"])
        try:
            solution = Move.from_uci(row["solution"])
        except ValueError as exc:
            raise ValueError(f"{path}[{i}]: {exc}") from exc
        entries.append(
            SolutionEntry(fen=row["fen"], solution=solution, description=row["description"])
        )
    return tuple(entries)


def load_training(path: Path) -> tuple[TrainingModule, ...]:
    """Load training rows of {title, description, fen}."""
    modules = []
    for i, row in enumerate(_read_rows(path, _TRAINING_FIELDS)):
        _check_fen(path, i, row["fen"])
        modules.append(
            TrainingModule(title=row["title"], description=row["description"], fen=row["fen"])
        )
    return tuple(modules)


@lru_cache(maxsize=None)
def puzzles() -> tuple[SolutionEntry, ...]:
    return load_entries(config.PUZZLES_PATH)


@lru_cache(maxsize=None)
def challenges() -> tuple[SolutionEntry, ...]:
    return load_entries(config.CHALLENGES_PATH)


@lru_cache(maxsize=None)
def training_modules() -> tuple[TrainingModule, ...]:
    return load_training(config.TRAINING_PATH)


def pick_entry(entries: tuple[SolutionEntry, ...], rng: random.Random | None = None) -> SolutionEntry:
    """Pick one entry at random."""
    return (rng or random).choice(entries)
