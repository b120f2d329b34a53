"""Pytest tests for the puzzle, challenge and training data sets."""

from __future__ import annotations

import json
import random

import chess
import pytest

from chess_sessions.models import Move
from chess_sessions.solutions import (
    challenges,
    load_entries,
    load_training,
    pick_entry,
    puzzles,
    training_modules,
)


def _write(path, rows) -> None:
    path.write_text(json.dumps(rows), encoding="utf-8")


class TestLoadEntries:

    def test_loads_rows_in_order(self, tmp_path):
        path = tmp_path / "puzzles.json"
        _write(path, [
            {"fen": chess.STARTING_FEN, "solution": "e2e4", "description": "Open."},
            {"fen": chess.STARTING_FEN, "solution": "g1f3", "description": "Develop."},
        ])
        entries = load_entries(path)
        assert [e.solution for e in entries] == [Move("e2", "e4"), Move("g1", "f3")]
        assert entries[0].description == "Open."

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_entries(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="invalid JSON"):
            load_entries(path)

    def test_empty_array(self, tmp_path):
        path = tmp_path / "empty.json"
        _write(path, [])
        with pytest.raises(ValueError, match="non-empty"):
            load_entries(path)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "partial.json"
        _write(path, [{"fen": chess.STARTING_FEN, "solution": "e2e4"}])
        with pytest.raises(ValueError, match="description"):
            load_entries(path)

    def test_impossible_position(self, tmp_path):
        path = tmp_path / "kings.json"
        _write(path, [{"fen": "8/8/8/8/8/8/8/8 w - - 0 1", "solution": "e2e4", "description": ""}])
        with pytest.raises(ValueError, match="impossible position"):
            load_entries(path)

    def test_bad_solution_text(self, tmp_path):
        path = tmp_path / "sol.json"
        _write(path, [{"fen": chess.STARTING_FEN, "solution": "e2", "description": ""}])
        with pytest.raises(ValueError):
            load_entries(path)


class TestLoadTraining:

    def test_loads_modules(self, tmp_path):
        path = tmp_path / "training.json"
        _write(path, [{"title": "Start", "description": "From scratch.", "fen": chess.STARTING_FEN}])
        (module,) = load_training(path)
        assert module.title == "Start"
        assert module.fen == chess.STARTING_FEN

    def test_missing_title(self, tmp_path):
        path = tmp_path / "training.json"
        _write(path, [{"description": "x", "fen": chess.STARTING_FEN}])
        with pytest.raises(ValueError, match="title"):
            load_training(path)


class TestShippedData:

    @pytest.mark.parametrize("entry", puzzles() + challenges(), ids=lambda e: e.solution.uci())
    def test_solution_is_legal(self, entry):
        board = chess.Board(entry.fen)
        assert chess.Move.from_uci(entry.solution.uci()) in board.legal_moves

    def test_training_positions_are_valid(self):
        for module in training_modules():
            assert chess.Board(module.fen).is_valid()

    def test_sets_are_cached(self):
        assert puzzles() is puzzles()


class TestPickEntry:

    def test_seeded_choice_is_repeatable(self):
        entries = puzzles()
        first = pick_entry(entries, random.Random(7))
        second = pick_entry(entries, random.Random(7))
        assert first is second
        assert first in entries

    def test_default_rng(self):
        assert pick_entry(challenges()) in challenges()
