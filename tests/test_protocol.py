"""Pytest tests for the engine line decoder and command formatting."""

from __future__ import annotations

import pytest

from chess_sessions.models import BestMove, Info, Move
from chess_sessions.protocol import decode_line, format_go, format_position


class TestBestMove:

    def test_bestmove_with_ponder(self):
        assert decode_line("bestmove e2e4 ponder e7e5") == BestMove(Move("e2", "e4"))

    def test_bestmove_none(self):
        event = decode_line("bestmove (none)")
        assert event == BestMove(move=None)
        assert not event.malformed

    def test_bestmove_promotion(self):
        event = decode_line("bestmove a7a8n")
        assert event == BestMove(Move("a7", "a8", "n"))

    def test_bestmove_trailing_newline(self):
        assert decode_line("bestmove g1f3\n") == BestMove(Move("g1", "f3"))

    def test_bestmove_without_payload(self):
        assert decode_line("bestmove") == BestMove(move=None, malformed=True)

    def test_bestmove_garbage_payload_does_not_raise(self):
        assert decode_line("bestmove zz99") == BestMove(move=None, malformed=True)
        assert decode_line("bestmove e7e9") == BestMove(move=None, malformed=True)


class TestInfo:

    def test_info_with_cp(self):
        line = "info depth 12 seldepth 18 score cp 34 pv e2e4"
        assert decode_line(line) == Info(depth=12, score_cp=34)

    def test_info_negative_cp(self):
        assert decode_line("info depth 3 score cp -120 nodes 55") == Info(3, -120)

    def test_info_mate_score_has_no_cp(self):
        assert decode_line("info depth 20 score mate 3 pv d1h5") == Info(20, None)

    def test_info_without_score_is_ignored(self):
        assert decode_line("info depth 7 currmove e2e4 currmovenumber 1") is None

    def test_info_string_is_ignored(self):
        assert decode_line("info string NNUE evaluation using nn-abc.nnue") is None

    def test_info_malformed_depth_is_ignored(self):
        assert decode_line("info depth x score cp 10") is None


class TestIgnored:

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        "uciok",
        "readyok",
        "id name Stockfish 16",
        "option name Hash type spin default 16 min 1 max 33554432",
        "Stockfish 16 by the Stockfish developers",
    ])
    def test_unrecognized_lines(self, line):
        assert decode_line(line) is None


class TestFormatting:

    def test_position_command(self):
        fen = "8/8/8/8/8/8/8/K6k w - - 0 1"
        assert format_position(fen) == f"position fen {fen}"

    def test_go_command(self):
        assert format_go(12) == "go depth 12"
