"""Pytest tests for the terminal board surface."""

from __future__ import annotations

import asyncio

import chess
import pytest
from rich.console import Console
from rich.layout import Layout

from chess_sessions.models import Mode
from chess_sessions.session import SessionController, drop
from chess_sessions.tui import _apply_input, _settle, main, render_board
from fakes import drain


def _snapshot(**overrides) -> dict:
    state = {
        "session_id": "s", "mode": "free_play", "state": "player_to_move",
        "fen": chess.STARTING_FEN, "turn": "white", "termination": "none",
        "in_check": False, "status": "White to move.", "advice": "",
        "pending_request": False, "move_log": [],
    }
    state.update(overrides)
    return state


def _render_text(layout: Layout) -> str:
    console = Console(width=100, record=True, color_system=None)
    console.print(layout)
    return console.export_text()


class TestRenderBoard:

    def test_returns_layout(self):
        layout = render_board(_snapshot())
        assert isinstance(layout, Layout)
        assert layout["board"] is not None
        assert layout["sidebar"] is not None

    def test_sidebar_shows_status_and_advice(self):
        text = _render_text(render_board(_snapshot(
            mode="coaching", advice="Evaluation: +0.25", pending_request=True,
            move_log=["e2e4", "e7e5"],
        )))
        assert "Evaluation: +0.25" in text
        assert "Engine thinking..." in text
        assert "1. e2e4 e7e5" in text

    def test_termination_in_title(self):
        text = _render_text(render_board(_snapshot(termination="checkmate")))
        assert "checkmate" in text

    def test_flipped_labels(self):
        text = _render_text(render_board(_snapshot(), flipped=True))
        assert text.index(" h ") < text.index(" a ")


class TestApplyInput:

    def test_move_is_dropped(self, engine_factory):
        async def scenario():
            controller = SessionController(channel_factory=engine_factory)
            session = await controller.start(Mode.TRAINING, module=0)
            assert _apply_input(session, "e7e5") is None
            assert session.status == "Move: e5"
            await controller.close()
        asyncio.run(scenario())

    def test_not_a_move(self, engine_factory):
        async def scenario():
            controller = SessionController(channel_factory=engine_factory)
            session = await controller.start(Mode.TRAINING, module=0)
            assert "Not a move" in _apply_input(session, "hello")
            await controller.close()
        asyncio.run(scenario())

    def test_drag_veto(self, engine_factory):
        async def scenario():
            controller = SessionController(channel_factory=engine_factory)
            session = await controller.start(Mode.FREE_PLAY)
            assert _apply_input(session, "e7e5").startswith("Can't move from e7")
            assert _apply_input(session, "e4e5").startswith("Can't move from e4")
            await controller.close()
        asyncio.run(scenario())

    def test_snapback(self, engine_factory):
        async def scenario():
            controller = SessionController(channel_factory=engine_factory)
            session = await controller.start(Mode.FREE_PLAY)
            assert _apply_input(session, "e2e5") == "Snapback: Illegal move: e2e5."
            await controller.close()
        asyncio.run(scenario())


class TestMain:

    def test_no_command_prints_help(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1

    def test_train_without_module_lists_modules(self, capsys):
        main(["train"])
        assert "0: King's Pawn Opening" in capsys.readouterr().out


class TestSettle:

    def test_waits_for_engine_reply(self, manual_factory):
        async def scenario():
            controller = SessionController(channel_factory=manual_factory)
            session = await controller.start(Mode.FREE_PLAY)
            drop(session, "e2", "e4")

            waiter = asyncio.create_task(_settle(session))
            await drain()
            assert not waiter.done()

            manual_factory.latest.release()
            await asyncio.wait_for(waiter, timeout=1.0)
            assert len(session.log) == 2
            await controller.close()
        asyncio.run(scenario())

    def test_returns_at_once_when_idle(self, engine_factory):
        async def scenario():
            controller = SessionController(channel_factory=engine_factory)
            session = await controller.start(Mode.COACHING)
            await asyncio.wait_for(_settle(session), timeout=1.0)
            await controller.close()
        asyncio.run(scenario())
