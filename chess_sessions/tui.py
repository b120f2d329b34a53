"""Terminal board surface for chess-sessions.

Renders a session snapshot as a Rich board plus sidebar, and runs an
interactive loop where typed coordinate moves act as piece drops.

Usage:
    chess-sessions play --color black
    chess-sessions coach
    chess-sessions puzzle
    chess-sessions train --module 2
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import chess
from rich.console import Console, Group
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chess_sessions.models import DropResult, Mode, Move
from chess_sessions.session import Session, SessionController, drag_start, drop
from chess_sessions.solutions import training_modules

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HIGHLIGHT = "yellow"

_COMMANDS = {
    "play": Mode.FREE_PLAY,
    "coach": Mode.COACHING,
    "puzzle": Mode.PUZZLE,
    "challenge": Mode.CHALLENGE,
    "train": Mode.TRAINING,
}


def render_board(state: dict, flipped: bool = False) -> Layout:
    """Render the full board layout from a session snapshot.

    Args:
        state: Snapshot dict as produced by Session.snapshot().
        flipped: Draw the board from Black's side.

    Returns:
        Rich Layout with board and sidebar.
    """
    layout = Layout()
    layout.split_row(
        Layout(name="board", ratio=2),
        Layout(name="sidebar", ratio=1),
    )
    layout["board"].update(_render_board_panel(state, flipped))
    layout["sidebar"].update(_render_sidebar(state))
    return layout


def _render_board_panel(state: dict, flipped: bool) -> Panel:
    board = chess.Board(state["fen"])

    highlight_squares: set[int] = set()
    move_log = state.get("move_log", [])
    if move_log:
        try:
            last = Move.from_uci(move_log[-1])
            highlight_squares.add(chess.parse_square(last.from_square))
            highlight_squares.add(chess.parse_square(last.to_square))
        except ValueError:
            pass

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    ranks = range(8) if flipped else range(7, -1, -1)
    files = list(range(7, -1, -1)) if flipped else list(range(8))

    for rank in ranks:
        row: list[Text] = [Text(str(rank + 1), style="bold")]
        for file in files:
            sq = chess.square(file, rank)
            piece = board.piece_at(sq)

            is_light = (rank + file) % 2 == 1
            bg = _LIGHT_SQ if is_light else _DARK_SQ
            if sq in highlight_squares:
                bg = _HIGHLIGHT

            if piece is not None:
                symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?")
                row.append(Text(f" {symbol} ", style=f"on {bg}"))
            else:
                row.append(Text("   ", style=f"on {bg}"))
        table.add_row(*row)

    file_labels = [Text("  ")]
    for f in files:
        file_labels.append(Text(f" {chr(ord('a') + f)} ", style="bold"))
    table.add_row(*file_labels)

    title = state["mode"].replace("_", " ").title()
    if state.get("termination", "none") != "none":
        title = f"{title}: {state['termination']}"
    return Panel(table, title=title, border_style="blue")


def _render_sidebar(state: dict) -> Panel:
    parts: list[Text] = [
        Text(f"State: {state['state']}", style="bold"),
        Text(state.get("status", "")),
    ]
    if state.get("pending_request"):
        parts.append(Text("Engine thinking...", style="italic"))
    if state.get("advice"):
        parts.append(Text(state["advice"], style="cyan"))

    move_log = state.get("move_log", [])
    if move_log:
        parts.append(Text(""))
        parts.append(Text("Moves:", style="bold"))
        for i in range(0, len(move_log), 2):
            pair = " ".join(move_log[i:i + 2])
            parts.append(Text(f"  {i // 2 + 1}. {pair}"))

    return Panel(Group(*parts), title="Info", border_style="green")


async def _prompt(console: Console, text: str) -> str:
    return await asyncio.to_thread(console.input, text)


async def _settle(session: Session) -> None:
    """Wait for free play's engine reply so the board shows it."""
    while session.mode is Mode.FREE_PLAY and session.pending_request:
        session.settled.clear()
        await session.settled.wait()


def _apply_input(session: Session, text: str) -> str | None:
    """Turn a typed move into drag-start + drop. Returns an error line or None."""
    try:
        move = Move.from_uci(text)
    except ValueError:
        return f"Not a move: {text!r}. Type e.g. e2e4, 'new' or 'q'."

    board = chess.Board(session.position.fen)
    piece = board.piece_at(chess.parse_square(move.from_square))
    code = ""
    if piece is not None:
        code = ("w" if piece.color == chess.WHITE else "b") + piece.symbol().upper()
    if not drag_start(session, move.from_square, code):
        return f"Can't move from {move.from_square} now. {session.status}"

    if drop(session, move.from_square, move.to_square, move.promotion) is DropResult.SNAPBACK:
        return f"Snapback: {session.status}"
    return None


async def run_interactive(controller: SessionController, mode: Mode, console: Console, **options) -> None:
    """Read moves from the terminal and feed them to a session."""
    session = await controller.start(mode, **options)
    flipped = options.get("player_color") == "black"
    try:
        while True:
            await _settle(session)
            console.print(render_board(session.snapshot(), flipped=flipped))
            text = (await _prompt(console, "Move (e2e4, 'new', 'q'): ")).strip().lower()
            if text in ("q", "quit"):
                return
            if text in ("new", "n"):
                session = await controller.reset(mode)
                continue
            error = _apply_input(session, text)
            if error:
                console.print(f"[red]{error}[/red]")
    finally:
        await controller.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for chess-sessions."""
    parser = argparse.ArgumentParser(
        description="Interactive chess sessions against a UCI engine"
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Mode to start")

    play_parser = subparsers.add_parser("play", help="Free play against the engine")
    play_parser.add_argument(
        "--color", choices=["white", "black"], default="white",
        help="Side you play",
    )
    subparsers.add_parser("coach", help="Play with engine advice")
    subparsers.add_parser("puzzle", help="Solve a random puzzle")
    subparsers.add_parser("challenge", help="Solve a random offline challenge")
    train_parser = subparsers.add_parser("train", help="Practise an opening")
    train_parser.add_argument("--module", type=int, default=None, help="Training module index")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    console = Console()
    options: dict = {}
    if args.command == "play":
        options["player_color"] = args.color
    elif args.command == "train":
        if args.module is None:
            for i, module in enumerate(training_modules()):
                console.print(f"  {i}: {module.title}")
            return
        options["module"] = args.module

    try:
        asyncio.run(run_interactive(SessionController(), _COMMANDS[args.command], console, **options))
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        pass


if __name__ == "__main__":
    main()
