"""Mode policies: one state machine per interaction style.

The arbiter in session.py is the same for every mode. A policy decides
whether input is accepted right now, whether a rules-legal move is
admitted, and what happens once a move is committed or the engine
replies.

    Free play   PLAYER_TO_MOVE -> ENGINE_THINKING -> PLAYER_TO_MOVE | TERMINAL
    Coaching    AWAITING_PLAYER_MOVE <-> AWAITING_ADVICE (never locks input)
    Puzzle      UNSOLVED -> SOLVED
    Challenge   UNSOLVED -> SOLVED
    Training    PRACTISING
"""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import TYPE_CHECKING

from chess_sessions import config
from chess_sessions.models import (
    AnalysisRequest,
    BestMove,
    EngineReply,
    Info,
    Mode,
    Move,
    Position,
    Rejection,
    Side,
    SolutionEntry,
    Termination,
    TrainingModule,
)
from chess_sessions.solutions import challenges, pick_entry, puzzles, training_modules

if TYPE_CHECKING:
    from chess_sessions.session import Session

logger = logging.getLogger(__name__)

# Fresh searches asked for after an unusable engine answer
_MAX_ENGINE_RETRIES = 2


class ModePolicy:
    """Base policy: accepts every legal move, ignores the engine."""

    uses_engine = False
    starting_fen: str | None = None
    state: Enum

    @property
    def pending(self) -> bool:
        """True while an engine request issued by this policy is unanswered."""
        return False

    def start(self, session: "Session") -> None:
        session.status = session.rules.describe_status(session.position)

    def accepting_moves(self, session: "Session") -> bool:
        return True

    def locked_status(self, session: "Session") -> str:
        return "Please wait."

    def allows_drag(self, session: "Session", side: Side) -> bool:
        return self.accepting_moves(session)

    def on_rejected(self, session: "Session", rejection: Rejection) -> None:
        session.status = rejection.reason

    def admit(self, session: "Session", move: Move, new_position: Position) -> str | None:
        """Veto a legal move before it is committed.

        Returns:
            None to admit, or the status message explaining the snapback.
        """
        return None

    def on_move_accepted(self, session: "Session", move: Move, new_position: Position) -> None:
        session.status = session.rules.describe_status(new_position)

    def on_engine_reply(self, session: "Session", reply: EngineReply) -> None:
        logger.debug("%s ignores engine reply %r", type(self).__name__, reply)


# ---------------------------------------------------------------------------
# Free play
# ---------------------------------------------------------------------------


class FreePlayState(str, Enum):
    PLAYER_TO_MOVE = "player_to_move"
    ENGINE_THINKING = "engine_thinking"
    TERMINAL = "terminal"


class FreePlayPolicy(ModePolicy):
    """Player against the engine; the engine's reply is applied to the board."""

    uses_engine = True

    def __init__(self, player_color: Side = Side.WHITE, depth: int = config.FREE_PLAY_DEPTH) -> None:
        self.player_color = Side(player_color)
        self.depth = depth
        self.state = FreePlayState.PLAYER_TO_MOVE
        self._request: AnalysisRequest | None = None
        self._retries = 0

    @property
    def pending(self) -> bool:
        return self.state is FreePlayState.ENGINE_THINKING

    def start(self, session: "Session") -> None:
        session.status = session.rules.describe_status(session.position)
        if session.position.is_terminal:
            self.state = FreePlayState.TERMINAL
        elif session.position.turn is not self.player_color:
            self._ask_engine(session)
        else:
            self.state = FreePlayState.PLAYER_TO_MOVE

    def accepting_moves(self, session: "Session") -> bool:
        return self.state is FreePlayState.PLAYER_TO_MOVE

    def locked_status(self, session: "Session") -> str:
        if self.state is FreePlayState.ENGINE_THINKING:
            return "Engine is thinking..."
        return session.rules.describe_status(session.position)

    def allows_drag(self, session: "Session", side: Side) -> bool:
        return self.accepting_moves(session) and side is self.player_color

    def on_move_accepted(self, session: "Session", move: Move, new_position: Position) -> None:
        session.status = session.rules.describe_status(new_position)
        if new_position.is_terminal:
            self.state = FreePlayState.TERMINAL
            return
        self._ask_engine(session)

    def on_engine_reply(self, session: "Session", reply: EngineReply) -> None:
        if (
            self.state is not FreePlayState.ENGINE_THINKING
            or reply.request != self._request
            or reply.request.fen != session.position.fen
        ):
            logger.debug("Stale free-play reply for request #%d dropped", reply.request.serial)
            return
        if not isinstance(reply.event, BestMove):
            return

        self._request = None
        move = reply.event.move
        if move is None:
            if session.rules.is_terminal(session.position) is not Termination.NONE:
                self.state = FreePlayState.TERMINAL
                session.status = session.rules.describe_status(session.position)
            elif reply.event.malformed:
                self._engine_failed(session, "unreadable bestmove")
            else:
                self._engine_failed(session, "no move in a live position")
            return

        # Engine moves skip the arbiter; only the rules authority checks them
        result = session.rules.attempt_move(session.position, move)
        if isinstance(result, Rejection):
            self._engine_failed(session, f"{move} rejected: {result.reason}")
            return

        self._retries = 0
        session.commit(move, result)
        self.state = FreePlayState.TERMINAL if result.is_terminal else FreePlayState.PLAYER_TO_MOVE
        session.status = session.rules.describe_status(result)

    def _engine_failed(self, session: "Session", reason: str) -> None:
        """Search the same position again, or give up after a few tries.

        The engine's side stays to move throughout.
        """
        if self._retries < _MAX_ENGINE_RETRIES:
            self._retries += 1
            logger.warning("Engine gave no usable move (%s); asking again", reason)
            self._ask_engine(session)
            return
        logger.error("Engine gave no usable move (%s); giving up", reason)
        self.state = FreePlayState.TERMINAL
        session.status = "Engine failed to move. Start a new game."

    def _ask_engine(self, session: "Session") -> None:
        assert session.channel is not None
        self.state = FreePlayState.ENGINE_THINKING
        self._request = session.channel.request(session.position.fen, self.depth)


# ---------------------------------------------------------------------------
# Coaching
# ---------------------------------------------------------------------------


class CoachingState(str, Enum):
    AWAITING_PLAYER_MOVE = "awaiting_player_move"
    AWAITING_ADVICE = "awaiting_advice"


class CoachingPolicy(ModePolicy):
    """Player moves both sides; the engine only advises.

    Replies answering anything but the latest request, or a position the
    board has since left, are discarded.
    """

    uses_engine = True

    def __init__(self, depth: int = config.COACHING_DEPTH) -> None:
        self.depth = depth
        self.state = CoachingState.AWAITING_PLAYER_MOVE
        self._request: AnalysisRequest | None = None
        self._evaluation = ""

    @property
    def pending(self) -> bool:
        return self.state is CoachingState.AWAITING_ADVICE

    def start(self, session: "Session") -> None:
        session.advice = ""
        session.status = "Session started. Make a move to receive suggestions."

    def on_move_accepted(self, session: "Session", move: Move, new_position: Position) -> None:
        session.status = session.rules.describe_status(new_position)
        session.advice = ""
        self._evaluation = ""
        if new_position.is_terminal:
            self._request = None
            self.state = CoachingState.AWAITING_PLAYER_MOVE
            return
        assert session.channel is not None
        self._request = session.channel.request(new_position.fen, self.depth)
        self.state = CoachingState.AWAITING_ADVICE

    def on_engine_reply(self, session: "Session", reply: EngineReply) -> None:
        if (
            reply.request != self._request
            or reply.request.fen != session.position.fen
        ):
            logger.debug("Stale advice for request #%d suppressed", reply.request.serial)
            return

        event = reply.event
        if isinstance(event, Info):
            if event.score_cp is not None:
                self._evaluation = f"Evaluation: {event.score_cp / 100:+.2f}"
                session.advice = self._evaluation
            return

        self.state = CoachingState.AWAITING_PLAYER_MOVE
        if event.move is not None:
            suggestion = f"Suggested move: {event.move.uci()}"
            session.advice = f"{self._evaluation} | {suggestion}" if self._evaluation else suggestion


# ---------------------------------------------------------------------------
# Puzzle / offline challenge
# ---------------------------------------------------------------------------


class SolutionState(str, Enum):
    UNSOLVED = "unsolved"
    SOLVED = "solved"


class SolutionPolicy(ModePolicy):
    """One expected move. Wrong answers are refused before they are committed."""

    def __init__(self, entry: SolutionEntry, solved_status: str) -> None:
        self.entry = entry
        self.starting_fen = entry.fen
        self.solved_status = solved_status
        self.state = SolutionState.UNSOLVED

    def start(self, session: "Session") -> None:
        session.status = self.entry.description

    def accepting_moves(self, session: "Session") -> bool:
        return self.state is SolutionState.UNSOLVED

    def locked_status(self, session: "Session") -> str:
        return "Already solved. Start a new one."

    def on_rejected(self, session: "Session", rejection: Rejection) -> None:
        session.status = "Incorrect move, try again."

    def admit(self, session: "Session", move: Move, new_position: Position) -> str | None:
        if move.same_squares(self.entry.solution):
            return None
        return "Incorrect move, try again."

    def on_move_accepted(self, session: "Session", move: Move, new_position: Position) -> None:
        self.state = SolutionState.SOLVED
        session.status = self.solved_status


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------


class TrainingState(str, Enum):
    PRACTISING = "practising"


class TrainingPolicy(ModePolicy):
    """Free practice from an opening position; reports each move in SAN."""

    def __init__(self, module: TrainingModule) -> None:
        self.module = module
        self.starting_fen = module.fen
        self.state = TrainingState.PRACTISING

    def start(self, session: "Session") -> None:
        session.status = self.module.description

    def on_move_accepted(self, session: "Session", move: Move, new_position: Position) -> None:
        assert session.previous_position is not None
        san = session.rules.san(session.previous_position, move)
        session.status = f"Move: {san}"


def build_policy(mode: Mode, rng: random.Random | None = None, **options) -> ModePolicy:
    """Construct the policy for mode.

    Args:
        mode: Which interaction style.
        rng: Source of randomness for puzzle/challenge selection.
        **options: player_color (free play), module (training index).

    Raises:
        ValueError: On an unknown mode or bad option value.
    """
    mode = Mode(mode)
    if mode is Mode.FREE_PLAY:
        return FreePlayPolicy(player_color=Side(options.get("player_color", Side.WHITE)))
    if mode is Mode.COACHING:
        return CoachingPolicy()
    if mode is Mode.PUZZLE:
        return SolutionPolicy(pick_entry(puzzles(), rng), "Correct! Puzzle solved.")
    if mode is Mode.CHALLENGE:
        return SolutionPolicy(pick_entry(challenges(), rng), "Correct! Challenge solved.")

    modules = training_modules()
    index = int(options.get("module", 0))
    if not 0 <= index < len(modules):
        raise ValueError(f"Training module out of range: {index}")
    return TrainingPolicy(modules[index])
