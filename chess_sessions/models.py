"""Shared data models for chess-sessions.

Position and Move are the contract between the rules adapter, the
arbiter and the mode policies. Engine events are what the protocol
decoder produces and the engine channel delivers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

_FILES = "abcdefgh"
_RANKS = "12345678"
_PROMOTIONS = "qrbn"


class Side(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Side":
        return Side.BLACK if self is Side.WHITE else Side.WHITE


class Termination(str, Enum):
    NONE = "none"
    CHECKMATE = "checkmate"
    DRAW = "draw"


class Mode(str, Enum):
    FREE_PLAY = "free_play"
    COACHING = "coaching"
    PUZZLE = "puzzle"
    CHALLENGE = "challenge"
    TRAINING = "training"


class DropResult(str, Enum):
    ACCEPTED = "accepted"
    SNAPBACK = "snapback"


def is_square(token: str) -> bool:
    """True for a two-character file+rank token such as 'e4'."""
    return (
        isinstance(token, str)
        and len(token) == 2
        and token[0] in _FILES
        and token[1] in _RANKS
    )


@dataclass(frozen=True)
class Position:
    """Board state snapshot as reported by the rules authority.

    Never build one by hand; use RulesAuthority.new_game or attempt_move.
    """

    fen: str
    turn: Side
    termination: Termination = Termination.NONE
    in_check: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.termination is not Termination.NONE


@dataclass(frozen=True)
class Move:
    """A from/to square pair with an optional promotion piece kind."""

    from_square: str
    to_square: str
    promotion: str | None = None

    def __post_init__(self) -> None:
        if not is_square(self.from_square) or not is_square(self.to_square):
            raise ValueError(
                f"Invalid squares: {self.from_square!r} -> {self.to_square!r}"
            )
        if self.promotion is not None and self.promotion not in _PROMOTIONS:
            raise ValueError(f"Invalid promotion piece: {self.promotion!r}")

    @classmethod
    def from_uci(cls, text: str) -> "Move":
        """Parse a 4 or 5 character coordinate move like 'e7e8q'.

        Raises:
            ValueError: If the text is not a coordinate move.
        """
        text = (text or "").strip().lower()
        if len(text) not in (4, 5):
            raise ValueError(f"Invalid move text: {text!r}")
        promotion = text[4] if len(text) == 5 else None
        return cls(text[0:2], text[2:4], promotion)

    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def same_squares(self, other: "Move") -> bool:
        """Compare from/to only, ignoring promotion."""
        return (
            self.from_square == other.from_square
            and self.to_square == other.to_square
        )

    def __str__(self) -> str:
        return self.uci()


@dataclass(frozen=True)
class Rejection:
    """A move the rules authority refused. Expected, not an error."""

    reason: str


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BestMove:
    """Final answer to a search.

    move is None when the engine reports no legal move, or when its
    payload could not be read, in which case malformed is True.
    """

    move: Move | None
    malformed: bool = False


@dataclass(frozen=True)
class Info:
    """Search progress. score_cp is None for mate-distance scores."""

    depth: int
    score_cp: int | None = None


EngineEvent = BestMove | Info


@dataclass(frozen=True)
class AnalysisRequest:
    """One search issued on an engine channel."""

    serial: int
    fen: str
    depth: int


@dataclass(frozen=True)
class EngineReply:
    """An engine event tagged with the request it answers."""

    request: AnalysisRequest
    event: EngineEvent


# ---------------------------------------------------------------------------
# Static data sets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SolutionEntry:
    """A puzzle or offline challenge with a single expected move."""

    fen: str
    solution: Move
    description: str


@dataclass(frozen=True)
class TrainingModule:
    """An opening position to practise from."""

    title: str
    description: str
    fen: str


@dataclass
class SessionSnapshot:
    """JSON-ready view of a session for a board surface."""

    session_id: str
    mode: str
    state: str
    fen: str
    turn: str
    termination: str
    in_check: bool
    status: str
    advice: str
    pending_request: bool
    move_log: list[str] = field(default_factory=list)
