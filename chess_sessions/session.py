"""Sessions, the move arbiter, and the controller that owns them.

A Session is one mode instance: a position, an optional engine channel,
and the policy that decides what moves mean. The arbiter (drag_start,
drop) is shared by every mode. SessionController keeps at most one
session per mode and is the only place sessions are created, reset or
torn down.

Usage:
    controller = SessionController()
    session = await controller.start("free_play")
    if drop(session, "e2", "e4") is DropResult.SNAPBACK:
        ...
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Callable

from chess_sessions.engine import EngineChannel
from chess_sessions.models import (
    DropResult,
    EngineReply,
    Mode,
    Move,
    Position,
    Rejection,
    SessionSnapshot,
    Side,
    Termination,
)
from chess_sessions.policies import ModePolicy, build_policy
from chess_sessions.rules import RulesAuthority

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[], EngineChannel]


@dataclass
class Session:
    """State of one mode instance. Owned by a SessionController."""

    mode: Mode
    position: Position
    policy: ModePolicy
    rules: RulesAuthority
    channel: EngineChannel | None = None
    options: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    log: list[Move] = field(default_factory=list)
    previous_position: Position | None = None
    status: str = ""
    advice: str = ""
    # Set whenever an engine reply leaves no request pending
    settled: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def pending_request(self) -> bool:
        return self.policy.pending

    @property
    def state(self) -> str:
        return self.policy.state.value

    def commit(self, move: Move, position: Position) -> None:
        """Make position current and record the move that produced it."""
        self.previous_position = self.position
        self.position = position
        self.log.append(move)

    def snapshot(self) -> dict:
        return asdict(SessionSnapshot(
            session_id=self.id,
            mode=self.mode.value,
            state=self.state,
            fen=self.position.fen,
            turn=self.position.turn.value,
            termination=self.position.termination.value,
            in_check=self.position.in_check,
            status=self.status,
            advice=self.advice,
            pending_request=self.pending_request,
            move_log=[m.uci() for m in self.log],
        ))


# ---------------------------------------------------------------------------
# Move arbiter
# ---------------------------------------------------------------------------


def _piece_side(piece: str) -> Side | None:
    # Board surfaces name pieces like 'wP' or 'bK'
    if piece and piece[0] in "wb":
        return Side.WHITE if piece[0] == "w" else Side.BLACK
    return None


def drag_start(session: Session, square: str, piece: str) -> bool:
    """Decide whether the board may start dragging piece from square.

    Vetoes the opponent's pieces, any input once the game is over, and
    whatever the mode policy currently forbids (e.g. while the engine
    is thinking).
    """
    side = _piece_side(piece)
    if side is None or session.position.is_terminal:
        return False
    if side is not session.position.turn:
        return False
    return session.policy.allows_drag(session, side)


def drop(
    session: Session,
    from_square: str,
    to_square: str,
    promotion: str | None = None,
) -> DropResult:
    """Arbitrate a piece drop.

    Checks the policy's input lock, then termination, then legality,
    then the policy's own admission rule. Only a move that passes all
    four is committed; anything else is a snapback with session.status
    explaining why.
    """
    policy = session.policy
    if not policy.accepting_moves(session):
        session.status = policy.locked_status(session)
        return DropResult.SNAPBACK

    if session.rules.is_terminal(session.position) is not Termination.NONE:
        session.status = session.rules.describe_status(session.position)
        return DropResult.SNAPBACK

    try:
        move = Move(from_square, to_square, promotion)
    except ValueError as exc:
        session.status = str(exc)
        return DropResult.SNAPBACK

    result = session.rules.attempt_move(session.position, move)
    if isinstance(result, Rejection):
        policy.on_rejected(session, result)
        return DropResult.SNAPBACK

    objection = policy.admit(session, move, result)
    if objection is not None:
        session.status = objection
        return DropResult.SNAPBACK

    session.commit(move, result)
    policy.on_move_accepted(session, move, result)
    return DropResult.ACCEPTED


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class SessionController:
    """Owns at most one Session per mode and their engine channels."""

    def __init__(
        self,
        rules: RulesAuthority | None = None,
        channel_factory: ChannelFactory | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Create a controller with no active sessions.

        Args:
            rules: Rules authority shared by all sessions.
            channel_factory: Builds an unstarted EngineChannel. Defaults
                to a Stockfish-backed channel.
            rng: Randomness for puzzle/challenge selection.
        """
        self._rules = rules or RulesAuthority()
        self._channel_factory = channel_factory or EngineChannel
        self._rng = rng
        self._sessions: dict[Mode, Session] = {}
        # start/reset/destroy await channel I/O; serialise them
        self._lock = asyncio.Lock()

    def get(self, mode: Mode | str) -> Session | None:
        return self._sessions.get(Mode(mode))

    async def start(self, mode: Mode | str, **options) -> Session:
        """Start a session for mode, or return the one already running."""
        mode = Mode(mode)
        async with self._lock:
            existing = self._sessions.get(mode)
            if existing is not None:
                logger.debug("%s session already active; start ignored", mode.value)
                return existing

            session = await self._create(mode, options)
            self._sessions[mode] = session
            return session

    async def reset(self, mode: Mode | str, **options) -> Session:
        """Discard the mode's session and build a fresh one.

        The engine channel is never reused. Options default to the ones
        the discarded session was started with.
        """
        mode = Mode(mode)
        async with self._lock:
            old = self._sessions.pop(mode, None)
            if old is not None:
                options = {**old.options, **options}
                await self._teardown(old)

            session = await self._create(mode, options)
            self._sessions[mode] = session
            logger.info("%s session reset", mode.value)
            return session

    async def destroy(self, mode: Mode | str) -> bool:
        """Tear down the mode's session. Returns False if none was active."""
        async with self._lock:
            session = self._sessions.pop(Mode(mode), None)
            if session is None:
                return False
            await self._teardown(session)
            return True

    async def close(self) -> None:
        """Tear down every active session."""
        async with self._lock:
            while self._sessions:
                _, session = self._sessions.popitem()
                await self._teardown(session)

    async def _create(self, mode: Mode, options: dict) -> Session:
        policy = build_policy(mode, self._rng, **options)
        position = self._rules.new_game(policy.starting_fen)

        channel = None
        if policy.uses_engine:
            channel = self._channel_factory()
            await channel.start()

        session = Session(
            mode=mode,
            position=position,
            policy=policy,
            rules=self._rules,
            channel=channel,
            options=dict(options),
        )
        if channel is not None:
            channel.on_event(partial(self._route, session))
        policy.start(session)
        logger.info("Started %s session %s", mode.value, session.id)
        return session

    async def _teardown(self, session: Session) -> None:
        if session.channel is not None:
            await session.channel.stop()
        logger.info("Ended %s session %s", session.mode.value, session.id)

    def _route(self, session: Session, reply: EngineReply) -> None:
        if self._sessions.get(session.mode) is not session:
            logger.debug("Reply for retired session %s dropped", session.id)
            return
        session.policy.on_engine_reply(session, reply)
        if not session.pending_request:
            session.settled.set()
