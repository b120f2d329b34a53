"""Engine channel: one asynchronous UCI engine process per session.

The channel speaks the raw line protocol (uci / position fen / go depth)
over a transport and turns the engine's output into a typed stream of
EngineReply values. It enforces single-flight: at most one search is
outstanding. A request made while another is in flight is held back and
replaces any earlier held-back request; it goes out as soon as the
in-flight bestmove arrives.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Protocol

from chess_sessions import config
from chess_sessions.models import AnalysisRequest, BestMove, EngineReply
from chess_sessions.protocol import (
    QUIT,
    UCI_HANDSHAKE,
    decode_line,
    format_go,
    format_position,
)

logger = logging.getLogger(__name__)

_CLOSE_TIMEOUT_S = 2.0


class ChannelClosedError(RuntimeError):
    """Raised when a request is made on a channel that is not running."""


def find_stockfish() -> str:
    """Auto-detect Stockfish binary path.

    Checks the CHESS_SESSIONS_STOCKFISH env var, then known install
    paths, then falls back to PATH lookup.

    Returns:
        Path to Stockfish binary.

    Raises:
        FileNotFoundError: If Stockfish is not found anywhere.
    """
    explicit = os.environ.get(config.STOCKFISH_ENV)
    if explicit:
        if Path(explicit).is_file():
            return explicit
        raise FileNotFoundError(
            f"{config.STOCKFISH_ENV} points to a missing file: {explicit}"
        )

    for path_str in config.STOCKFISH_PATHS:
        if Path(path_str).is_file():
            return path_str

    which_result = shutil.which("stockfish")
    if which_result is not None:
        return which_result

    raise FileNotFoundError(
        f"Stockfish not found. Install it or set {config.STOCKFISH_ENV}."
    )


class EngineTransport(Protocol):
    """Line-oriented duplex link to an engine process."""

    def write_line(self, line: str) -> None:
        """Queue one line for the engine. Must not block."""

    async def read_line(self) -> str | None:
        """Next line from the engine, or None once the link is closed."""

    async def close(self) -> None:
        """Release the underlying process or connection."""


TransportFactory = Callable[[], Awaitable[EngineTransport]]


class SubprocessTransport:
    """EngineTransport over an asyncio subprocess's stdin/stdout."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    @classmethod
    async def open(cls, path: str | None = None) -> "SubprocessTransport":
        """Spawn the engine binary.

        Args:
            path: Explicit binary path. If None, uses find_stockfish().
        """
        binary = path or find_stockfish()
        process = await asyncio.create_subprocess_exec(
            binary,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.info("Started engine %s (pid %s)", binary, process.pid)
        return cls(process)

    def write_line(self, line: str) -> None:
        assert self._process.stdin is not None
        self._process.stdin.write(f"{line}\n".encode("utf-8"))

    async def read_line(self) -> str | None:
        assert self._process.stdout is not None
        raw = await self._process.stdout.readline()
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def close(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self.write_line(QUIT)
            assert self._process.stdin is not None
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            pass
        try:
            await asyncio.wait_for(self._process.wait(), timeout=_CLOSE_TIMEOUT_S)
        except asyncio.TimeoutError:
            self._process.kill()
            await self._process.wait()


class EngineChannel:
    """Single-flight request/response channel to one engine."""

    def __init__(self, transport_factory: TransportFactory | None = None) -> None:
        """Create an unstarted channel.

        Args:
            transport_factory: Coroutine function returning a connected
                transport. Defaults to spawning Stockfish.
        """
        self._factory = transport_factory or SubprocessTransport.open
        self._transport: EngineTransport | None = None
        self._reader: asyncio.Task | None = None
        self._pump: asyncio.Task | None = None
        self._queue: asyncio.Queue[EngineReply | None] = asyncio.Queue()
        self._serial = 0
        self._in_flight: AnalysisRequest | None = None
        self._held: AnalysisRequest | None = None
        self._consumed = False
        self._closed = False
        self.last_requested_fen: str | None = None

    @property
    def outstanding(self) -> bool:
        return self._in_flight is not None

    @property
    def running(self) -> bool:
        return self._transport is not None and not self._closed

    async def start(self) -> "EngineChannel":
        """Open the transport and send the handshake. Idempotent."""
        if self._closed:
            raise ChannelClosedError("Channel has been stopped")
        if self._transport is not None:
            return self

        self._transport = await self._factory()
        self._transport.write_line(UCI_HANDSHAKE)
        self._reader = asyncio.create_task(self._read_loop())
        return self

    def request(self, fen: str, depth: int) -> AnalysisRequest:
        """Ask for a search of fen to depth. Fire-and-forget.

        Returns:
            The AnalysisRequest that replies will be tagged with.

        Raises:
            ChannelClosedError: If the channel is not running.
        """
        if not self.running:
            raise ChannelClosedError("Channel is not running")

        self._serial += 1
        req = AnalysisRequest(serial=self._serial, fen=fen, depth=depth)
        self.last_requested_fen = fen

        if self._in_flight is not None:
            if self._held is not None:
                logger.debug("Replacing held request #%d", self._held.serial)
            self._held = req
            return req

        self._send(req)
        return req

    def events(self) -> AsyncIterator[EngineReply]:
        """The channel's reply stream. May be consumed only once.

        Raises:
            RuntimeError: On a second call.
        """
        if self._consumed:
            raise RuntimeError("Engine event stream already has a consumer")
        self._consumed = True
        return self._iterate()

    def on_event(self, handler: Callable[[EngineReply], None]) -> None:
        """Deliver every reply to handler, in arrival order."""
        stream = self.events()

        async def pump() -> None:
            async for reply in stream:
                handler(reply)

        self._pump = asyncio.create_task(pump())
        self._pump.add_done_callback(_report_failure)

    async def stop(self) -> None:
        """Tear down the transport. No replies are delivered afterwards."""
        if self._closed:
            return
        self._closed = True
        self._in_flight = None
        self._held = None
        self._queue.put_nowait(None)

        current = asyncio.current_task()
        tasks = [
            t for t in (self._reader, self._pump)
            if t is not None and t is not current and not t.done()
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._transport is not None:
            await self._transport.close()
        logger.info("Engine channel stopped")

    # -----------------------------------------------------------------------

    def _send(self, req: AnalysisRequest) -> None:
        assert self._transport is not None
        self._in_flight = req
        self._transport.write_line(format_position(req.fen))
        self._transport.write_line(format_go(req.depth))

    async def _iterate(self) -> AsyncIterator[EngineReply]:
        while True:
            reply = await self._queue.get()
            if reply is None or self._closed:
                return
            yield reply

    async def _read_loop(self) -> None:
        assert self._transport is not None
        while True:
            try:
                line = await self._transport.read_line()
            except (OSError, ConnectionError) as exc:
                logger.warning("Engine transport failed: %s", exc)
                line = None
            if line is None:
                logger.warning("Engine transport closed; no further replies")
                self._queue.put_nowait(None)
                return

            event = decode_line(line)
            if event is None:
                continue

            request = self._in_flight
            if request is None:
                logger.warning("Dropping unsolicited engine line: %r", line)
                continue

            if isinstance(event, BestMove):
                self._in_flight = None
                if self._held is not None:
                    held, self._held = self._held, None
                    self._send(held)

            self._queue.put_nowait(EngineReply(request=request, event=event))


def _report_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Engine event handler failed", exc_info=exc)
