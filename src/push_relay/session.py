"""One attempt at a live websocket session with the push server.

The server speaks a tiny protocol: after the client sends a login line,
every frame is a single control character (see FrameKind). A session
runs until something ends it and reports that as an exception; it never
retries on its own.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable, Protocol

import structlog
import websockets
from websockets.exceptions import WebSocketException

from push_relay.backoff import Backoff
from push_relay.errors import (
    FatalProtocolError,
    ReadTimeout,
    RecoverableProtocolError,
    TransportError,
)
from push_relay.models import Credentials

log = structlog.get_logger()

READ_TIMEOUT = 95.0

# Failures of the websocket itself; anything else (drain errors included) passes through
TRANSPORT_ERRORS = (OSError, WebSocketException)


class FrameKind(Enum):
    """Control frames sent by the push server."""

    MESSAGES = "!"  # New messages queued; drain them
    ERROR = "E"  # Server-side error; reconnect
    ABORT = "A"  # Session aborted; device must re-register
    KEEPALIVE = "#"
    UNKNOWN = ""


def classify_frame(payload: str | bytes) -> FrameKind:
    """Classify a frame by exact payload match. Anything unrecognised is UNKNOWN."""
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            return FrameKind.UNKNOWN
    if not payload:
        return FrameKind.UNKNOWN
    try:
        return FrameKind(payload)
    except ValueError:
        return FrameKind.UNKNOWN


class Connection(Protocol):
    """The part of a websocket connection the session uses."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...


Connect = Callable[[str], AsyncContextManager[Any]]
Drain = Callable[[Credentials], Awaitable[int]]


def _transport_error(exc: BaseException) -> TransportError:
    return TransportError(f"{type(exc).__name__}: {exc}")


class ConnectionSession:
    """Connect, authenticate, then read and dispatch frames until failure.

    The supervisor owns the credentials and the backoff and lends them to
    each session; a session never outlives one retry iteration.

    Exits:
        ReadTimeout: No frame within `read_timeout` seconds
        TransportError: Connect or I/O failure
        RecoverableProtocolError: Server sent "E"
        FatalProtocolError: Server sent "A"
        Anything the drain raises, unchanged
        Normal return: the stop event was set
    """

    def __init__(
        self,
        url: str,
        credentials: Credentials,
        backoff: Backoff,
        drain: Drain,
        read_timeout: float = READ_TIMEOUT,
        connect: Connect = websockets.connect,
        on_authenticated: Callable[[], None] | None = None,
    ):
        self.url = url
        self.credentials = credentials
        self.backoff = backoff
        self.read_timeout = read_timeout
        self._drain = drain
        self._connect = connect
        self._on_authenticated = on_authenticated

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run the session until an exit condition (see class docstring)."""
        log.info("session_connecting", url=self.url)
        async with contextlib.AsyncExitStack() as stack:
            try:
                ws = await stack.enter_async_context(self._connect(self.url))
                await ws.send(self.credentials.login_frame())
            except TRANSPORT_ERRORS as e:
                raise _transport_error(e) from e

            # Authentication, not the TCP connect, is what resets the backoff
            self.backoff.reset()
            log.info("session_authenticated", device_id=self.credentials.device_id)
            if self._on_authenticated is not None:
                self._on_authenticated()

            await self._read_loop(ws, stop)

    async def _read_loop(self, ws: Connection, stop: asyncio.Event | None) -> None:
        while True:
            frame = await self._next_frame(ws, stop)
            if frame is None:
                log.info("session_stopped")
                return

            kind = classify_frame(frame)
            match kind:
                case FrameKind.MESSAGES:
                    log.debug("frame_messages")
                    count = await self._drain(self.credentials)
                    log.info("drain_complete", count=count)
                case FrameKind.ERROR:
                    raise RecoverableProtocolError("Server reported an error, reconnect required")
                case FrameKind.ABORT:
                    raise FatalProtocolError("Server aborted the session, re-register the device")
                case FrameKind.KEEPALIVE:
                    log.debug("frame_keepalive")
                case _:
                    log.debug("frame_ignored", frame=repr(frame))

    async def _next_frame(self, ws: Connection, stop: asyncio.Event | None) -> str | bytes | None:
        """Wait for one frame, racing the read against the timer and the stop event.

        Returns:
            The frame payload, or None if the stop event fired first

        Raises:
            ReadTimeout: If neither arrives within read_timeout
        """
        recv = asyncio.ensure_future(ws.recv())
        waiters: set[asyncio.Future] = {recv}
        stopper = None
        if stop is not None:
            stopper = asyncio.ensure_future(stop.wait())
            waiters.add(stopper)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.read_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            # Cancelling recv() is safe: websockets never consumes a partial frame
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if recv in done:
            try:
                return recv.result()
            except TRANSPORT_ERRORS as e:
                raise _transport_error(e) from e
        if stopper is not None and stopper in done:
            return None
        raise ReadTimeout(f"No frame received in {self.read_timeout:.0f}s")
