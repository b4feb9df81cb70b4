"""Outer reconnect loop around ConnectionSession."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable

import structlog

from push_relay import logging as console
from push_relay.backoff import Backoff, Sleep
from push_relay.errors import (
    FatalProtocolError,
    ReadTimeout,
    RecoverableProtocolError,
    TransportError,
)
from push_relay.models import Credentials
from push_relay.session import ConnectionSession

log = structlog.get_logger()


class SupervisorState(Enum):
    """Lifecycle of the relay."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    RECOVERING = "recovering"
    FATAL = "fatal"
    STOPPED = "stopped"


class RetryAction(Enum):
    """What the supervisor does after a session ends with an error."""

    RETRY_NOW = "retry_now"
    RETRY_AFTER_PAUSE = "retry_after_pause"
    RETRY_AFTER_BACKOFF = "retry_after_backoff"
    STOP = "stop"


def classify(exc: BaseException) -> RetryAction:
    """Map a session exit error to a retry action.

    Idle timeouts and server-requested reconnects never grow the backoff;
    transport failures and anything unrecognised do.
    """
    match exc:
        case FatalProtocolError():
            return RetryAction.STOP
        case ReadTimeout():
            return RetryAction.RETRY_NOW
        case RecoverableProtocolError():
            return RetryAction.RETRY_AFTER_PAUSE
        case TransportError():
            return RetryAction.RETRY_AFTER_BACKOFF
        case _:
            return RetryAction.RETRY_AFTER_BACKOFF


SessionFactory = Callable[[Credentials, Backoff, Callable[[], None]], ConnectionSession]


class Supervisor:
    """Drive ConnectionSession forever, classifying each exit.

    Owns the credentials and backoff for the whole run. Returns when a
    session ends voluntarily (stop event); raises FatalProtocolError when
    the server aborts; retries everything else.
    """

    def __init__(
        self,
        credentials: Credentials,
        backoff: Backoff,
        session_factory: SessionFactory,
        recover_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.credentials = credentials
        self.backoff = backoff
        self.recover_delay = recover_delay
        self.state = SupervisorState.CONNECTING
        self.attempts = 0
        self._session_factory = session_factory
        self._sleep = sleep

    def _authenticated(self) -> None:
        self.state = SupervisorState.ACTIVE
        console.session_authenticated()

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run until voluntary stop or a fatal protocol error.

        Raises:
            FatalProtocolError: If the server aborted the session
        """
        while True:
            self.state = SupervisorState.CONNECTING
            self.attempts += 1
            session = self._session_factory(self.credentials, self.backoff, self._authenticated)

            try:
                await session.run(stop)
            except Exception as exc:
                await self._handle_exit(exc)
            else:
                self.state = SupervisorState.STOPPED
                log.info("supervisor_stopped", attempts=self.attempts)
                return

            if stop is not None and stop.is_set():
                self.state = SupervisorState.STOPPED
                log.info("supervisor_stopped", attempts=self.attempts)
                return

    async def _handle_exit(self, exc: Exception) -> None:
        action = classify(exc)
        reason = f"{type(exc).__name__}: {exc}"

        match action:
            case RetryAction.STOP:
                self.state = SupervisorState.FATAL
                log.error("supervisor_fatal", error=reason)
                console.reregister_required()
                raise exc
            case RetryAction.RETRY_NOW:
                log.info("session_read_timeout", timeout=str(exc))
            case RetryAction.RETRY_AFTER_PAUSE:
                self.state = SupervisorState.RECOVERING
                log.warning("session_recoverable_error", error=reason, pause=self.recover_delay)
                console.session_lost(reason)
                if self.recover_delay > 0:
                    await self._sleep(self.recover_delay)
            case RetryAction.RETRY_AFTER_BACKOFF:
                self.state = SupervisorState.RECOVERING
                if isinstance(exc, TransportError):
                    log.warning("session_transport_error", error=reason, delay=self.backoff.current)
                else:
                    log.error(
                        "session_unexpected_error",
                        error=reason,
                        delay=self.backoff.current,
                        exc_info=exc,
                    )
                console.session_lost(reason)
                console.reconnecting_in(self.backoff.current)
                await self.backoff.wait_and_increment()
