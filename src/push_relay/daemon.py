"""Long-running relay: wires the supervisor to real collaborators."""

import asyncio
import signal

import structlog
import websockets

from push_relay import __version__
from push_relay import logging as console
from push_relay.api_client import ApiClient
from push_relay.backoff import Backoff
from push_relay.config import Config
from push_relay.drain import MessageDrain
from push_relay.icon_cache import IconCache
from push_relay.models import Credentials
from push_relay.notifications import Notifier
from push_relay.session import Connect, ConnectionSession
from push_relay.supervisor import Supervisor

log = structlog.get_logger()


class RelayDaemon:
    """Owns the collaborators for one relay run.

    SIGTERM/SIGINT set a stop event that the session's read wait and every
    retry sleep observe, so shutdown never waits out a 60s backoff.
    """

    def __init__(
        self,
        config: Config,
        credentials: Credentials,
        api: ApiClient | None = None,
        notifier: Notifier | None = None,
        connect: Connect = websockets.connect,
    ):
        self.config = config
        self.credentials = credentials
        self.api = api or ApiClient(config.api)
        self.notifier = notifier or Notifier(config.notifications)
        self.icons = IconCache(config.icon_dir, self.api)
        self.drain = MessageDrain(self.api, self.icons, self.notifier)
        self._connect = connect
        self._stop_event = asyncio.Event()

        relay = config.relay
        self.backoff = Backoff(
            floor=relay.backoff_floor,
            ceiling=relay.backoff_ceiling,
            step=relay.backoff_step,
            sleep=self._sleep,
        )
        self.supervisor = Supervisor(
            credentials,
            self.backoff,
            self._make_session,
            recover_delay=relay.recover_delay,
            sleep=self._sleep,
        )

    def _make_session(self, credentials, backoff, on_authenticated) -> ConnectionSession:
        return ConnectionSession(
            url=self.config.relay.websocket_url,
            credentials=credentials,
            backoff=backoff,
            drain=self.drain.drain,
            read_timeout=self.config.relay.read_timeout,
            connect=self._connect,
            on_authenticated=on_authenticated,
        )

    async def _sleep(self, delay: float) -> None:
        """Sleep that wakes early when a stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass

    def request_stop(self) -> None:
        """Ask the relay to finish after the current step."""
        self._stop_event.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("signal_received", signal=sig.name)
        console.signal_received(sig.name)
        self.request_stop()

    async def start(self) -> None:
        """Run the relay until stopped or a fatal protocol error."""
        log.info("relay_starting", version=__version__, device_id=self.credentials.device_id)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        console.relay_started(self.credentials.device_id)
        await self.supervisor.run(self._stop_event)

    async def stop(self) -> None:
        """Release network resources."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

        await self.api.close()
        log.info("relay_stopped", attempts=self.supervisor.attempts)
        console.relay_stopped()


async def run_daemon(config: Config, credentials: Credentials) -> None:
    """Run the relay until shutdown.

    Raises:
        FatalProtocolError: If the server aborted the session
    """
    daemon = RelayDaemon(config, credentials)
    try:
        await daemon.start()
    except Exception as e:
        log.exception("relay_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()
