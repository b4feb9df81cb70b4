"""Shared test fixtures for push-relay."""

import asyncio

import pytest

from push_relay.models import Credentials, Message


class FakeConnection:
    """In-memory websocket connection.

    recv() returns the scripted frames in order (raising any exception
    instances), then blocks until cancelled.
    """

    def __init__(self, frames=(), send_error: BaseException | None = None):
        self.frames = list(frames)
        self.sent: list[str] = []
        self.closed = False
        self._send_error = send_error

    async def send(self, message: str) -> None:
        if self._send_error is not None:
            raise self._send_error
        self.sent.append(message)

    async def recv(self):
        if self.frames:
            frame = self.frames.pop(0)
            if isinstance(frame, BaseException):
                raise frame
            return frame
        await asyncio.Event().wait()

    async def __aenter__(self) -> "FakeConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True


class FakeConnector:
    """Stand-in for websockets.connect, one scripted outcome per attempt."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.urls: list[str] = []

    def __call__(self, url: str):
        self.urls.append(url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeApi:
    """Records API calls; serves scripted message batches."""

    def __init__(self, batches=(), icon_data: bytes = b"\x89PNG\r\n\x1a\n"):
        self.batches = list(batches)
        self.fetch_calls = 0
        self.acks: list[int] = []
        self.icon_calls: list[str] = []
        self.icon_data = icon_data
        self.closed = False

    async def fetch_messages(self, credentials):
        self.fetch_calls += 1
        if self.batches:
            return self.batches.pop(0)
        return None

    async def acknowledge(self, credentials, max_id: int) -> None:
        self.acks.append(max_id)

    async def fetch_icon_bytes(self, icon_id: str) -> bytes:
        self.icon_calls.append(icon_id)
        return self.icon_data

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    """Async sleep replacement that records delays instead of sleeping."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_message(
    id: int,
    title: str = "Title",
    body: str = "Body",
    icon: str = "",
    priority: int = 0,
) -> Message:
    """Create a Message for testing."""
    return Message(id=id, title=title, body=body, icon=icon, priority=priority)


@pytest.fixture
def credentials() -> Credentials:
    """Registered device credentials."""
    return Credentials(secret="s3cret", device_id="dev123")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Fresh sleep recorder."""
    return SleepRecorder()
