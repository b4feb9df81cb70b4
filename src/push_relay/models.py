"""Data types shared by the relay components."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Credentials:
    """Device credentials obtained once by `register`.

    Immutable for the lifetime of a run. The secret is masked in repr so a
    stray log line never leaks it.
    """

    secret: str = field(repr=False)
    device_id: str

    def login_frame(self) -> str:
        """Authentication frame sent right after the websocket opens."""
        return f"login:{self.device_id}:{self.secret}\n"


@dataclass(frozen=True)
class Message:
    """One queued notification as returned by the messages endpoint."""

    id: int
    title: str
    body: str
    icon: str = ""
    priority: int = 0
    app: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Message":
        """Build a Message from the API's JSON object.

        The API omits `title` for messages sent without one; the sending
        application's name is used instead.
        """
        app = data.get("app", "")
        return cls(
            id=int(data["id"]),
            title=data.get("title") or app,
            body=data.get("message", ""),
            icon=data.get("icon", ""),
            priority=int(data.get("priority", 0)),
            app=app,
        )

    @property
    def is_low_priority(self) -> bool:
        """Priority below zero goes to the silent textual sink."""
        return self.priority < 0


def max_message_id(batch: list[Message]) -> int:
    """Highest id in a batch; batches are not guaranteed to be sorted."""
    return max(message.id for message in batch)
