"""Fetch, show and acknowledge queued messages until the queue is empty."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from push_relay.models import Credentials, Message, max_message_id

if TYPE_CHECKING:
    from push_relay.api_client import ApiClient
    from push_relay.icon_cache import IconCache
    from push_relay.notifications import Notifier

log = structlog.get_logger()


class MessageDrain:
    """One drain cycle runner, shared by the relay and `download`.

    Failures in fetch, icon resolution or acknowledge propagate unchanged;
    retrying is the supervisor's job.
    """

    def __init__(self, api: ApiClient, icons: IconCache, notifier: Notifier):
        self.api = api
        self.icons = icons
        self.notifier = notifier

    async def drain(self, credentials: Credentials) -> int:
        """Drain the remote queue.

        Messages can arrive between a fetch and its acknowledge, so fetching
        repeats until the server returns an empty batch.

        Returns:
            Number of messages shown
        """
        shown = 0
        while True:
            batch = await self.api.fetch_messages(credentials)
            if not batch:
                break

            for message in batch:
                await self.render(message)
            shown += len(batch)

            # Acknowledging the max id clears everything at or below it
            max_id = max_message_id(batch)
            await self.api.acknowledge(credentials, max_id)
            log.info("batch_acknowledged", count=len(batch), max_id=max_id)

        return shown

    async def render(self, message: Message) -> None:
        """Route one message to the quiet or interactive sink."""
        if message.is_low_priority:
            self.notifier.show_quiet(message.title, message.body)
            return

        icon = await self.icons.resolve(message.icon) if message.icon else None
        self.notifier.show(message.title, message.body, icon, priority=message.priority)
