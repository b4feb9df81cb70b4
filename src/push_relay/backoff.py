"""Linear reconnect backoff."""

import asyncio
from typing import Awaitable, Callable

import structlog

log = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class Backoff:
    """Delay inserted between failed connection attempts.

    Grows linearly by `step` per wait, saturating at `ceiling`. There is no
    jitter and no retry cap; the caller needs its own fatal path to stop.
    """

    def __init__(
        self,
        floor: float = 10.0,
        ceiling: float = 60.0,
        step: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ):
        if floor <= 0 or step <= 0 or ceiling < floor:
            raise ValueError(f"Invalid backoff bounds: floor={floor} ceiling={ceiling} step={step}")
        self.floor = floor
        self.ceiling = ceiling
        self.step = step
        self.current = floor
        self._sleep = sleep

    def reset(self) -> None:
        """Return to the floor delay."""
        self.current = self.floor

    async def wait_and_increment(self) -> float:
        """Sleep for the current delay, then grow it.

        Returns:
            The delay that was slept
        """
        delay = self.current
        log.info("backoff_wait", delay=delay)
        await self._sleep(delay)
        self.current = min(self.current + self.step, self.ceiling)
        return delay
