"""Humanized pacing between browser interactions."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class Pacer:
    """
    Sleeps for a uniformly random delay in ``[min_ms, max_ms]``.

    Inhumanly regular timing is one of the signals anti-automation heuristics key on,
    so every interaction that a person would pause before goes through here.

    Args:
        min_ms: Lower bound of the delay in milliseconds
        max_ms: Upper bound of the delay in milliseconds
        rng: Optional random generator (seeded in tests)
        sleep: Coroutine used to wait, ``asyncio.sleep`` by default
    """

    def __init__(
        self,
        min_ms: int = 600,
        max_ms: int = 1400,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError(f"Invalid pacing range: {min_ms}-{max_ms} ms")
        self.min_ms = min_ms
        self.max_ms = max_ms
        self._rng = rng or random.Random()
        self._sleep = sleep

    def next_delay_ms(self, scale: float = 1.0) -> float:
        return self._rng.uniform(self.min_ms, self.max_ms) * scale

    async def pause(self, scale: float = 1.0) -> float:
        """Wait for one randomized delay and return it in milliseconds."""
        delay_ms = self.next_delay_ms(scale)
        if delay_ms > 0:
            logger.debug("Pacing for %.0f ms", delay_ms)
            await self._sleep(delay_ms / 1000)
        return delay_ms


class NullPacer(Pacer):
    """Zero-delay pacer for tests and batch tooling."""

    def __init__(self):
        super().__init__(min_ms=0, max_ms=0)

    async def pause(self, scale: float = 1.0) -> float:
        return 0.0
