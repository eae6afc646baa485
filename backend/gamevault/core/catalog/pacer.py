"""Minimum-gap pacing for outbound catalog requests."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger("gamevault.catalog.pacer")


class RequestPacer:
    """Enforces a fixed minimum delay between consecutive requests.

    Owned by whoever drives a batch. Single lookups skip it entirely, so only
    batch loops pay the delay. Not shared across tasks.
    """

    def __init__(
        self,
        min_interval_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = max(0, min_interval_ms) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None

    async def wait(self) -> None:
        """Sleep until the minimum gap since the previous request has passed."""
        now = self._clock()
        if self._last_request is not None and self.min_interval > 0:
            remaining = self._last_request + self.min_interval - now
            if remaining > 0:
                logger.debug("Pacing catalog request", delay_seconds=round(remaining, 3))
                await self._sleep(remaining)
                now = self._clock()
        self._last_request = now
