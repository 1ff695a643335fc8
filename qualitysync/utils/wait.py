from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from qualitysync.config.schema import PollingConfig

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set, dict)) and not value:
        return False
    return value is not False


class BoundedPoller:
    """Re-evaluates a predicate on frame ticks until it yields a value.

    The first check happens after ``interval`` seconds; every retry after
    that waits one frame tick so that queries see the page after its next
    layout pass. Exhaustion is a normal outcome: one warning is logged and
    ``None`` is returned.
    """

    def __init__(self, polling: PollingConfig | None = None, sleep: Sleep | None = None) -> None:
        self.polling = polling or PollingConfig()
        self._sleep = sleep or asyncio.sleep

    async def wait(
        self,
        predicate: Callable[[], Any],
        max_attempts: int | None = None,
        interval: float | None = None,
        label: str = "Element",
    ):
        budget = self.polling.max_attempts if max_attempts is None else max_attempts
        delay = self.polling.interval_seconds if interval is None else interval
        await self._sleep(delay)
        attempts = 0
        while True:
            result = predicate()
            if _is_present(result):
                return result
            if attempts >= budget:
                break
            attempts += 1
            await self._sleep(self.polling.frame_seconds)
        log.warning("%s not found after %d attempts.", label, budget)
        return None
