from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from qualitysync.config.schema import TriggerConfig
from qualitysync.core.dom_monitor import EventPump, Subscription

log = logging.getLogger(__name__)


class MutationWatch:
    """One-shot observer: fires once when its precondition holds, then disconnects."""

    def __init__(self, pump: EventPump, precondition: Callable[[], Any], on_ready: Callable[[], Any]) -> None:
        self.pump = pump
        self.precondition = precondition
        self.on_ready = on_ready
        self.subscription: Subscription | None = None
        self.fired = False

    def arm(self) -> MutationWatch:
        self.subscription = self.pump.observe(self._on_batch)
        # The player may already be on the page when the navigation lands.
        self._on_batch([])
        return self

    @property
    def connected(self) -> bool:
        return self.subscription is not None and self.subscription.connected

    def _on_batch(self, batch: list[dict]) -> None:
        if not self.connected or not self.precondition():
            return
        self.subscription.disconnect()
        self.fired = True
        self.on_ready()


class ReactiveTrigger:
    """Decides when convergence attempts run.

    A full load schedules an attempt directly. A navigation to the watch path
    arms a fresh one-shot ``MutationWatch`` that schedules the attempt once
    the settings affordance is on the page.
    """

    def __init__(
        self,
        pump: EventPump,
        config: TriggerConfig,
        precondition: Callable[[], Any],
        attempt_factory: Callable[[], Awaitable[Any]],
    ) -> None:
        self.pump = pump
        self.config = config
        self.precondition = precondition
        self.attempt_factory = attempt_factory
        self.watches: list[MutationWatch] = []
        self.scheduled = 0
        self._tasks: set[asyncio.Task] = set()

    def arm(self) -> None:
        self.pump.on_navigation(self.handle_navigation)
        self.pump.on_load(self.handle_load)

    def handle_navigation(self, path: str, search: str = "") -> None:
        if path != self.config.watch_path:
            log.debug("Navigation to %s ignored", path)
            return
        for watch in self.watches:
            if watch.connected:
                watch.subscription.disconnect()
        log.debug("Navigation to %s%s, watching for the player", path, search)
        self.watches = [MutationWatch(self.pump, self.precondition, self.schedule).arm()]

    def handle_load(self) -> None:
        self.schedule()

    def schedule(self, factory: Callable[[], Awaitable[Any]] | None = None) -> asyncio.Task:
        """Runs ``factory`` (the convergence attempt by default) as a background task."""

        if factory is None:
            self.scheduled += 1
        task = asyncio.get_running_loop().create_task(self._run(factory or self.attempt_factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def _run(self, factory: Callable[[], Awaitable[Any]]):
        try:
            return await factory()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - an attempt must never take the page down with it.
            log.exception("Convergence attempt failed unexpectedly")
            return None
