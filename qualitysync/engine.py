from __future__ import annotations

import asyncio
import logging
from typing import Callable

from qualitysync.config.schema import SyncConfig
from qualitysync.core.actions import SafeActions
from qualitysync.core.controller import ConvergenceController
from qualitysync.core.dom_monitor import DomMonitor, EventPump
from qualitysync.core.finder import MultiSelectorLocator
from qualitysync.core.metadata import AttemptOutcome
from qualitysync.core.store import QualityStateStore
from qualitysync.core.trigger import ReactiveTrigger
from qualitysync.core.view_mode import ViewModeController
from qualitysync.utils.scoring import QualityRanker
from qualitysync.utils.wait import BoundedPoller

log = logging.getLogger(__name__)


class QualitySyncEngine:
    """Wires the locator, store, controller and trigger against one page."""

    def __init__(
        self,
        host,
        config: SyncConfig,
        audit_logger=None,
        on_not_found: Callable[[str], None] | None = None,
        sleep=None,
    ) -> None:
        self.host = host
        self.config = config
        self.audit_logger = audit_logger
        self.on_not_found = on_not_found
        self._sleep = sleep or asyncio.sleep
        self.locator = MultiSelectorLocator(host)
        self.store = QualityStateStore(host.storage, config.quality, host.now_ms)
        self.poller = BoundedPoller(config.quality.polling, sleep=self._sleep)
        self.ranker = QualityRanker()
        self.monitor = DomMonitor(config.trigger.navigation_event)
        self.pump = EventPump(host, self.monitor, config.trigger.pump_interval_seconds, sleep=self._sleep)
        self.trigger = ReactiveTrigger(self.pump, config.trigger, self.settings_present, self.run_attempt)
        self.view_mode = ViewModeController(host, config.view_mode, sleep=self._sleep) if config.view_mode.enabled else None
        self._pump_task: asyncio.Task | None = None

    def create_controller(self) -> ConvergenceController:
        return ConvergenceController(
            host=self.host,
            config=self.config.quality,
            locator=self.locator,
            store=self.store,
            poller=self.poller,
            actions=SafeActions(self.host),
            ranker=self.ranker,
            audit_logger=self.audit_logger,
            on_not_found=self.on_not_found,
            sleep=self._sleep,
        )

    async def run_attempt(self) -> AttemptOutcome:
        outcome = await self.create_controller().attempt()
        log.info("Attempt finished: %s", outcome.reason)
        return outcome

    def settings_present(self) -> bool:
        return self.locator.find_one(self.config.quality.selectors.settings_button) is not None

    async def arm_and_run(self) -> AttemptOutcome | None:
        """Arms every trigger path and performs the initial attempt."""

        self.pump.install()
        self.trigger.arm()
        if self.view_mode is not None:
            self.pump.on_load(self._schedule_view_mode)
            self.pump.on_navigation(lambda path, search: self._schedule_view_mode())
            self._schedule_view_mode()
        return await self.trigger.schedule()

    def start(self) -> asyncio.Task:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(self.pump.run())
        return self._pump_task

    async def stop(self, drain: bool = True) -> None:
        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
            self._pump_task = None
        if drain:
            await self.trigger.drain()
        else:
            self.trigger.cancel_pending()

    async def run_for(self, duration: float | None) -> None:
        """Arms the engine and keeps pumping page events for ``duration`` seconds (forever if None)."""

        await self.arm_and_run()
        pump_task = self.start()
        try:
            if duration is None:
                await pump_task
            else:
                await self._sleep(duration)
        finally:
            await self.stop(drain=False)

    def _schedule_view_mode(self) -> None:
        self.trigger.schedule(self.view_mode.apply)
