from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable

from qualitysync.config.schema import QualityConfig
from qualitysync.core.actions import SafeActions
from qualitysync.core.exceptions import ActivationError, ElementNotFoundError, NoEligibleOptionError
from qualitysync.core.finder import MultiSelectorLocator
from qualitysync.core.metadata import AttemptOutcome, AttemptState, LocatedElement
from qualitysync.core.store import QualityStateStore
from qualitysync.utils.dom_extract import extract_quality_options
from qualitysync.utils.scoring import QualityRanker
from qualitysync.utils.wait import BoundedPoller

log = logging.getLogger(__name__)

QUALITY_LABEL_PATTERN = re.compile(r"\d{3,4}p", re.IGNORECASE)


class ConvergenceController:
    """Runs one convergence attempt as an explicit state machine.

    Every handler returns the next state. Missing elements end the attempt
    in ``DONE`` with a warning; there is no separate failure state.
    """

    def __init__(
        self,
        host,
        config: QualityConfig,
        locator: MultiSelectorLocator,
        store: QualityStateStore,
        poller: BoundedPoller,
        actions: SafeActions,
        ranker: QualityRanker | None = None,
        audit_logger=None,
        on_not_found: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable] | None = None,
    ) -> None:
        self.host = host
        self.config = config
        self.locator = locator
        self.store = store
        self.poller = poller
        self.actions = actions
        self.ranker = ranker or QualityRanker()
        self.audit_logger = audit_logger
        self.on_not_found = on_not_found
        self._sleep = sleep or asyncio.sleep
        self._handlers = {
            AttemptState.IDLE: self._start,
            AttemptState.CHECKING_STATE: self._check_state,
            AttemptState.WRITING_PREFERENCE: self._write_preference,
            AttemptState.LOCATING_SETTINGS: self._locate_settings,
            AttemptState.LOCATING_QUALITY_MENU: self._locate_quality_menu,
            AttemptState.LOCATING_OPTIONS: self._locate_options,
            AttemptState.APPLYING: self._apply,
            AttemptState.CLOSING_MENU: self._close_menu,
        }
        self._outcome = AttemptOutcome(target_quality=config.target_quality)
        self._options: list[LocatedElement] = []

    @property
    def target(self) -> int:
        return self.config.target_quality

    async def attempt(self) -> AttemptOutcome:
        self._outcome = AttemptOutcome(target_quality=self.target)
        self._options = []
        activations_before = self.actions.activations
        state = AttemptState.IDLE
        self._outcome.states.append(state)
        while state is not AttemptState.DONE:
            state = await self._step(state)
            self._outcome.states.append(state)
        self._outcome.activations = self.actions.activations - activations_before
        if self.audit_logger is not None:
            self.audit_logger.write(self._outcome)
        return self._outcome

    async def _step(self, state: AttemptState) -> AttemptState:
        try:
            return await self._handlers[state]()
        except ElementNotFoundError as exc:
            return self._not_found(exc)
        except NoEligibleOptionError as exc:
            log.warning("%s", exc)
            return self._finish("no_eligible_option")

    async def _start(self) -> AttemptState:
        if self.config.pre_attempt_delay_seconds:
            await self._sleep(self.config.pre_attempt_delay_seconds)
        return AttemptState.CHECKING_STATE

    async def _check_state(self) -> AttemptState:
        if self.store.is_converged(self.target):
            log.info("Quality already set to %dp, skipping menu interaction", self.target)
            self._outcome.converged = True
            self._outcome.reason = "already_converged"
            return AttemptState.DONE
        return AttemptState.WRITING_PREFERENCE

    async def _write_preference(self) -> AttemptState:
        if not self.store.write(self.target):
            log.warning("Failed to persist quality preference, attempting UI interaction")
        return AttemptState.LOCATING_SETTINGS

    async def _locate_settings(self) -> AttemptState:
        chain = self.config.selectors.settings_button
        settings = await self.poller.wait(lambda: self.locator.find_one(chain), label="Settings button")
        if settings is None:
            raise ElementNotFoundError("settings_not_found")
        log.info("Settings button found, clicking...")
        if not self._activate(settings):
            return self._finish("settings_not_activated")
        return AttemptState.LOCATING_QUALITY_MENU

    async def _locate_quality_menu(self) -> AttemptState:
        chain = self.config.selectors.quality_menu
        items = await self.poller.wait(lambda: self.locator.find_all(chain), label="Quality menu items")
        entry = self.pick_quality_entry(items or [])
        if entry is None:
            raise ElementNotFoundError("quality_menu_not_found", "Quality menu button not found.")
        log.info("Quality menu button found, clicking...")
        if not self._activate(entry):
            return self._finish("quality_menu_not_activated")
        return AttemptState.LOCATING_OPTIONS

    async def _locate_options(self) -> AttemptState:
        chain = self.config.selectors.quality_options
        options = await self.poller.wait(lambda: self.locator.find_all(chain), label="Quality options")
        if not options:
            raise ElementNotFoundError("options_not_found")
        self._options = options
        return AttemptState.APPLYING

    async def _apply(self) -> AttemptState:
        options = extract_quality_options(self.host, self._options, self.config.premium)
        choice = self.ranker.require(options, self.target)
        if choice.numeric_quality == self.target:
            log.info('Preferred quality "%dp" found, clicking...', self.target)
        else:
            log.warning("Preferred quality not found, selecting %s as highest available quality", choice.display_text)
        if self._activate(choice.handle):
            self._outcome.applied_option = choice.display_text
            self._outcome.converged = choice.numeric_quality == self.target
            self._outcome.reason = "applied"
        else:
            self._outcome.reason = "option_not_activated"
        return AttemptState.CLOSING_MENU

    async def _close_menu(self) -> AttemptState:
        await self._sleep(self.config.close_delay_seconds)
        log.info("Closing menu...")
        self.actions.dismiss()
        return AttemptState.DONE

    def pick_quality_entry(self, items: list[LocatedElement]) -> LocatedElement | None:
        """Keyword match first, then a resolution-looking label, then ARIA/tooltip text."""

        keywords = [keyword.lower() for keyword in self.config.quality_keywords]
        for item in items:
            text = item.text.lower()
            if any(keyword in text for keyword in keywords):
                return item
        for item in items:
            if QUALITY_LABEL_PATTERN.search(item.text):
                return item
        label_keyword = self.config.label_keyword.lower()
        for item in items:
            for name in ("aria-label", "data-tooltip"):
                value = self._attribute(item, name)
                if value and label_keyword in value.lower():
                    return item
        return None

    def _attribute(self, item: LocatedElement, name: str) -> str | None:
        try:
            return self.host.attribute(item.handle, name)
        except Exception as exc:  # noqa: BLE001 - a vanished node just has no label.
            log.debug("Reading %s failed: %s", name, exc)
            return None

    def _activate(self, element: LocatedElement) -> bool:
        try:
            self.actions.activate(element)
        except ActivationError as exc:
            log.warning("%s", exc)
            return False
        return True

    def _not_found(self, error: ElementNotFoundError) -> AttemptState:
        log.warning("%s", error)
        if self.on_not_found is not None:
            self.on_not_found(error.reason)
        return self._finish(error.reason)

    def _finish(self, reason: str) -> AttemptState:
        self._outcome.reason = reason
        return AttemptState.DONE
