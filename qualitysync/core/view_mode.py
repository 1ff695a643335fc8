from __future__ import annotations

import asyncio
import json
import logging
from typing import Literal

from pydantic import BaseModel, ValidationError

from qualitysync.config.schema import PollingConfig, SelectorChain, ViewModeConfig
from qualitysync.core.actions import SafeActions
from qualitysync.core.exceptions import ActivationError, StorageWriteError
from qualitysync.core.finder import MultiSelectorLocator
from qualitysync.utils.wait import BoundedPoller

log = logging.getLogger(__name__)

PLAYER_CHAIN = SelectorChain.of("#movie_player")
FULLSCREEN_BUTTON_CHAIN = SelectorChain.of(".ytp-fullscreen-button")
SIZE_BUTTON_CHAIN = SelectorChain.of(".ytp-size-button")

VIDEO_PLAYING_SCRIPT = """
const video = document.querySelector("video");
return Boolean(video && !video.paused);
"""

PLAYER_STATE_SCRIPT = """
return {
  theater: document.querySelector("ytd-watch-flexy[theater]") !== null,
  fullscreen: document.fullscreenElement !== null,
};
"""

EXIT_FULLSCREEN_SCRIPT = "if (document.fullscreenElement && document.exitFullscreen) { document.exitFullscreen(); }"

CUSTOM_LAYOUT_SCRIPT = """
const container = document.querySelector("#ytd-player");
if (!container) {
  return false;
}
Object.assign(container.style, {
  width: "100vw",
  height: "80vh",
  position: "fixed",
  top: "0",
  left: "0",
  zIndex: "9999",
});
return true;
"""


class ViewModePreferences(BaseModel):
    mode: Literal["fullscreen", "theater", "custom", "normal"] = "theater"
    delay_ms: int = 1500
    skip_shorts: bool = True
    skip_playlist: bool = False


class ViewModeController:
    """Puts the player into the preferred fullscreen/theater layout."""

    def __init__(self, host, config: ViewModeConfig, poller: BoundedPoller | None = None, sleep=None) -> None:
        self.host = host
        self.config = config
        self.locator = MultiSelectorLocator(host)
        self.actions = SafeActions(host)
        self._sleep = sleep or asyncio.sleep
        # Playback can take a while to start; poll it every 500ms.
        self.poller = poller or BoundedPoller(
            PollingConfig(max_attempts=20, interval_seconds=0.5, frame_seconds=0.5), sleep=self._sleep
        )
        self.preferences = self.load()

    def defaults(self) -> ViewModePreferences:
        return ViewModePreferences(
            mode=self.config.mode,
            delay_ms=self.config.delay_ms,
            skip_shorts=self.config.skip_shorts,
            skip_playlist=self.config.skip_playlist,
        )

    def load(self) -> ViewModePreferences:
        defaults = self.defaults()
        try:
            raw = self.host.storage.get(self.config.storage_key)
        except Exception as exc:  # noqa: BLE001 - unreadable storage falls back to defaults.
            log.debug("Reading view mode preferences failed: %s", exc)
            raw = None
        if not raw:
            log.info("Using default view mode settings")
            return defaults
        try:
            saved = json.loads(raw)
            if not isinstance(saved, dict):
                raise ValueError("saved settings are not an object")
            return ViewModePreferences.model_validate({**defaults.model_dump(), **saved})
        except (ValueError, ValidationError) as exc:
            log.error("Failed to load view mode settings: %s", exc)
            return defaults

    def save(self, preferences: ViewModePreferences | None = None) -> bool:
        if preferences is not None:
            self.preferences = preferences
        try:
            self.host.storage.set(self.config.storage_key, self.preferences.model_dump_json())
        except StorageWriteError as exc:
            log.error("Failed to save view mode settings: %s", exc)
            return False
        log.info("View mode settings saved")
        return True

    def should_apply(self, path: str, search: str) -> bool:
        if "/watch" not in path:
            return False
        if self.preferences.skip_shorts and "/shorts/" in path:
            return False
        if self.preferences.skip_playlist and "list=" in search:
            return False
        return True

    async def apply(self) -> str:
        if not self.should_apply(self.host.current_path(), self.host.current_search()):
            return "skipped"
        if self.locator.find_one(PLAYER_CHAIN) is None:
            return "no_player"
        playing = await self.poller.wait(lambda: bool(self.host.execute(VIDEO_PLAYING_SCRIPT)), label="Playing video")
        if not playing:
            return "not_playing"
        await self._sleep(self.preferences.delay_ms / 1000)
        state = self.host.execute(PLAYER_STATE_SCRIPT) or {}
        in_theater = bool(state.get("theater"))
        in_fullscreen = bool(state.get("fullscreen"))
        mode = self.preferences.mode
        if mode == "fullscreen":
            if not in_fullscreen and self._click(FULLSCREEN_BUTTON_CHAIN):
                return "entered_fullscreen"
        elif mode == "theater":
            if not in_theater and self._click(SIZE_BUTTON_CHAIN):
                return "entered_theater"
        elif mode == "custom":
            if in_theater:
                self._click(SIZE_BUTTON_CHAIN)
            if self.host.execute(CUSTOM_LAYOUT_SCRIPT):
                return "custom_layout"
        else:
            if in_theater:
                self._click(SIZE_BUTTON_CHAIN)
            if in_fullscreen:
                self.host.execute(EXIT_FULLSCREEN_SCRIPT)
            return "normal"
        return "unchanged"

    def _click(self, chain: SelectorChain) -> bool:
        button = self.locator.find_one(chain)
        if button is None:
            log.warning("View mode button %s not found", chain.descriptors[0])
            return False
        try:
            self.actions.activate(button)
        except ActivationError as exc:
            log.warning("%s", exc)
            return False
        return True
