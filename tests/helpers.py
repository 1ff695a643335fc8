from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from selenium.common.exceptions import WebDriverException

from qualitysync.config.schema import EnvironmentConfig
from qualitysync.core.browser import BrowserSession, SeleniumPageHost
from qualitysync.core.dom_monitor import FLUSH_EVENTS_SCRIPT, INSTALL_MONITOR_SCRIPT
from qualitysync.core.exceptions import StorageWriteError
from qualitysync.utils.dom_extract import COLLECT_OPTION_SIGNALS_SCRIPT

FIXTURE_PAGE = Path(__file__).resolve().parent / "fixtures" / "player.html"


class MemoryStorage:
    """Dict-backed KeyValueStorage; keys in ``failing_keys`` refuse writes."""

    def __init__(self, initial: dict[str, str] | None = None, failing_keys: set[str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})
        self.failing_keys = set(failing_keys or ())
        self.writes: list[tuple[str, str]] = []

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        if key in self.failing_keys:
            raise StorageWriteError(f"QuotaExceededError for {key}")
        self.values[key] = value
        self.writes.append((key, value))


@dataclass(eq=False)
class FakeElement:
    text: str = ""
    attributes: dict[str, str] = field(default_factory=dict)
    classes: tuple[str, ...] = ()
    parent_html: str = ""
    badge: bool = False
    on_click: Callable[[FakePageHost], Any] | None = None
    click_error: Exception | None = None

    def signals(self, gating_attribute: str, gating_class: str, badge_selector: str) -> dict[str, Any]:
        return {
            "text": self.text.strip(),
            "parent_html": self.parent_html,
            "has_gating_attribute": gating_attribute in self.attributes,
            "has_gating_class": gating_class in self.classes,
            "has_badge": self.badge,
        }


class FakePageHost:
    """In-memory PageHost: selectors map straight to element lists."""

    def __init__(self, storage: MemoryStorage | None = None, path: str = "/watch", search: str = "") -> None:
        self.storage = storage or MemoryStorage()
        self.path = path
        self.search = search
        self.selectors: dict[str, Any] = {}
        self.queries: list[str] = []
        self.clicks: list[FakeElement] = []
        self.script_clicks: list[FakeElement] = []
        self.body_clicks = 0
        self.body_click_error: Exception | None = None
        self.scripts: list[str] = []
        self.events: list[dict] = []
        self.monitor_installed = False
        self.script_results: dict[str, Any] = {}
        self.clock_ms = 1_700_000_000_000

    def show(self, selector: str, *elements: FakeElement) -> list[FakeElement]:
        self.selectors[selector] = list(elements)
        return list(elements)

    def hide(self, selector: str) -> None:
        self.selectors.pop(selector, None)

    def query_all(self, selector: str) -> list[Any]:
        self.queries.append(selector)
        value = self.selectors.get(selector, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def text_of(self, handle: FakeElement) -> str:
        return handle.text

    def attribute(self, handle: FakeElement, name: str) -> str | None:
        return handle.attributes.get(name)

    def execute(self, script: str, *args: Any) -> Any:
        self.scripts.append(script)
        if script == COLLECT_OPTION_SIGNALS_SCRIPT:
            return [handle.signals(*args[1:]) for handle in args[0]]
        if script == INSTALL_MONITOR_SCRIPT:
            installed_now = not self.monitor_installed
            self.monitor_installed = True
            return installed_now
        if script == FLUSH_EVENTS_SCRIPT:
            events, self.events = self.events, []
            return events
        return self.script_results.get(script)

    def click(self, handle: FakeElement) -> None:
        if handle.click_error is not None:
            raise handle.click_error
        self.clicks.append(handle)
        if handle.on_click is not None:
            handle.on_click(self)

    def script_click(self, handle: FakeElement) -> None:
        self.script_clicks.append(handle)
        if handle.on_click is not None:
            handle.on_click(self)

    def click_body(self) -> None:
        if self.body_click_error is not None:
            raise self.body_click_error
        self.body_clicks += 1

    def current_path(self) -> str:
        return self.path

    def current_search(self) -> str:
        return self.search

    def now_ms(self) -> int:
        return self.clock_ms

    @property
    def activation_count(self) -> int:
        return len(self.clicks) + len(self.script_clicks) + self.body_clicks

    def mutate(self, count: int = 1) -> None:
        for _ in range(count):
            self.events.append({"type": "mutation", "kind": "childList"})

    def navigate(self, path: str, search: str = "") -> None:
        self.path = path
        self.search = search
        self.events.append({"type": "navigation", "path": path, "search": search})

    def reload(self) -> None:
        self.monitor_installed = False
        self.events = []


class FakeClock:
    """Sleep replacement that records requested delays and yields once."""

    def __init__(self) -> None:
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        await asyncio.sleep(0)

    @property
    def elapsed(self) -> float:
        return sum(self.sleeps)


def youtube_menu(host: FakePageHost, option_labels: list[str], premium: set[str] | None = None) -> dict[str, Any]:
    """Builds a settings button that opens a menu that opens a quality list."""

    premium = premium or set()
    options = [FakeElement(text=label, parent_html="<span>premium</span>" if label in premium else "") for label in option_labels]

    def open_quality(page: FakePageHost) -> None:
        page.show(".ytp-quality-menu .ytp-menuitem-label", *options)

    quality_entry = FakeElement(text="Quality\n720p", on_click=open_quality)
    speed_entry = FakeElement(text="Playback speed")

    def open_settings(page: FakePageHost) -> None:
        page.show(".ytp-menuitem-label", speed_entry, quality_entry)

    settings = FakeElement(text="", attributes={"aria-label": "Settings"}, on_click=open_settings)
    host.show(".ytp-settings-button", settings)
    return {"settings": settings, "quality_entry": quality_entry, "options": options}


def require_fixture_page() -> str:
    if not FIXTURE_PAGE.exists():
        pytest.skip("Player fixture page is missing")
    return FIXTURE_PAGE.as_uri()


@contextmanager
def managed_host(browser_name: str = "chrome") -> Iterator[SeleniumPageHost]:
    session = BrowserSession(EnvironmentConfig(browser=browser_name, headless=True))
    try:
        driver = session.start()
    except WebDriverException as exc:
        pytest.skip(f"WebDriver could not start for {browser_name}: {exc}")
    try:
        yield SeleniumPageHost(driver)
    finally:
        driver.quit()
