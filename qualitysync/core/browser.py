from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver import ChromeOptions, FirefoxOptions
from selenium.webdriver.common.by import By

from qualitysync.config.schema import EnvironmentConfig
from qualitysync.core.exceptions import StorageWriteError

log = logging.getLogger(__name__)

GET_ITEM_SCRIPT = "return window.localStorage.getItem(arguments[0]);"

SET_ITEM_SCRIPT = """
try {
  window.localStorage.setItem(arguments[0], arguments[1]);
  return "";
} catch (error) {
  return String(error && error.name ? error.name + ": " + error.message : error);
}
"""


class BrowserSession:
    """Creates browser instances using Selenium Manager."""

    def __init__(self, environment: EnvironmentConfig) -> None:
        self.environment = environment

    def start(self, browser_name: str | None = None):
        normalized = (browser_name or self.environment.browser).lower()
        if normalized == "chrome":
            options = ChromeOptions()
            if self.environment.headless:
                options.add_argument("--headless=new")
            options.add_argument("--window-size=1440,1200")
            options.add_argument("--autoplay-policy=no-user-gesture-required")
            driver = webdriver.Chrome(options=options)
        elif normalized == "firefox":
            options = FirefoxOptions()
            if self.environment.headless:
                options.add_argument("-headless")
            driver = webdriver.Firefox(options=options)
        else:
            raise ValueError(f"Unsupported browser: {browser_name}")
        log.info("Started %s session (headless=%s)", normalized, self.environment.headless)
        driver.set_page_load_timeout(self.environment.default_timeout_seconds)
        driver.implicitly_wait(0)
        return driver


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class PageHost(Protocol):
    """The slice of the live page the engine is allowed to touch."""

    storage: KeyValueStorage

    def query_all(self, selector: str) -> list[Any]: ...

    def text_of(self, handle: Any) -> str: ...

    def attribute(self, handle: Any, name: str) -> str | None: ...

    def execute(self, script: str, *args: Any) -> Any: ...

    def click(self, handle: Any) -> None: ...

    def script_click(self, handle: Any) -> None: ...

    def click_body(self) -> None: ...

    def current_path(self) -> str: ...

    def current_search(self) -> str: ...

    def now_ms(self) -> int: ...


class LocalStorage:
    """Per-origin ``window.localStorage`` reached through the driver."""

    def __init__(self, driver) -> None:
        self.driver = driver

    def get(self, key: str) -> str | None:
        return self.driver.execute_script(GET_ITEM_SCRIPT, key)

    def set(self, key: str, value: str) -> None:
        try:
            failure = self.driver.execute_script(SET_ITEM_SCRIPT, key, value)
        except WebDriverException as exc:
            raise StorageWriteError(f"Storage write for {key!r} failed: {exc.msg}") from exc
        if failure:
            raise StorageWriteError(f"Storage write for {key!r} failed: {failure}")


class SeleniumPageHost:
    """PageHost backed by a Selenium WebDriver session."""

    def __init__(self, driver, storage: KeyValueStorage | None = None) -> None:
        self.driver = driver
        self.storage = storage or LocalStorage(driver)

    def query_all(self, selector: str) -> list[Any]:
        by = By.XPATH if selector.startswith(("/", "(")) else By.CSS_SELECTOR
        return self.driver.find_elements(by, selector)

    def text_of(self, handle) -> str:
        return handle.get_attribute("textContent") or ""

    def attribute(self, handle, name: str) -> str | None:
        return handle.get_attribute(name)

    def execute(self, script: str, *args: Any) -> Any:
        return self.driver.execute_script(script, *args)

    def click(self, handle) -> None:
        handle.click()

    def script_click(self, handle) -> None:
        self.driver.execute_script("arguments[0].click();", handle)

    def click_body(self) -> None:
        self.driver.execute_script("document.body && document.body.click();")

    def current_path(self) -> str:
        return self.driver.execute_script("return window.location.pathname;") or ""

    def current_search(self) -> str:
        return self.driver.execute_script("return window.location.search;") or ""

    def now_ms(self) -> int:
        return int(time.time() * 1000)
