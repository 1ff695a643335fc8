from __future__ import annotations

import logging

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    StaleElementReferenceException,
    WebDriverException,
)

from qualitysync.core.exceptions import ActivationError
from qualitysync.core.metadata import LocatedElement

log = logging.getLogger(__name__)


class SafeActions:
    """Simulated user activation on located elements."""

    def __init__(self, host) -> None:
        self.host = host
        self.activations = 0

    def activate(self, element: LocatedElement) -> None:
        try:
            self.host.click(element.handle)
        except (ElementClickInterceptedException, ElementNotInteractableException):
            # Overlays and hidden menu rows still accept a dispatched click.
            try:
                self.host.script_click(element.handle)
            except WebDriverException as exc:
                raise ActivationError(f"Could not activate {element.text!r}: {exc.msg}") from exc
        except StaleElementReferenceException as exc:
            raise ActivationError(f"Element {element.text!r} was replaced before activation") from exc
        except WebDriverException as exc:
            raise ActivationError(f"Could not activate {element.text!r}: {exc.msg}") from exc
        self.activations += 1

    def dismiss(self) -> bool:
        try:
            self.host.click_body()
        except WebDriverException as exc:
            log.warning("Could not dismiss the menu: %s", exc.msg)
            return False
        self.activations += 1
        return True
