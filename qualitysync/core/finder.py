from __future__ import annotations

import logging

from selenium.common.exceptions import (
    InvalidSelectorException,
    StaleElementReferenceException,
    WebDriverException,
)

from qualitysync.config.schema import SelectorChain
from qualitysync.core.metadata import LocatedElement

log = logging.getLogger(__name__)


class MultiSelectorLocator:
    """Ordered selector-chain lookup against the live page.

    The first descriptor that matches anything wins outright; results from
    different descriptors are never merged. Lookup problems count as
    "no match" for that descriptor, so callers only ever see absence.
    """

    def __init__(self, host) -> None:
        self.host = host

    def find_one(self, chain: SelectorChain) -> LocatedElement | None:
        matches = self.find_all(chain)
        return matches[0] if matches else None

    def find_all(self, chain: SelectorChain) -> list[LocatedElement]:
        for descriptor in chain.descriptors:
            located = self._query(descriptor)
            if located:
                return located
        return []

    def _query(self, descriptor: str) -> list[LocatedElement]:
        try:
            handles = self.host.query_all(descriptor)
            return [
                LocatedElement(handle=handle, text=self.host.text_of(handle), descriptor=descriptor)
                for handle in handles
            ]
        except (InvalidSelectorException, StaleElementReferenceException) as exc:
            log.debug("Descriptor %r skipped: %s", descriptor, type(exc).__name__)
        except WebDriverException as exc:
            log.debug("Descriptor %r lookup failed: %s", descriptor, exc.msg)
        return []
