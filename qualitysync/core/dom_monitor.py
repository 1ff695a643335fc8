from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from selenium.common.exceptions import WebDriverException

log = logging.getLogger(__name__)

INSTALL_MONITOR_SCRIPT = r"""
const navigationEvent = arguments[0];
const mutationLimit = arguments[1];
if (!window.__qs_mutations__) {
  window.__qs_mutations__ = [];
}
if (!window.__qs_signals__) {
  window.__qs_signals__ = [];
}
if (window.__qs_monitor_installed__) {
  return false;
}

const stamp = (record) => {
  window.__qs_seq__ = (window.__qs_seq__ || 0) + 1;
  record.seq = window.__qs_seq__;
  record.timestamp = Date.now();
  return record;
};

// Only mutation records are capped; navigation signals are never evicted.
const pushMutation = (record) => {
  const buffer = window.__qs_mutations__;
  buffer.push(stamp(record));
  if (buffer.length > mutationLimit) {
    buffer.splice(0, buffer.length - mutationLimit);
  }
};

const pushSignal = (record) => {
  window.__qs_signals__.push(stamp(record));
};

const observeRoot = (root, label) => {
  const observer = new MutationObserver((mutations) => {
    for (const mutation of mutations) {
      pushMutation({
        type: "mutation",
        kind: mutation.type,
        targetTag: mutation.target && mutation.target.tagName ? mutation.target.tagName.toLowerCase() : "",
        addedCount: mutation.addedNodes ? mutation.addedNodes.length : 0,
        removedCount: mutation.removedNodes ? mutation.removedNodes.length : 0,
        attributeName: mutation.attributeName || "",
        root: label,
      });
      if (mutation.type === "childList") {
        for (const node of mutation.addedNodes) {
          if (node instanceof Element && node.shadowRoot) {
            observeRoot(node.shadowRoot, node.tagName.toLowerCase());
          }
        }
      }
    }
  });
  observer.observe(root, {
    attributes: true,
    childList: true,
    characterData: true,
    subtree: true,
  });
};

observeRoot(document, "document");
for (const node of document.querySelectorAll("*")) {
  if (node.shadowRoot) {
    observeRoot(node.shadowRoot, node.tagName.toLowerCase());
  }
}
document.addEventListener(navigationEvent, () => {
  pushSignal({type: "navigation", path: window.location.pathname, search: window.location.search});
});
window.__qs_monitor_installed__ = true;
return true;
"""

FLUSH_EVENTS_SCRIPT = """
const events = (window.__qs_signals__ || []).concat(window.__qs_mutations__ || []);
window.__qs_signals__ = [];
window.__qs_mutations__ = [];
events.sort((a, b) => a.seq - b.seq);
return events;
"""

MUTATION_BUFFER_LIMIT = 200


class DomMonitor:
    """Installs and reads the page-side mutation and navigation buffers."""

    def __init__(self, navigation_event: str = "yt-navigate-finish", mutation_limit: int = MUTATION_BUFFER_LIMIT) -> None:
        self.navigation_event = navigation_event
        self.mutation_limit = mutation_limit

    def install(self, host) -> bool:
        """Returns True when the monitor was missing, i.e. the document is new."""

        return bool(host.execute(INSTALL_MONITOR_SCRIPT, self.navigation_event, self.mutation_limit))

    def flush_events(self, host) -> list[dict]:
        return host.execute(FLUSH_EVENTS_SCRIPT) or []


class Subscription:
    """Handle for a mutation observer callback; disconnecting is permanent."""

    def __init__(self, pump: EventPump, callback: Callable[[list[dict]], Any]) -> None:
        self._pump = pump
        self.callback = callback
        self.connected = True

    def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            self._pump._discard(self)


class EventPump:
    """Drains the page buffer and dispatches events to Python subscribers."""

    def __init__(self, host, monitor: DomMonitor, interval: float = 0.25, sleep=None) -> None:
        self.host = host
        self.monitor = monitor
        self.interval = interval
        self._sleep = sleep or asyncio.sleep
        self._observers: list[Subscription] = []
        self._navigation_handlers: list[Callable[[str, str], Any]] = []
        self._load_handlers: list[Callable[[], Any]] = []
        self._installed_once = False

    def observe(self, callback: Callable[[list[dict]], Any]) -> Subscription:
        subscription = Subscription(self, callback)
        self._observers.append(subscription)
        return subscription

    def on_navigation(self, handler: Callable[[str, str], Any]) -> None:
        self._navigation_handlers.append(handler)

    def on_load(self, handler: Callable[[], Any]) -> None:
        self._load_handlers.append(handler)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def install(self) -> bool:
        installed_now = self.monitor.install(self.host)
        first_install = not self._installed_once
        self._installed_once = True
        return installed_now and not first_install

    def pump_once(self) -> int:
        try:
            if self.install():
                log.debug("Page monitor was missing; treating as a full load")
                self.dispatch([{"type": "load"}])
            events = self.monitor.flush_events(self.host)
        except WebDriverException as exc:
            log.debug("Event pump skipped a cycle: %s", exc.msg)
            return 0
        self.dispatch(events)
        return len(events)

    def dispatch(self, events: list[dict]) -> None:
        batch: list[dict] = []
        for event in events:
            kind = event.get("type")
            if kind == "mutation":
                batch.append(event)
                continue
            self._deliver_mutations(batch)
            batch = []
            if kind == "navigation":
                for handler in list(self._navigation_handlers):
                    handler(event.get("path", ""), event.get("search", ""))
            elif kind == "load":
                for handler in list(self._load_handlers):
                    handler()
        self._deliver_mutations(batch)

    async def run(self) -> None:
        while True:
            self.pump_once()
            await self._sleep(self.interval)

    def _deliver_mutations(self, batch: list[dict]) -> None:
        if not batch:
            return
        for subscription in list(self._observers):
            if subscription.connected:
                subscription.callback(batch)

    def _discard(self, subscription: Subscription) -> None:
        if subscription in self._observers:
            self._observers.remove(subscription)
