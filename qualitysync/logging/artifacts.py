from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

log = logging.getLogger(__name__)


class ArtifactManager:
    """Stores page snapshots taken when an expected element never appeared."""

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.dom_root = self.root / "dom_snapshots"
        self.screenshot_root = self.root / "screenshots"
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.dom_root.mkdir(parents=True, exist_ok=True)
        self.screenshot_root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def timestamp() -> str:
        return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")

    def write_dom_snapshot(self, label: str, page_source: str, timestamp: str | None = None) -> Path:
        stamp = timestamp or self.timestamp()
        path = self.dom_root / f"{stamp}_{label}.html"
        path.write_text(page_source, encoding="utf-8")
        return path

    def screenshot_path(self, label: str, timestamp: str | None = None) -> Path:
        stamp = timestamp or self.timestamp()
        return self.screenshot_root / f"{stamp}_{label}.png"

    def capture(self, driver, label: str) -> dict[str, str]:
        """Saves page source and a screenshot; failures are logged, not raised."""

        stamp = self.timestamp()
        paths: dict[str, str] = {}
        try:
            paths["dom_snapshot"] = str(self.write_dom_snapshot(label, driver.page_source, stamp))
            screenshot = self.screenshot_path(label, stamp)
            if driver.save_screenshot(str(screenshot)):
                paths["screenshot"] = str(screenshot)
        except Exception as exc:  # noqa: BLE001
            log.debug("Artifact capture for %s failed: %s", label, exc)
        return paths
