from __future__ import annotations

import json
from pathlib import Path

from qualitysync.config.schema import SyncConfig


class ConfigLoader:
    """Loads and validates the JSON engine configuration."""

    @staticmethod
    def load(path: str | Path) -> SyncConfig:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return SyncConfig.model_validate(payload)

    @staticmethod
    def default() -> SyncConfig:
        return SyncConfig()
