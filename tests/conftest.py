from __future__ import annotations

from pathlib import Path

import pytest

from qualitysync.config.loader import ConfigLoader
from qualitysync.config.schema import PollingConfig, QualityConfig
from tests.helpers import FakeClock, FakePageHost, MemoryStorage


@pytest.fixture()
def suite_config():
    config_path = Path(__file__).resolve().parents[1] / "config" / "quality_sync.json"
    return ConfigLoader.load(config_path)


@pytest.fixture()
def quality_config() -> QualityConfig:
    return QualityConfig(
        target_quality=1080,
        storage_keys=("yt-player-quality", "yt-player-quality-v2"),
        polling=PollingConfig(max_attempts=5, interval_seconds=0.1, frame_seconds=0.01),
    )


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def host(storage) -> FakePageHost:
    return FakePageHost(storage=storage)


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()
