from __future__ import annotations

import pytest

from qualitysync.config.schema import PollingConfig, QualityConfig, SyncConfig, TriggerConfig
from qualitysync.core.metadata import AttemptState
from qualitysync.engine import QualitySyncEngine
from qualitysync.logging.audit import AttemptAuditLogger
from tests.helpers import FakeElement, youtube_menu


def make_config() -> SyncConfig:
    return SyncConfig(
        quality=QualityConfig(polling=PollingConfig(max_attempts=3, interval_seconds=0.1, frame_seconds=0.01)),
        trigger=TriggerConfig(pump_interval_seconds=0.05),
    )


@pytest.mark.asyncio
async def test_arm_and_run_converges_then_navigation_rechecks_without_ui(host, fake_clock, tmp_path):
    menu = youtube_menu(host, ["1080p", "720p"])
    audit_logger = AttemptAuditLogger(tmp_path)
    engine = QualitySyncEngine(host, make_config(), audit_logger=audit_logger, sleep=fake_clock.sleep)

    first = await engine.arm_and_run()

    assert first.reason == "applied"
    assert host.clicks[-1] is menu["options"][0]
    clicks_after_first = host.activation_count

    host.navigate("/watch", "?v=next")
    host.mutate()
    engine.pump.pump_once()
    await engine.trigger.drain()

    assert engine.trigger.scheduled == 2
    assert host.activation_count == clicks_after_first
    entries = audit_logger.read_all()
    assert [entry["reason"] for entry in entries] == ["applied", "already_converged"]


@pytest.mark.asyncio
async def test_page_without_player_is_a_quiet_no_op(host, fake_clock):
    engine = QualitySyncEngine(host, make_config(), sleep=fake_clock.sleep)

    outcome = await engine.arm_and_run()

    assert outcome.final_state is AttemptState.DONE
    assert outcome.reason == "settings_not_found"
    assert host.activation_count == 0


@pytest.mark.asyncio
async def test_run_for_pumps_until_duration_elapses(host, fake_clock):
    youtube_menu(host, ["720p"])
    engine = QualitySyncEngine(host, make_config(), sleep=fake_clock.sleep)

    await engine.run_for(1.0)

    assert engine.trigger.scheduled == 1
    assert 1.0 in fake_clock.sleeps
    assert engine._pump_task is None


@pytest.mark.asyncio
async def test_view_mode_runs_alongside_quality(host, fake_clock):
    config = make_config().model_copy(
        update={"view_mode": make_config().view_mode.model_copy(update={"enabled": True, "delay_ms": 0})}
    )
    youtube_menu(host, ["1080p"])
    host.show("#movie_player", FakeElement())
    engine = QualitySyncEngine(host, config, sleep=fake_clock.sleep)

    await engine.arm_and_run()
    await engine.trigger.drain()

    assert engine.view_mode is not None
    assert engine.trigger.scheduled == 1
    # The video never starts playing, so view mode polls on the engine clock.
    assert fake_clock.sleeps.count(0.5) > 1
