from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from qualitysync.config.loader import ConfigLoader
from qualitysync.config.schema import QualityConfig, SyncConfig
from qualitysync.core.browser import BrowserSession, SeleniumPageHost
from qualitysync.engine import QualitySyncEngine
from qualitysync.logging.artifacts import ArtifactManager
from qualitysync.logging.audit import AttemptAuditLogger

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a video player's playback quality at a target resolution")
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--url", help="Page to open (defaults to environment.base_url)")
    parser.add_argument("--browser", choices=["chrome", "firefox"], help="Browser to drive")
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    parser.add_argument("--target-quality", type=int, help="Target resolution, e.g. 1080")
    parser.add_argument("--duration", type=float, help="Seconds to keep watching (forever when omitted)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def resolve_config(args: argparse.Namespace) -> SyncConfig:
    config = ConfigLoader.load(args.config) if args.config else ConfigLoader.default()
    environment = config.environment.model_copy(
        update={
            "browser": args.browser or config.environment.browser,
            "headless": args.headless or config.environment.headless,
        }
    )
    quality = config.quality
    if args.target_quality:
        quality = QualityConfig.model_validate({**quality.model_dump(), "target_quality": args.target_quality})
    return config.model_copy(update={"environment": environment, "quality": quality})


async def run(config: SyncConfig, url: str, duration: float | None) -> None:
    driver = BrowserSession(config.environment).start()
    try:
        driver.get(url)
        host = SeleniumPageHost(driver)
        audit_logger = AttemptAuditLogger(config.environment.artifacts_root)
        on_not_found = None
        if config.environment.capture_artifacts:
            artifacts = ArtifactManager(config.environment.artifacts_root)
            on_not_found = lambda reason: artifacts.capture(driver, reason)  # noqa: E731
        engine = QualitySyncEngine(host, config, audit_logger=audit_logger, on_not_found=on_not_found)
        await engine.run_for(duration)
    finally:
        driver.quit()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    config = resolve_config(args)
    url = args.url or config.environment.base_url
    log.info("Targeting %dp on %s", config.quality.target_quality, url)
    try:
        asyncio.run(run(config, url, args.duration))
    except KeyboardInterrupt:
        log.info("Stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
