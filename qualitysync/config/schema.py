from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_QUALITY_KEYWORDS = [
    "Quality",
    "Kualitas",
    "Qualität",
    "Qualité",
    "Calidad",
    "Qualità",
    "画質",
    "화질",
    "คุณภาพ",
    "Vídeo",
    "Resolusi",
    "Resolution",
]


class SelectorChain(BaseModel):
    """Ordered alternative descriptors for one semantic element."""

    model_config = ConfigDict(frozen=True)

    descriptors: tuple[str, ...]

    @field_validator("descriptors")
    @classmethod
    def validate_descriptors(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(item.strip() for item in value if item and item.strip())
        if not cleaned:
            raise ValueError("A selector chain needs at least one descriptor")
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def accept_plain_list(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return {"descriptors": value}
        return value

    @classmethod
    def of(cls, *descriptors: str) -> SelectorChain:
        return cls(descriptors=tuple(descriptors))


class SelectorSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    settings_button: SelectorChain = SelectorChain.of(
        ".ytp-settings-button",
        '[data-tooltip-target-id="ytp-settings-button"]',
        '[aria-label*="settings"]',
    )
    quality_menu: SelectorChain = SelectorChain.of(
        ".ytp-menuitem-label",
        ".ytp-quality-menu-button",
        '[aria-label*="quality"]',
    )
    quality_options: SelectorChain = SelectorChain.of(
        ".ytp-quality-menu .ytp-menuitem-label",
        ".ytp-quality-submenu .ytp-menuitem",
        "[data-quality-option]",
    )


class PremiumMarkers(BaseModel):
    model_config = ConfigDict(frozen=True)

    text_marker: str = "premium"
    gating_attribute: str = "data-premium-only"
    gating_class: str = "premium-quality"
    badge_selector: str = ".premium-badge, .premium-icon"


class PollingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=50, ge=0)
    interval_seconds: float = Field(default=0.1, ge=0)
    frame_seconds: float = Field(default=1 / 60, ge=0)


class QualityConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_quality: int = 1080
    storage_keys: tuple[str, ...] = ("yt-player-quality",)
    record_ttl_days: int = Field(default=31, ge=0)
    quality_keywords: tuple[str, ...] = tuple(DEFAULT_QUALITY_KEYWORDS)
    label_keyword: str = "quality"
    selectors: SelectorSet = Field(default_factory=SelectorSet)
    premium: PremiumMarkers = Field(default_factory=PremiumMarkers)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    close_delay_seconds: float = Field(default=0.3, ge=0)
    pre_attempt_delay_seconds: float = Field(default=0.0, ge=0)

    @field_validator("target_quality")
    @classmethod
    def validate_target(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("target_quality must be a positive resolution")
        return value

    @field_validator("storage_keys")
    @classmethod
    def validate_storage_keys(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("At least one storage key is required")
        return value


class TriggerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    navigation_event: str = "yt-navigate-finish"
    watch_path: str = "/watch"
    pump_interval_seconds: float = Field(default=0.25, gt=0)


class ViewModeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    storage_key: str = "youtubeAutoFullscreenConfig"
    mode: Literal["fullscreen", "theater", "custom", "normal"] = "theater"
    delay_ms: int = Field(default=1500, ge=0)
    skip_shorts: bool = True
    skip_playlist: bool = False


class EnvironmentConfig(BaseModel):
    base_url: str = "https://www.youtube.com"
    browser: str = "chrome"
    default_timeout_seconds: int = 30
    headless: bool = False
    artifacts_root: str = "artifacts"
    capture_artifacts: bool = False

    @field_validator("browser")
    @classmethod
    def validate_browser(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {"chrome", "firefox"}:
            raise ValueError(f"Unsupported browser: {value}")
        return normalized


class SyncConfig(BaseModel):
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)
    view_mode: ViewModeConfig = Field(default_factory=ViewModeConfig)
