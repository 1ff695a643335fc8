from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(slots=True)
class LocatedElement:
    """A live node handle plus the text it had when it was looked up."""

    handle: Any
    text: str
    descriptor: str = ""


@dataclass(slots=True)
class QualityOption:
    display_text: str
    numeric_quality: int | None
    is_premium_gated: bool
    handle: LocatedElement


@dataclass(slots=True)
class PersistedQualityRecord:
    quality: int
    previous_quality: int
    created_at: int | None = None
    expires_at: int | None = None
    shape: str = "wrapped"


class AttemptState(str, Enum):
    IDLE = "idle"
    CHECKING_STATE = "checking_state"
    WRITING_PREFERENCE = "writing_preference"
    LOCATING_SETTINGS = "locating_settings"
    LOCATING_QUALITY_MENU = "locating_quality_menu"
    LOCATING_OPTIONS = "locating_options"
    APPLYING = "applying"
    CLOSING_MENU = "closing_menu"
    DONE = "done"


@dataclass(slots=True)
class AttemptOutcome:
    target_quality: int
    reason: str = ""
    converged: bool = False
    applied_option: str = ""
    states: list[AttemptState] = field(default_factory=list)
    activations: int = 0

    @property
    def final_state(self) -> AttemptState:
        return self.states[-1] if self.states else AttemptState.IDLE
