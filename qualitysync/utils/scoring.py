from __future__ import annotations

import re
from typing import Iterable

from qualitysync.core.exceptions import NoEligibleOptionError
from qualitysync.core.metadata import QualityOption

QUALITY_PATTERN = re.compile(r"(\d{3,4})p", re.IGNORECASE)


def parse_quality(text: str) -> int:
    """Returns the resolution in ``text`` ("1080p HD" -> 1080), or 0."""

    match = QUALITY_PATTERN.search(text or "")
    return int(match.group(1)) if match else 0


def is_premium_gated(
    text: str,
    parent_html: str = "",
    has_gating_attribute: bool = False,
    has_gating_class: bool = False,
    has_badge: bool = False,
    marker: str = "premium",
) -> bool:
    lowered_marker = marker.lower()
    return (
        lowered_marker in (text or "").lower()
        or lowered_marker in (parent_html or "")
        or has_gating_attribute
        or has_gating_class
        or has_badge
    )


class QualityRanker:
    """Picks the option to activate from the live quality menu."""

    def select(self, options: Iterable[QualityOption], target: int) -> QualityOption | None:
        eligible = [option for option in options if not option.is_premium_gated]
        for option in eligible:
            if option.numeric_quality == target:
                return option
        if not eligible:
            return None
        # sorted() is stable, so equal qualities keep document order.
        ranked = sorted(eligible, key=lambda item: item.numeric_quality or 0, reverse=True)
        return ranked[0]

    def require(self, options: Iterable[QualityOption], target: int) -> QualityOption:
        choice = self.select(options, target)
        if choice is None:
            raise NoEligibleOptionError("No non-premium quality options found.")
        return choice
