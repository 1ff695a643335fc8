from __future__ import annotations

import logging
from typing import Any

from selenium.common.exceptions import WebDriverException

from qualitysync.config.schema import PremiumMarkers
from qualitysync.core.metadata import LocatedElement, QualityOption
from qualitysync.utils.scoring import is_premium_gated, parse_quality

log = logging.getLogger(__name__)

COLLECT_OPTION_SIGNALS_SCRIPT = r"""
const nodes = arguments[0] || [];
const gatingAttribute = arguments[1];
const gatingClass = arguments[2];
const badgeSelector = arguments[3];
return nodes.map((node) => {
  if (!(node instanceof Element)) {
    return null;
  }
  let badge = false;
  try {
    badge = node.querySelector(badgeSelector) !== null;
  } catch (error) {
    badge = false;
  }
  return {
    text: (node.textContent || "").trim(),
    parent_html: node.parentElement ? node.parentElement.innerHTML : "",
    has_gating_attribute: node.hasAttribute(gatingAttribute),
    has_gating_class: node.classList.contains(gatingClass),
    has_badge: badge,
  };
});
"""


def collect_option_signals(host, elements: list[LocatedElement], markers: PremiumMarkers) -> list[dict[str, Any]]:
    """Reads premium signals for every option in one script round-trip."""

    handles = [element.handle for element in elements]
    try:
        raw = host.execute(
            COLLECT_OPTION_SIGNALS_SCRIPT,
            handles,
            markers.gating_attribute,
            markers.gating_class,
            markers.badge_selector,
        )
    except WebDriverException as exc:
        log.debug("Option signal collection failed: %s", exc.msg)
        raw = None
    if not isinstance(raw, list) or len(raw) != len(elements):
        return [{} for _ in elements]
    return [item if isinstance(item, dict) else {} for item in raw]


def extract_quality_options(host, elements: list[LocatedElement], markers: PremiumMarkers) -> list[QualityOption]:
    options: list[QualityOption] = []
    for element, signals in zip(elements, collect_option_signals(host, elements, markers)):
        text = (signals.get("text") or element.text or "").strip()
        options.append(
            QualityOption(
                display_text=text,
                numeric_quality=parse_quality(text),
                is_premium_gated=is_premium_gated(
                    text,
                    parent_html=signals.get("parent_html", ""),
                    has_gating_attribute=bool(signals.get("has_gating_attribute")),
                    has_gating_class=bool(signals.get("has_gating_class")),
                    has_badge=bool(signals.get("has_badge")),
                    marker=markers.text_marker,
                ),
                handle=element,
            )
        )
    return options
