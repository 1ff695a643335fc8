from __future__ import annotations

import pytest

from qualitysync.config.schema import PremiumMarkers
from qualitysync.core.exceptions import NoEligibleOptionError
from qualitysync.core.metadata import LocatedElement, QualityOption
from qualitysync.utils.dom_extract import extract_quality_options
from qualitysync.utils.scoring import QualityRanker, is_premium_gated, parse_quality
from tests.helpers import FakeElement


def option(text: str, gated: bool | None = None) -> QualityOption:
    return QualityOption(
        display_text=text,
        numeric_quality=parse_quality(text),
        is_premium_gated=is_premium_gated(text) if gated is None else gated,
        handle=LocatedElement(handle=object(), text=text),
    )


@pytest.mark.parametrize(
    ("text", "expected"),
    [("1080p", 1080), ("1080p60 HD", 1080), ("2160p (4K)", 2160), ("144P", 144), ("Auto", 0), ("", 0)],
)
def test_parse_quality(text, expected):
    assert parse_quality(text) == expected


def test_premium_option_is_excluded_in_favour_of_next_best():
    options = [option("144p"), option("1080p Premium"), option("720p")]

    chosen = QualityRanker().select(options, 1080)

    assert chosen is options[2]


def test_exact_match_wins():
    options = [option("720p"), option("1080p"), option("480p")]
    assert QualityRanker().select(options, 1080) is options[1]


def test_exact_match_beats_higher_resolution():
    options = [option("2160p"), option("1080p"), option("Auto")]
    assert QualityRanker().select(options, 1080) is options[1]


def test_falls_back_to_highest_and_sorts_unparsable_last():
    options = [option("Auto"), option("360p"), option("480p")]
    assert QualityRanker().select(options, 1080) is options[2]


def test_equal_quality_keeps_document_order():
    options = [option("Auto"), option("720p"), option("720p60")]
    assert QualityRanker().select(options, 1080) is options[1]


def test_all_gated_yields_absence():
    options = [option("1080p Premium"), option("1440p", gated=True)]
    assert QualityRanker().select(options, 1080) is None
    assert QualityRanker().select([], 1080) is None
    with pytest.raises(NoEligibleOptionError):
        QualityRanker().require(options, 1080)
    assert QualityRanker().require([option("720p")], 1080).display_text == "720p"


def test_any_premium_signal_gates_an_option():
    assert is_premium_gated("1080p PREMIUM")
    assert is_premium_gated("1080p", parent_html='<div class="premium">')
    assert is_premium_gated("1080p", has_gating_attribute=True)
    assert is_premium_gated("1080p", has_gating_class=True)
    assert is_premium_gated("1080p", has_badge=True)
    assert not is_premium_gated("1080p", parent_html="<span>1080p</span>")


def test_extract_quality_options_reads_dom_signals(host):
    elements = [
        FakeElement(text=" 1080p Enhanced bitrate ", badge=True),
        FakeElement(text="1080p", attributes={"data-premium-only": ""}),
        FakeElement(text="720p", classes=("premium-quality",)),
        FakeElement(text="480p"),
    ]
    located = [LocatedElement(handle=element, text=element.text) for element in elements]

    options = extract_quality_options(host, located, PremiumMarkers())

    assert [item.display_text for item in options] == ["1080p Enhanced bitrate", "1080p", "720p", "480p"]
    assert [item.is_premium_gated for item in options] == [True, True, True, False]
    assert QualityRanker().select(options, 1080).display_text == "480p"
