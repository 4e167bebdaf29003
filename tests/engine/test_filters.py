from __future__ import annotations

from syndicator.engine.filters import filter_content

LONG_BODY = "The museum opens a new wing dedicated to maritime history this weekend. " * 2


def test_landing_pages_are_filtered() -> None:
    body = LONG_BODY + " Buy now while stocks last. Add to cart today. Order now for delivery."
    verdict = filter_content("Summer sale", body)
    assert verdict.should_filter
    assert "3 sales call-to-action" in verdict.reason


def test_two_phrases_are_tolerated() -> None:
    body = LONG_BODY + " Shop now or buy online."
    assert not filter_content("Gallery news", body).should_filter


def test_short_content_is_filtered() -> None:
    verdict = filter_content("Brief", "Too short.")
    assert verdict.should_filter
    assert verdict.reason == "Content too short to rewrite"


def test_thresholds_are_configurable() -> None:
    assert filter_content("Deal", LONG_BODY + " buy now", cta_threshold=1).should_filter
    assert not filter_content("Brief", "Tiny", min_chars=0).should_filter
