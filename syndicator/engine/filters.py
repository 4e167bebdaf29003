"""Pre-rewrite content filter for landing pages and empty stubs."""

from __future__ import annotations

from dataclasses import dataclass

LANDING_PAGE_PHRASES = (
    "add to cart",
    "buy now",
    "buy online",
    "shop now",
    "order now",
    "checkout now",
    "get yours today",
    "claim yours now",
    "limited stock remaining",
)


@dataclass(slots=True)
class FilterResult:
    should_filter: bool
    reason: str = ""


def filter_content(
    title: str, content: str, *, cta_threshold: int = 3, min_chars: int = 50
) -> FilterResult:
    """Only obvious product pages and near-empty bodies are filtered."""

    haystack = f"{title} {content}".lower()
    cta_count = sum(1 for phrase in LANDING_PAGE_PHRASES if phrase in haystack)
    if cta_count >= cta_threshold:
        return FilterResult(
            True, f"Contains {cta_count} sales call-to-action phrases (likely a product page)"
        )
    if len(content.strip()) < min_chars:
        return FilterResult(True, "Content too short to rewrite")
    return FilterResult(False)


__all__ = ["FilterResult", "LANDING_PAGE_PHRASES", "filter_content"]
