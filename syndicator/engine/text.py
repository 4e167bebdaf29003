"""Small text helpers shared by the pipeline stages."""

from __future__ import annotations

import re
import unicodedata

from selectolax.parser import HTMLParser

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def collapse_whitespace(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def html_to_text(value: str | None) -> str:
    """Visible text of an HTML fragment with whitespace collapsed."""

    if not value:
        return ""
    if "<" not in value:
        return collapse_whitespace(value)
    tree = HTMLParser(value)
    for node in tree.css("script, style, noscript"):
        node.decompose()
    root = tree.body or tree.root
    if root is None:
        return ""
    return collapse_whitespace(root.text(separator=" "))


def slugify(value: str, max_length: int = 80) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG.sub("-", normalized.lower()).strip("-")
    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug or "untitled"


def truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit]


__all__ = ["collapse_whitespace", "html_to_text", "slugify", "truncate"]
