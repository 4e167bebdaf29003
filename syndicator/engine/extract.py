"""Main-content extraction for article pages with selector fallbacks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from .feeds import parse_iso_datetime
from .fetcher import Fetcher
from .text import html_to_text

BODY_SELECTORS = (
    "article",
    '[role="main"]',
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content-main",
    "main",
    ".main-content",
)
NOISE_SELECTORS = (
    "script, style, nav, footer, noscript, iframe, aside, form, "
    ".navigation, .sidebar, .advertisement, .banner, .popup"
)
TITLE_SELECTORS = ('meta[property="og:title"]', 'meta[name="title"]', "h1", "title")
IMAGE_SELECTORS = ('meta[property="og:image"]', 'meta[name="twitter:image"]')
AUTHOR_SELECTORS = ('meta[name="author"]', ".author-name", ".by-author", '[rel="author"]')
DATE_SELECTORS = (
    'meta[property="article:published_time"]',
    'meta[name="publish_date"]',
    "time[datetime]",
)
_BYLINE = re.compile(r"by\s+([^,\n]+)", re.IGNORECASE)
_MIN_BODY_CHARS = 200


@dataclass(slots=True)
class ExtractedContent:
    title: str | None
    content: str
    author: str | None = None
    published_at: datetime | None = None
    featured_image: str | None = None


def _node_value(node: Node) -> str | None:
    if node.tag == "meta":
        value = node.attributes.get("content")
    elif node.tag == "time":
        value = node.attributes.get("datetime") or node.text(strip=True)
    else:
        value = node.text(separator=" ", strip=True)
    if value and value.strip():
        return value.strip()
    return None


def _first_value(tree: HTMLParser, selectors: tuple[str, ...]) -> str | None:
    for selector in selectors:
        node = tree.css_first(selector)
        if node is None:
            continue
        value = _node_value(node)
        if value:
            return value
    return None


def _author(tree: HTMLParser) -> str | None:
    author = _first_value(tree, AUTHOR_SELECTORS)
    if author:
        return author
    byline = tree.css_first(".byline")
    if byline is not None:
        match = _BYLINE.search(byline.text(separator=" ", strip=True))
        if match:
            return match.group(1).strip()
    return None


def _image(tree: HTMLParser, base_url: str) -> str | None:
    src = _first_value(tree, IMAGE_SELECTORS)
    if not src:
        node = tree.css_first("article img[src], main img[src], img[src]")
        src = node.attributes.get("src") if node is not None else None
    return urljoin(base_url, src) if src else None


def _body(tree: HTMLParser) -> str:
    for node in tree.css(NOISE_SELECTORS):
        node.decompose()
    for selector in BODY_SELECTORS:
        node = tree.css_first(selector)
        if node is None:
            continue
        html = node.html or ""
        if len(html_to_text(html)) > _MIN_BODY_CHARS:
            return html
    body = tree.body
    return body.html if body is not None and body.html else ""


def extract_article(html: str, url: str) -> ExtractedContent:
    """Extract title, body HTML, author, date and featured image from a page."""

    tree = HTMLParser(html)
    title = _first_value(tree, TITLE_SELECTORS)
    author = _author(tree)
    published_at = parse_iso_datetime(_first_value(tree, DATE_SELECTORS))
    image = _image(tree, url)
    content = _body(tree)
    return ExtractedContent(
        title=title,
        content=content,
        author=author,
        published_at=published_at,
        featured_image=image,
    )


class ContentExtractor:
    """Fetch an article page and extract its main content."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    def extract(self, url: str) -> ExtractedContent:
        response = self.fetcher.fetch(url)
        return extract_article(response.text, response.url or url)


__all__ = ["ContentExtractor", "ExtractedContent", "extract_article"]
