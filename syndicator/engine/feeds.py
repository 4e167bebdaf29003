"""Feed fetching: RSS/Atom and sitemap documents into candidate items."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Iterator
from urllib.parse import unquote, urljoin, urlparse

import feedparser
import structlog
from selectolax.parser import HTMLParser

from ..config import FetchConfig
from ..errors import FetchError, SourceError
from ..models import Source, SourceKind
from .fetcher import Fetcher, FetchResponse
from .text import collapse_whitespace

DEFAULT_TITLE = "Untitled"


@dataclass(slots=True)
class RawCandidateItem:
    """One normalized feed entry; never persisted as-is."""

    title: str
    url: str
    published_at: datetime | None = None
    summary: str | None = None
    content: str | None = None
    image_url: str | None = None
    author: str | None = None

    @property
    def body(self) -> str | None:
        return self.content or self.summary


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _struct_to_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse W3C datetime values as used by sitemaps; unknown formats yield None."""

    text = _clean(value)
    if text is None:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def title_from_url(url: str) -> str:
    """Humanize the last path segment of ``url`` into a provisional title."""

    path = unquote(urlparse(url).path).rstrip("/")
    segment = PurePosixPath(path).name if path else ""
    stem = segment.rsplit(".", 1)[0] if "." in segment else segment
    words = stem.replace("-", " ").replace("_", " ").split()
    if not words:
        return DEFAULT_TITLE
    title = " ".join(words)
    return title[0].upper() + title[1:]


def _first_img(html: str | None) -> str | None:
    if not html or "<img" not in html:
        return None
    node = HTMLParser(html).css_first("img[src]")
    if node is None:
        return None
    return _clean(node.attributes.get("src"))


def extract_entry_image(entry: Any) -> str | None:
    """media:content image, media:thumbnail, image enclosure, then the first <img>."""

    for media in entry.get("media_content") or []:
        url = _clean(media.get("url"))
        medium = (media.get("medium") or "").lower()
        mime = (media.get("type") or "").lower()
        if url and (medium == "image" or mime.startswith("image/") or (not medium and not mime)):
            return url
    for thumb in entry.get("media_thumbnail") or []:
        url = _clean(thumb.get("url"))
        if url:
            return url
    for enclosure in entry.get("enclosures") or []:
        url = _clean(enclosure.get("href") or enclosure.get("url"))
        if url and (enclosure.get("type") or "").lower().startswith("image/"):
            return url
    for block in entry.get("content") or []:
        found = _first_img(block.get("value"))
        if found:
            return found
    return _first_img(entry.get("summary"))


class FeedFetcher:
    """Turn one configured Source into a lazy sequence of candidate items."""

    def __init__(
        self,
        fetcher: Fetcher,
        config: FetchConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or FetchConfig()
        self.logger = logger or structlog.get_logger("syndicator.feeds")

    def fetch_candidates(self, source: Source) -> Iterator[RawCandidateItem]:
        """Fetch and parse ``source``.

        Network and parse failures of the source document raise
        :class:`SourceError` before the first item is produced; the returned
        iterator itself follows document order and never raises for the root
        document.
        """

        try:
            response = self.fetcher.fetch(source.url)
        except FetchError as exc:
            raise SourceError(str(exc), site_id=source.site_id, source_id=source.id) from exc
        if source.source_type is SourceKind.SITEMAP:
            return self._sitemap_items(source, response)
        return self._feed_items(source, response)

    # ------------------------------------------------------------------
    # RSS / Atom
    # ------------------------------------------------------------------
    def _feed_items(self, source: Source, response: FetchResponse) -> Iterator[RawCandidateItem]:
        parsed = feedparser.parse(response.content)
        if parsed.get("bozo") and not parsed.entries and not parsed.get("version"):
            error = parsed.get("bozo_exception")
            raise SourceError(
                f"Unparseable feed: {error}", site_id=source.site_id, source_id=source.id
            )
        base = response.url or source.url
        return self._iter_entries(parsed.entries, base)

    def _iter_entries(self, entries: list[Any], base: str) -> Iterator[RawCandidateItem]:
        for entry in entries:
            link = _clean(entry.get("link"))
            if link is None:
                links = entry.get("links") or []
                link = next((_clean(item.get("href")) for item in links if item.get("href")), None)
            if link is None:
                self.logger.debug("feed_entry_without_link", base=base)
                continue
            content = None
            for block in entry.get("content") or []:
                content = _clean(block.get("value"))
                if content:
                    break
            image = extract_entry_image(entry)
            yield RawCandidateItem(
                title=collapse_whitespace(entry.get("title")) or DEFAULT_TITLE,
                url=urljoin(base, link),
                published_at=_struct_to_datetime(
                    entry.get("published_parsed") or entry.get("updated_parsed")
                ),
                summary=_clean(entry.get("summary")),
                content=content,
                image_url=urljoin(base, image) if image else None,
                author=_clean(entry.get("author")),
            )

    # ------------------------------------------------------------------
    # Sitemaps
    # ------------------------------------------------------------------
    def _sitemap_items(self, source: Source, response: FetchResponse) -> Iterator[RawCandidateItem]:
        tree = HTMLParser(response.text)
        if tree.css_first("sitemapindex") is None and tree.css_first("urlset") is None:
            raise SourceError(
                "Unparseable sitemap: no <urlset> or <sitemapindex>",
                site_id=source.site_id,
                source_id=source.id,
            )
        return self._walk_sitemap(source, tree, response.url or source.url, depth=0)

    def _walk_sitemap(
        self, source: Source, tree: HTMLParser, base: str, depth: int
    ) -> Iterator[RawCandidateItem]:
        if tree.css_first("sitemapindex") is not None:
            children = [
                urljoin(base, loc.text(strip=True))
                for loc in tree.css("sitemap > loc")
                if loc.text(strip=True)
            ]
            if depth >= 1:
                self.logger.warning("sitemap_index_too_deep", url=base, source_id=source.id)
                return
            for child_url in children[: self.config.max_child_sitemaps]:
                try:
                    child = self.fetcher.fetch(child_url)
                except FetchError as exc:
                    self.logger.warning(
                        "child_sitemap_failed", url=child_url, source_id=source.id, error=str(exc)
                    )
                    continue
                yield from self._walk_sitemap(
                    source, HTMLParser(child.text), child.url or child_url, depth + 1
                )
            return

        for node in tree.css("url"):
            loc = node.css_first("loc")
            if loc is None or not loc.text(strip=True):
                continue
            url = urljoin(base, loc.text(strip=True))
            lastmod = node.css_first("lastmod")
            yield RawCandidateItem(
                title=title_from_url(url),
                url=url,
                published_at=parse_iso_datetime(lastmod.text(strip=True) if lastmod else None),
            )


__all__ = [
    "DEFAULT_TITLE",
    "FeedFetcher",
    "RawCandidateItem",
    "extract_entry_image",
    "parse_iso_datetime",
    "title_from_url",
]
