"""Typed access to the pipeline relations on top of a :class:`DataStore`."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from ..errors import SiteNotFoundError
from ..models import (
    REWRITABLE_STATUSES,
    Article,
    ArticleStatus,
    Category,
    JobLogEntry,
    Site,
    Source,
    SourceKind,
    ToneOfVoice,
    ensure_transition,
)
from ..engine.text import slugify
from .base import DataStore, eq, in_, neq


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository:
    """Converts store rows into domain models at the pipeline boundary."""

    def __init__(self, store: DataStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------
    def create_site(
        self,
        name: str,
        *,
        slug: str | None = None,
        tone_of_voice: ToneOfVoice = ToneOfVoice.PROFESSIONAL,
        brand_summary: str | None = None,
        description: str | None = None,
        organization_id: str | None = None,
        articles_per_day: int = 10,
        cron_enabled: bool = False,
    ) -> Site:
        now = utcnow()
        row = self.store.insert(
            "sites",
            {
                "name": name,
                "slug": slug or slugify(name),
                "tone_of_voice": tone_of_voice,
                "brand_summary": brand_summary,
                "description": description,
                "organization_id": organization_id,
                "articles_per_day": articles_per_day,
                "cron_enabled": cron_enabled,
                "status": "active",
                "created_at": now,
                "updated_at": now,
            },
        )
        return Site.model_validate(row)

    def get_site(self, site_ref: str) -> Site:
        """Look a site up by id, falling back to its slug."""

        row = self.store.select_one("sites", [eq("id", site_ref)])
        if row is None:
            row = self.store.select_one("sites", [eq("slug", site_ref)])
        if row is None:
            raise SiteNotFoundError(site_ref)
        return Site.model_validate(row)

    def list_sites(self, *, active_only: bool = False, cron_only: bool = False) -> list[Site]:
        where = []
        if active_only:
            where.append(eq("status", "active"))
        if cron_only:
            where.append(eq("cron_enabled", True))
        rows = self.store.select("sites", where=where, order_by=[("created_at", "asc"), ("rowid", "asc")])
        return [Site.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def add_source(
        self, site_id: str, url: str, kind: SourceKind, *, name: str | None = None
    ) -> Source:
        now = utcnow()
        row = self.store.insert(
            "sources",
            {
                "site_id": site_id,
                "url": url.strip(),
                "source_type": kind,
                "name": name,
                "is_active": True,
                "is_validated": False,
                "article_count": 0,
                "created_at": now,
                "updated_at": now,
            },
        )
        return Source.model_validate(row)

    def get_source(self, source_id: str) -> Source | None:
        row = self.store.select_one("sources", [eq("id", source_id)])
        return Source.model_validate(row) if row else None

    def list_sources(self, site_id: str | None = None, *, active_only: bool = False) -> list[Source]:
        where = []
        if site_id is not None:
            where.append(eq("site_id", site_id))
        if active_only:
            where.append(eq("is_active", True))
        rows = self.store.select("sources", where=where, order_by=[("created_at", "asc"), ("rowid", "asc")])
        return [Source.model_validate(row) for row in rows]

    def active_sources(self, site_id: str) -> list[Source]:
        return self.list_sources(site_id, active_only=True)

    def set_source_active(self, source_id: str, active: bool) -> bool:
        changed = self.store.update(
            "sources", {"is_active": active, "updated_at": utcnow()}, [eq("id", source_id)]
        )
        return changed > 0

    def mark_validated(self, source_id: str, is_valid: bool, error: str | None) -> None:
        self.store.update(
            "sources",
            {"is_validated": is_valid, "last_error": error, "updated_at": utcnow()},
            [eq("id", source_id)],
        )

    def record_source_fetch(self, source: Source, sourced: int, error: str | None = None) -> None:
        now = utcnow()
        values: dict[str, Any] = {
            "last_fetched_at": now,
            "article_count": source.article_count + sourced,
            "updated_at": now,
            "last_error": error,
        }
        self.store.update("sources", values, [eq("id", source.id)])

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------
    def fingerprint_exists(self, site_id: str, fingerprint: str) -> bool:
        return self.store.count(
            "articles", [eq("site_id", site_id), eq("fingerprint", fingerprint)]
        ) > 0

    def insert_raw_article(
        self,
        site_id: str,
        source_id: str | None,
        fingerprint: str,
        *,
        url: str,
        title: str,
        content: str | None = None,
        author: str | None = None,
        published_at: datetime | None = None,
        image_url: str | None = None,
    ) -> Article:
        now = utcnow()
        row = self.store.insert(
            "articles",
            {
                "site_id": site_id,
                "source_id": source_id,
                "status": ArticleStatus.RAW,
                "fingerprint": fingerprint,
                "original_url": url,
                "original_title": title,
                "original_content": content,
                "original_author": author,
                "original_published_at": published_at,
                "featured_image_url": image_url,
                "tags": [],
                "social_hashtags": [],
                "view_count": 0,
                "created_at": now,
                "updated_at": now,
            },
        )
        return Article.model_validate(row)

    def get_article(self, article_id: str) -> Article | None:
        row = self.store.select_one("articles", [eq("id", article_id)])
        return Article.model_validate(row) if row else None

    def list_articles(
        self,
        site_id: str,
        *,
        statuses: Iterable[ArticleStatus] | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Article]:
        where = [eq("site_id", site_id)]
        if statuses is not None:
            where.append(in_("status", list(statuses)))
        rows = self.store.select(
            "articles",
            where=where,
            order_by=[("created_at", "desc" if newest_first else "asc"), ("rowid", "asc")],
            limit=limit,
        )
        return [Article.model_validate(row) for row in rows]

    def rewrite_candidates(self, site_id: str, limit: int | None = None) -> list[Article]:
        return self.list_articles(site_id, statuses=REWRITABLE_STATUSES, limit=limit)

    def count_articles(self, site_id: str, status: ArticleStatus | None = None) -> int:
        where = [eq("site_id", site_id)]
        if status is not None:
            where.append(eq("status", status))
        return self.store.count("articles", where)

    def published_content_hashes(self, site_id: str, exclude_id: str) -> list[tuple[str, str]]:
        rows = self.store.select(
            "articles",
            where=[
                eq("site_id", site_id),
                eq("status", ArticleStatus.PUBLISHED),
                neq("id", exclude_id),
                neq("content_hash", None),
            ],
        )
        return [(row["id"], row["content_hash"]) for row in rows]

    def update_article_source_fields(self, article_id: str, values: dict[str, Any]) -> None:
        """Fill in extracted original content without touching the status."""

        self.store.update("articles", {**values, "updated_at": utcnow()}, [eq("id", article_id)])

    def transition_article(
        self, article: Article, target: ArticleStatus, values: dict[str, Any] | None = None
    ) -> None:
        ensure_transition(article.status, target, article_id=article.id)
        payload = dict(values or {})
        payload["status"] = target
        payload["updated_at"] = utcnow()
        self.store.update("articles", payload, [eq("id", article.id)])

    def unpublish_article(self, article_id: str) -> Article | None:
        article = self.get_article(article_id)
        if article is None:
            return None
        self.transition_article(article, ArticleStatus.UNPUBLISHED)
        return self.get_article(article_id)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def resolve_category(self, site_id: str, name: str) -> Category:
        """Return the site category called ``name``, creating it on first use."""

        slug = slugify(name)
        row = self.store.select_one("categories", [eq("site_id", site_id), eq("slug", slug)])
        if row is None:
            row = self.store.insert(
                "categories",
                {
                    "site_id": site_id,
                    "name": name.strip(),
                    "slug": slug,
                    "article_count": 0,
                    "created_at": utcnow(),
                },
            )
        return Category.model_validate(row)

    def bump_category(self, category: Category) -> None:
        self.store.update(
            "categories",
            {"article_count": category.article_count + 1},
            [eq("id", category.id)],
        )

    def list_categories(self, site_id: str) -> list[Category]:
        rows = self.store.select("categories", [eq("site_id", site_id)], order_by=[("name", "asc")])
        return [Category.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Job log
    # ------------------------------------------------------------------
    def append_job_log(self, entry: JobLogEntry) -> JobLogEntry:
        row = entry.to_row()
        if row.get("id") is None:
            row.pop("id", None)
        stored = self.store.insert("job_log", row)
        return JobLogEntry.model_validate(stored)

    def list_job_log(self, site_id: str | None = None, limit: int = 20) -> list[JobLogEntry]:
        where = [eq("site_id", site_id)] if site_id else []
        rows = self.store.select(
            "job_log", where=where, order_by=[("started_at", "desc")], limit=limit
        )
        return [JobLogEntry.model_validate(row) for row in rows]

    def count_job_log(self, site_id: str | None = None) -> int:
        where = [eq("site_id", site_id)] if site_id else []
        return self.store.count("job_log", where)


__all__ = ["Repository", "utcnow"]
