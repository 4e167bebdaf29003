"""Rewrite orchestrator: raw/failed/filtered articles → AI rewrite → persisted outcome."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from ..config import GlobalConfig
from ..errors import (
    DuplicateKeyError,
    InvalidTransitionError,
    NothingToRewriteError,
    PersistenceError,
)
from ..models import Article, ArticleStatus, JobType, Site
from ..engine.dedup import DeduplicationEngine
from ..engine.extract import ContentExtractor
from ..engine.rewrite import RewriteEngine, RewriteResult
from ..engine.text import slugify
from ..store.repository import Repository, utcnow
from .job_log import JobRecorder


@dataclass
class RewriteStats:
    processed: int = 0
    published: int = 0
    filtered: int = 0
    duplicates: int = 0
    errors: int = 0

    @property
    def successes(self) -> int:
        return self.published

    def job_counts(self) -> dict[str, int]:
        return {"articles_rewritten": self.published, "articles_published": self.published}

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "published": self.published,
            "filtered": self.filtered,
            "duplicates": self.duplicates,
            "errors": self.errors,
        }


class RewriteOrchestrator:
    """Rewrite the oldest eligible articles of one site, one at a time."""

    def __init__(
        self,
        repository: Repository,
        engine: RewriteEngine,
        dedup: DeduplicationEngine,
        extractor: ContentExtractor | None = None,
        config: GlobalConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository
        self.engine = engine
        self.dedup = dedup
        self.extractor = extractor
        self.config = config or GlobalConfig()
        self.logger = logger or structlog.get_logger("syndicator.pipeline.rewrite")

    def run(self, site_id: str, limit: int | None = None) -> RewriteStats:
        site = self.repository.get_site(site_id)
        if limit is None:
            limit = self.config.rewrite.default_limit
        articles = self.repository.rewrite_candidates(site.id, limit)
        if not articles:
            raise NothingToRewriteError(site.id)

        log = self.logger.bind(site_id=site.id, job_type=JobType.REWRITE_ARTICLES.value)
        stats = RewriteStats()
        with JobRecorder(
            self.repository,
            JobType.REWRITE_ARTICLES,
            site.id,
            ttl=self.config.run_budget_seconds,
            logger=log,
        ) as job:
            job.stats = stats
            log.info("rewrite_started", selected=len(articles), limit=limit)
            for article in articles:
                stats.processed += 1
                self._process(site, article, stats, log.bind(article_id=article.id))
            log.info("rewrite_finished", **stats.as_dict())
        return stats

    # ------------------------------------------------------------------
    def _process(
        self, site: Site, article: Article, stats: RewriteStats, log: structlog.BoundLogger
    ) -> None:
        try:
            if not (article.original_content or "").strip():
                extracted = self._extract(article, log)
                if extracted is None:
                    stats.errors += 1
                    return
                article = extracted
            result = self.engine.rewrite(article, site)
            self._persist(site, article, result, stats, log)
        except (PersistenceError, InvalidTransitionError):
            raise
        except Exception as exc:  # noqa: BLE001
            log.error("article_failed", error=f"{type(exc).__name__}: {exc}")
            self.repository.transition_article(article, ArticleStatus.FAILED)
            stats.errors += 1

    def _extract(self, article: Article, log: structlog.BoundLogger) -> Article | None:
        """Fill in source content for items (sitemaps) that arrived without a body.

        Returns None once the article has been marked failed.
        """

        if self.extractor is None:
            raise ValueError("Article has no content and no extractor is configured")
        try:
            extracted = self.extractor.extract(article.original_url)
        except (PersistenceError, InvalidTransitionError):
            raise
        except Exception as exc:  # noqa: BLE001
            log.warning("extract_failed", url=article.original_url, error=str(exc))
            self.repository.transition_article(article, ArticleStatus.FAILED)
            return None

        updates: dict[str, Any] = {"original_content": extracted.content}
        if extracted.author and not article.original_author:
            updates["original_author"] = extracted.author
        if extracted.featured_image and not article.featured_image_url:
            updates["featured_image_url"] = extracted.featured_image
        if extracted.published_at and not article.original_published_at:
            updates["original_published_at"] = extracted.published_at
        self.repository.update_article_source_fields(article.id, updates)
        return article.model_copy(update=updates)

    def _persist(
        self,
        site: Site,
        article: Article,
        result: RewriteResult,
        stats: RewriteStats,
        log: structlog.BoundLogger,
    ) -> None:
        if result.status is ArticleStatus.FAILED:
            self.repository.transition_article(article, ArticleStatus.FAILED)
            stats.errors += 1
            log.warning("article_failed", reason=result.reason)
            return

        if result.status is ArticleStatus.FILTERED:
            self.repository.transition_article(article, ArticleStatus.FILTERED)
            stats.filtered += 1
            log.info("article_filtered", reason=result.reason)
            return

        near = None
        if result.content_hash:
            near = self.dedup.find_near_duplicate(site.id, article.id, result.content_hash)
        if near is not None:
            self.repository.transition_article(article, ArticleStatus.FILTERED)
            stats.duplicates += 1
            stats.filtered += 1
            log.info("article_near_duplicate", duplicate_of=near.article_id, distance=near.distance)
            return

        category_id = self._category_id(site, result.category, log)
        title = result.title or article.original_title
        self.repository.transition_article(
            article,
            ArticleStatus.PUBLISHED,
            {
                "title": title,
                "slug": f"{slugify(title)}-{article.id[:8]}",
                "content": result.content,
                "excerpt": result.excerpt,
                "meta_description": result.meta_description,
                "tags": result.tags,
                "social_copy": result.social_copy,
                "social_hashtags": result.social_hashtags,
                "content_hash": result.content_hash,
                "category_id": category_id,
                "published_at": utcnow(),
            },
        )
        stats.published += 1
        log.info("article_published", title=title, category=result.category)

    def _category_id(self, site: Site, name: str | None, log: structlog.BoundLogger) -> str | None:
        if not name:
            return None
        try:
            category = self.repository.resolve_category(site.id, name)
        except DuplicateKeyError as exc:
            log.warning("category_unresolved", category=name, error=str(exc))
            return None
        self.repository.bump_category(category)
        return category.id


__all__ = ["RewriteOrchestrator", "RewriteStats"]
