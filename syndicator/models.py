"""Typed rows exchanged with the data store and the article state machine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidTransitionError


class ArticleStatus(str, Enum):
    RAW = "raw"
    PUBLISHED = "published"
    FILTERED = "filtered"
    FAILED = "failed"
    UNPUBLISHED = "unpublished"


class SourceKind(str, Enum):
    RSS = "rss"
    SITEMAP = "sitemap"


class ToneOfVoice(str, Enum):
    """Voices a site can ask the rewriter to write in."""

    PROFESSIONAL = "professional"
    CASUAL = "casual"
    AUTHORITATIVE = "authoritative"
    FRIENDLY = "friendly"
    WITTY = "witty"
    FORMAL = "formal"
    CONVERSATIONAL = "conversational"


class JobType(str, Enum):
    FETCH_SOURCES = "fetch_sources"
    REWRITE_ARTICLES = "rewrite_articles"


class JobStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses the rewrite orchestrator picks up on every run.
REWRITABLE_STATUSES: tuple[ArticleStatus, ...] = (
    ArticleStatus.RAW,
    ArticleStatus.FAILED,
    ArticleStatus.FILTERED,
)

_REWRITE_OUTCOMES = frozenset(
    {ArticleStatus.PUBLISHED, ArticleStatus.FILTERED, ArticleStatus.FAILED}
)

ALLOWED_TRANSITIONS: dict[ArticleStatus, frozenset[ArticleStatus]] = {
    ArticleStatus.RAW: _REWRITE_OUTCOMES,
    ArticleStatus.FAILED: _REWRITE_OUTCOMES,
    ArticleStatus.FILTERED: _REWRITE_OUTCOMES,
    ArticleStatus.PUBLISHED: frozenset({ArticleStatus.UNPUBLISHED}),
    ArticleStatus.UNPUBLISHED: frozenset(),
}


def can_transition(current: ArticleStatus, target: ArticleStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(
    current: ArticleStatus, target: ArticleStatus, *, article_id: str | None = None
) -> None:
    """Raise when ``current -> target`` is not part of the article lifecycle."""

    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Illegal article transition {current.value} -> {target.value}",
            article_id=article_id,
        )


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Site(_Row):
    id: str
    name: str
    slug: str
    organization_id: str | None = None
    description: str | None = None
    tone_of_voice: ToneOfVoice = ToneOfVoice.PROFESSIONAL
    brand_summary: str | None = None
    status: str = "active"
    articles_per_day: int = 10
    cron_enabled: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Source(_Row):
    id: str
    site_id: str
    url: str
    source_type: SourceKind
    name: str | None = None
    is_active: bool = True
    is_validated: bool = False
    last_error: str | None = None
    last_fetched_at: datetime | None = None
    article_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Category(_Row):
    id: str
    site_id: str
    name: str
    slug: str
    article_count: int = 0
    created_at: datetime | None = None


class Article(_Row):
    id: str
    site_id: str
    source_id: str | None = None
    category_id: str | None = None
    status: ArticleStatus = ArticleStatus.RAW
    fingerprint: str
    original_url: str
    original_title: str
    original_content: str | None = None
    original_author: str | None = None
    original_published_at: datetime | None = None
    title: str | None = None
    slug: str | None = None
    content: str | None = None
    excerpt: str | None = None
    meta_description: str | None = None
    featured_image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    social_copy: str | None = None
    social_hashtags: list[str] = Field(default_factory=list)
    content_hash: str | None = None
    view_count: int = 0
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("tags", "social_hashtags", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        return [str(item) for item in value]


class JobLogEntry(_Row):
    id: str | None = None
    job_type: JobType
    site_id: str | None = None
    status: JobStatus
    articles_fetched: int = 0
    articles_rewritten: int = 0
    articles_published: int = 0
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None


__all__ = [
    "ALLOWED_TRANSITIONS",
    "Article",
    "ArticleStatus",
    "Category",
    "JobLogEntry",
    "JobStatus",
    "JobType",
    "REWRITABLE_STATUSES",
    "Site",
    "Source",
    "SourceKind",
    "ToneOfVoice",
    "can_transition",
    "ensure_transition",
]
