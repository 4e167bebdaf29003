"""AI rewrite of one raw article into a branded, SEO-annotated article."""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from ..ai.base import TextGenerator
from ..ai.retry import with_quota_retry
from ..config import AIConfig, RewriteConfig
from ..errors import AIServiceError, ContentBlockedError
from ..models import Article, ArticleStatus, Site
from .filters import filter_content
from .simhash import content_hash, hamming_distance, simhash
from .text import html_to_text, truncate

_FENCE_START = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")

SYSTEM_PROMPT = """You are an expert content rewriter for a content syndication platform. Your task is to rewrite syndicated articles with unique voice and high SEO value, AND generate social media copy.

CRITICAL REQUIREMENTS:
1. Rewrite the article in a completely unique voice - do not paraphrase the original
2. Match the tone of voice: "{tone}"
3. Incorporate this brand context where relevant: {brand}
4. Create an SEO-friendly title with relevant keywords
5. Write a concise excerpt (2-3 sentences) that hooks readers
6. Generate a meta description (150-160 characters) optimized for search
7. Identify 5-7 relevant tags
8. Suggest a primary category name
9. Generate a short social media post (under 200 chars) promoting this article
10. Generate 5-8 relevant hashtags for social media

The rewritten content must:
- Be original and provide unique perspective
- Maintain factual accuracy
- Be formatted for web readability with short paragraphs using HTML tags"""

USER_PROMPT = """Rewrite this article and generate social media copy:

TITLE: {title}

CONTENT:
{content}

Return your response as valid JSON (no markdown, no code blocks) with this exact structure:
{{
  "title": "SEO-optimized rewritten title",
  "content": "Full rewritten article content in HTML (use <p>, <h2>, <h3>, <ul>, <li> tags)",
  "excerpt": "2-3 sentence excerpt",
  "metaDescription": "150-160 character meta description",
  "tags": ["tag1", "tag2", "tag3", "tag4", "tag5"],
  "category": "Primary category name",
  "socialCopy": "Short engaging social media post under 200 characters",
  "socialHashtags": ["hashtag1", "hashtag2", "hashtag3"]
}}"""

NO_BRAND_CONTEXT = "No specific brand context provided"
DEFAULT_CATEGORY = "Uncategorized"


@dataclass
class RewriteResult:
    status: ArticleStatus
    title: str | None = None
    content: str | None = None
    excerpt: str | None = None
    meta_description: str | None = None
    tags: list[str] = field(default_factory=list)
    category: str | None = None
    social_copy: str | None = None
    social_hashtags: list[str] = field(default_factory=list)
    content_hash: str | None = None
    reason: str | None = None

    @classmethod
    def filtered(cls, reason: str) -> "RewriteResult":
        return cls(status=ArticleStatus.FILTERED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "RewriteResult":
        return cls(status=ArticleStatus.FAILED, reason=reason)


def build_prompts(article: Article, site: Site, max_chars: int) -> tuple[str, str]:
    system = SYSTEM_PROMPT.format(
        tone=site.tone_of_voice.value,
        brand=site.brand_summary or NO_BRAND_CONTEXT,
    )
    user = USER_PROMPT.format(
        title=article.original_title,
        content=truncate(article.original_content or "", max_chars),
    )
    return system, user


def parse_model_output(text: str) -> dict[str, Any]:
    """Strip markdown fences and decode the JSON object the model returned."""

    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text)).strip()
    payload = json.loads(cleaned)
    if not isinstance(payload, dict):
        raise ValueError("Model output is not a JSON object")
    return payload


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class RewriteEngine:
    """Classify a rewrite as published, filtered or failed."""

    def __init__(
        self,
        generator: TextGenerator,
        config: RewriteConfig | None = None,
        ai_config: AIConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or RewriteConfig()
        self.ai_config = ai_config or AIConfig()
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("syndicator.rewrite")

    def rewrite(self, article: Article, site: Site) -> RewriteResult:
        source_text = html_to_text(article.original_content)
        verdict = filter_content(
            article.original_title,
            source_text,
            cta_threshold=self.config.cta_threshold,
            min_chars=self.config.min_source_chars,
        )
        if verdict.should_filter:
            return RewriteResult.filtered(verdict.reason)

        system, prompt = build_prompts(article, site, self.config.max_source_chars)
        try:
            raw = with_quota_retry(
                lambda: self.generator.generate(prompt, system=system),
                max_retries=self.ai_config.max_retries,
                base=self.ai_config.backoff_seconds,
                multiplier=self.ai_config.backoff_multiplier,
                sleep=self._sleep,
            )
        except ContentBlockedError as exc:
            return RewriteResult.filtered(f"Content blocked: {exc}")
        except AIServiceError as exc:
            return RewriteResult.failed(f"{type(exc).__name__}: {exc}")

        try:
            payload = parse_model_output(raw)
        except ValueError as exc:
            return RewriteResult.failed(f"Malformed model output: {exc}")

        return self._classify(article, payload, source_text)

    def _classify(self, article: Article, payload: dict[str, Any], source_text: str) -> RewriteResult:
        content = str(payload.get("content") or article.original_content or "")
        title = str(payload.get("title") or article.original_title).strip()
        rewritten_text = html_to_text(content)

        if len(rewritten_text) < self.config.min_rewrite_chars:
            return RewriteResult.filtered(
                f"Rewritten content too short ({len(rewritten_text)} chars)"
            )
        distance = hamming_distance(simhash(rewritten_text), simhash(source_text))
        if distance <= self.config.source_similarity_distance:
            return RewriteResult.filtered(f"Rewrite too similar to source (distance {distance})")

        return RewriteResult(
            status=ArticleStatus.PUBLISHED,
            title=title,
            content=content,
            excerpt=str(payload.get("excerpt") or source_text[:200]),
            meta_description=str(payload.get("metaDescription") or ""),
            tags=_string_list(payload.get("tags")),
            category=str(payload.get("category") or DEFAULT_CATEGORY).strip() or DEFAULT_CATEGORY,
            social_copy=str(payload.get("socialCopy") or title),
            social_hashtags=_string_list(payload.get("socialHashtags")),
            content_hash=content_hash(rewritten_text),
        )


__all__ = [
    "DEFAULT_CATEGORY",
    "RewriteEngine",
    "RewriteResult",
    "build_prompts",
    "parse_model_output",
]
