"""Point-in-time check that a source URL serves feed content."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..config import HttpConfig
from ..errors import FetchError
from ..models import Source, SourceKind
from .fetcher import Fetcher, FetchResponse

VALIDATION_FAILED = "Validation failed"


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    reason: str | None = None


def looks_like_feed(kind: SourceKind, content_type: str, body: str) -> bool:
    content_type = content_type.lower()
    if kind is SourceKind.SITEMAP:
        if "xml" in content_type:
            return True
        return "<?xml" in body and "<url" in body
    if any(marker in content_type for marker in ("xml", "rss", "atom")):
        return True
    return any(marker in body for marker in ("<rss", "<feed", "<?xml"))


class SourceValidator:
    """Single fetch, no retries, descriptive user agent."""

    def __init__(
        self,
        fetcher: Fetcher,
        http: HttpConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.http = http or fetcher.http
        self.logger = logger or structlog.get_logger("syndicator.validator")

    def check(self, source: Source) -> ValidationResult:
        """Classify ``source`` without touching the store."""

        try:
            response: FetchResponse = self.fetcher.fetch(
                source.url, retries=0, user_agent=self.http.validation_user_agent
            )
        except FetchError as exc:
            self.logger.info(
                "source_validation_failed", source_id=source.id, url=source.url, error=str(exc)
            )
            return ValidationResult(False, VALIDATION_FAILED)
        if not looks_like_feed(source.source_type, response.content_type, response.text):
            self.logger.info(
                "source_validation_failed",
                source_id=source.id,
                url=source.url,
                content_type=response.content_type,
            )
            return ValidationResult(False, VALIDATION_FAILED)
        return ValidationResult(True)

    def validate(self, source: Source, repository) -> ValidationResult:
        """Classify ``source`` and persist the validated flag and last error."""

        result = self.check(source)
        repository.mark_validated(source.id, result.is_valid, result.reason)
        return result


__all__ = ["SourceValidator", "VALIDATION_FAILED", "ValidationResult", "looks_like_feed"]
