"""Error taxonomy shared by the ingestion and rewrite pipeline."""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base error carrying structured context for observability."""

    def __init__(
        self,
        message: str,
        *,
        site_id: str | None = None,
        source_id: str | None = None,
        article_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.site_id = site_id
        self.source_id = source_id
        self.article_id = article_id

    def context(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.message, "error_type": type(self).__name__}
        for key in ("site_id", "source_id", "article_id"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


# ----------------------------------------------------------------------
# Configuration errors: reject the whole run before any write happens
# ----------------------------------------------------------------------
class ConfigError(PipelineError):
    """Run cannot start because of how the site is configured."""


class SiteNotFoundError(ConfigError):
    def __init__(self, site_id: str) -> None:
        super().__init__(f"Site not found: {site_id}", site_id=site_id)


class NoActiveSourcesError(ConfigError):
    def __init__(self, site_id: str) -> None:
        super().__init__("No active sources found. Add a source first.", site_id=site_id)


class NothingToRewriteError(ConfigError):
    def __init__(self, site_id: str) -> None:
        super().__init__("No articles to rewrite. Fetch sources first.", site_id=site_id)


class RunInProgressError(ConfigError):
    def __init__(self, site_id: str, job_type: str) -> None:
        super().__init__(f"A {job_type} run is already in progress", site_id=site_id)
        self.job_type = job_type


# ----------------------------------------------------------------------
# Per-source errors: isolated and counted, never raised to the caller
# ----------------------------------------------------------------------
class SourceError(PipelineError):
    """Feed unreachable, unparseable or failing validation."""


class FetchError(SourceError):
    """Outbound HTTP request failed after the retry policy gave up."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


# ----------------------------------------------------------------------
# Persistence errors: propagate, the run result is unreliable
# ----------------------------------------------------------------------
class PersistenceError(PipelineError):
    """Data store rejected a read or write."""


class DuplicateKeyError(PersistenceError):
    """Uniqueness constraint violated on insert."""


# ----------------------------------------------------------------------
# Unknown errors: caught at the orchestrator boundary
# ----------------------------------------------------------------------
class UnknownError(PipelineError):
    """Unexpected failure, carrying whatever statistics were gathered."""

    def __init__(self, message: str, *, site_id: str | None = None, partial_stats: Any = None) -> None:
        super().__init__(message, site_id=site_id)
        self.partial_stats = partial_stats


class InvalidTransitionError(PipelineError):
    """Article status change outside the allowed state machine."""


# ----------------------------------------------------------------------
# AI service errors: mapped onto article outcomes by the rewrite engine
# ----------------------------------------------------------------------
class AIServiceError(Exception):
    """Generative text service call failed."""


class AITimeoutError(AIServiceError):
    pass


class AIQuotaError(AIServiceError):
    """Rate limit or quota exhaustion; eligible for backoff retries."""


class AIResponseError(AIServiceError):
    """Empty or malformed response payload."""


class ContentBlockedError(AIServiceError):
    """Service refused to produce content for safety reasons."""


__all__ = [
    "AIQuotaError",
    "AIResponseError",
    "AIServiceError",
    "AITimeoutError",
    "ConfigError",
    "ContentBlockedError",
    "DuplicateKeyError",
    "FetchError",
    "InvalidTransitionError",
    "NoActiveSourcesError",
    "NothingToRewriteError",
    "PersistenceError",
    "PipelineError",
    "RunInProgressError",
    "SiteNotFoundError",
    "SourceError",
    "UnknownError",
]
