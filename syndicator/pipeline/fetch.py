"""Fetch orchestrator: active sources → candidates → dedup → raw articles."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from ..config import GlobalConfig
from ..errors import (
    DuplicateKeyError,
    InvalidTransitionError,
    NoActiveSourcesError,
    PersistenceError,
    SourceError,
)
from ..models import JobType, Source
from ..engine.dedup import DeduplicationEngine
from ..engine.feeds import FeedFetcher, RawCandidateItem
from ..engine.validator import SourceValidator
from ..store.repository import Repository
from .job_log import JobRecorder


@dataclass
class SourceStats:
    source_id: str
    url: str
    sourced: int = 0
    new_articles: int = 0
    duplicates: int = 0
    item_errors: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def errors(self) -> int:
        return self.item_errors + (1 if self.failed else 0)


@dataclass
class FetchStats:
    sourced: int = 0
    new_articles: int = 0
    duplicates: int = 0
    errors: int = 0
    sources: list[SourceStats] = field(default_factory=list)

    @property
    def successes(self) -> int:
        return self.new_articles

    def add(self, source_stats: SourceStats) -> None:
        self.sources.append(source_stats)
        self.sourced += source_stats.sourced
        self.new_articles += source_stats.new_articles
        self.duplicates += source_stats.duplicates
        self.errors += source_stats.errors

    def job_counts(self) -> dict[str, int]:
        return {"articles_fetched": self.new_articles}

    def as_dict(self) -> dict[str, int]:
        return {
            "sourced": self.sourced,
            "new_articles": self.new_articles,
            "duplicates": self.duplicates,
            "errors": self.errors,
        }


class FetchOrchestrator:
    """Run every active source of one site, sequentially, isolating failures."""

    def __init__(
        self,
        repository: Repository,
        feeds: FeedFetcher,
        validator: SourceValidator,
        dedup: DeduplicationEngine,
        config: GlobalConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository
        self.feeds = feeds
        self.validator = validator
        self.dedup = dedup
        self.config = config or GlobalConfig()
        self.logger = logger or structlog.get_logger("syndicator.pipeline.fetch")

    def run(self, site_id: str) -> FetchStats:
        site = self.repository.get_site(site_id)
        sources = self.repository.active_sources(site.id)
        if not sources:
            raise NoActiveSourcesError(site.id)

        log = self.logger.bind(site_id=site.id, job_type=JobType.FETCH_SOURCES.value)
        stats = FetchStats()
        with JobRecorder(
            self.repository,
            JobType.FETCH_SOURCES,
            site.id,
            ttl=self.config.run_budget_seconds,
            logger=log,
        ) as job:
            job.stats = stats
            log.info("fetch_started", sources=len(sources))
            for source in sources:
                self._run_source(site.id, source, stats, log)
            log.info("fetch_finished", **stats.as_dict())
        return stats

    # ------------------------------------------------------------------
    def _run_source(
        self, site_id: str, source: Source, stats: FetchStats, log: structlog.BoundLogger
    ) -> SourceStats:
        result = SourceStats(source_id=source.id, url=source.url)
        src_log = log.bind(source_id=source.id, url=source.url)

        try:
            if not source.is_validated:
                validation = self.validator.validate(source, self.repository)
                if not validation.is_valid:
                    result.error = validation.reason or "Validation failed"
                    src_log.warning("source_error", stage="validate", error=result.error)
                    stats.add(result)
                    return result

            for candidate in self.feeds.fetch_candidates(source):
                result.sourced += 1
                try:
                    self._ingest(site_id, source, candidate, result)
                except (PersistenceError, InvalidTransitionError):
                    raise
                except Exception as exc:  # noqa: BLE001
                    result.item_errors += 1
                    src_log.warning("candidate_error", candidate_url=candidate.url, error=str(exc))
        except (PersistenceError, InvalidTransitionError):
            raise
        except SourceError as exc:
            result.error = exc.message
        except Exception as exc:  # noqa: BLE001
            result.error = f"{type(exc).__name__}: {exc}"

        if result.failed:
            src_log.warning("source_error", stage="fetch", error=result.error, sourced=result.sourced)
        else:
            src_log.info(
                "source_fetched",
                sourced=result.sourced,
                new_articles=result.new_articles,
                duplicates=result.duplicates,
                item_errors=result.item_errors,
            )
        stats.add(result)
        self.repository.record_source_fetch(source, result.sourced, result.error)
        return result

    def _ingest(
        self,
        site_id: str,
        source: Source,
        candidate: RawCandidateItem,
        result: SourceStats,
    ) -> None:
        key, seen = self.dedup.lookup(site_id, candidate.url)
        if seen:
            result.duplicates += 1
            return
        try:
            self.repository.insert_raw_article(
                site_id,
                source.id,
                key,
                url=candidate.url,
                title=candidate.title,
                content=candidate.body,
                author=candidate.author,
                published_at=candidate.published_at,
                image_url=candidate.image_url,
            )
        except DuplicateKeyError:
            # Lost an insert race against a concurrent run of the same site.
            result.duplicates += 1
            return
        result.new_articles += 1


__all__ = ["FetchOrchestrator", "FetchStats", "SourceStats"]
