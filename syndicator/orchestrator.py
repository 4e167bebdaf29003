"""Pipeline facade wiring store, HTTP, AI client and both orchestrators."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
import structlog

from .ai import GeminiClient, TextGenerator
from .config import ConfigRepository, GlobalConfig
from .engine import (
    ContentExtractor,
    DeduplicationEngine,
    FeedFetcher,
    Fetcher,
    RewriteEngine,
    SourceValidator,
    ThreadPoolManager,
    ValidationResult,
)
from .errors import AIServiceError, ConfigError, PipelineError
from .logging_conf import site_logger
from .pipeline import FetchOrchestrator, FetchStats, RewriteOrchestrator, RewriteStats
from .store import DataStore, Repository, SQLiteStore

LoggerFactory = Callable[[str], structlog.BoundLogger]


@dataclass
class SiteRunResult:
    """Outcome of a fetch-then-rewrite pass over one site."""

    site_id: str
    slug: str = ""
    fetch: FetchStats | None = None
    rewrite: RewriteStats | None = None
    skipped: list[str] = field(default_factory=list)


class Pipeline:
    """Central coordinator exposing the trigger operations of the pipeline."""

    def __init__(
        self,
        config: GlobalConfig,
        store: DataStore,
        *,
        generator: TextGenerator | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger_factory: LoggerFactory = site_logger,
    ) -> None:
        self.config = config
        self.store = store
        self.repository = Repository(store)
        self.fetcher = Fetcher(config.http, transport=transport, sleep=sleep)
        self.feeds = FeedFetcher(self.fetcher, config.fetch)
        self.validator = SourceValidator(self.fetcher, config.http)
        self.dedup = DeduplicationEngine(self.repository, config.dedup)
        self.extractor = ContentExtractor(self.fetcher)
        self.thread_pool = ThreadPoolManager(config.thread_pool_workers)
        self._generator = generator
        self._generator_lock = threading.Lock()
        self._sleep = sleep
        self._logger_factory = logger_factory

    @classmethod
    def from_repository(cls, config_repository: ConfigRepository, **kwargs) -> "Pipeline":
        config = config_repository.load_global_config()
        store = SQLiteStore(config_repository.database_path())
        return cls(config, store, **kwargs)

    def close(self) -> None:
        self.thread_pool.shutdown()
        self.fetcher.close()
        if isinstance(self._generator, GeminiClient):
            self._generator.close()
        self.store.close()

    # ------------------------------------------------------------------
    def _generator_for(self, site_id: str) -> TextGenerator:
        with self._generator_lock:
            if self._generator is None:
                try:
                    self._generator = GeminiClient(self.config.ai)
                except AIServiceError as exc:
                    raise ConfigError(str(exc), site_id=site_id) from exc
            return self._generator

    def validate_source(self, source_id: str) -> ValidationResult:
        source = self.repository.get_source(source_id)
        if source is None:
            raise ConfigError(f"Source not found: {source_id}", source_id=source_id)
        return self.validator.validate(source, self.repository)

    def run_fetch(self, site_id: str) -> FetchStats:
        site = self.repository.get_site(site_id)
        orchestrator = FetchOrchestrator(
            self.repository,
            self.feeds,
            self.validator,
            self.dedup,
            self.config,
            logger=self._logger_factory(site.id),
        )
        return orchestrator.run(site.id)

    def run_rewrite(self, site_id: str, limit: int | None = None) -> RewriteStats:
        """Rewrite pending articles; without ``limit`` a run is capped at the site's articles per day."""

        site = self.repository.get_site(site_id)
        if limit is None:
            limit = self.config.rewrite.default_limit or site.articles_per_day
        engine = RewriteEngine(
            self._generator_for(site.id),
            self.config.rewrite,
            self.config.ai,
            sleep=self._sleep,
        )
        orchestrator = RewriteOrchestrator(
            self.repository,
            engine,
            self.dedup,
            self.extractor,
            self.config,
            logger=self._logger_factory(site.id),
        )
        return orchestrator.run(site.id, limit)

    def run_site(self, site_id: str, limit: int | None = None) -> SiteRunResult:
        """Fetch then rewrite; a phase rejected for configuration reasons is skipped."""

        site = self.repository.get_site(site_id)
        result = SiteRunResult(site_id=site.id, slug=site.slug)
        try:
            result.fetch = self.run_fetch(site.id)
        except ConfigError as exc:
            result.skipped.append(exc.message)
        try:
            result.rewrite = self.run_rewrite(site.id, limit)
        except ConfigError as exc:
            result.skipped.append(exc.message)
        return result

    def run_all(
        self, limit: int | None = None, *, cron_only: bool = False
    ) -> dict[str, SiteRunResult | PipelineError | Exception]:
        """Run every active site in parallel, each site sequential inside."""

        sites = self.repository.list_sites(active_only=True, cron_only=cron_only)
        return self.thread_pool.run_each(
            [site.id for site in sites], lambda site_id: self.run_site(site_id, limit)
        )


__all__ = ["Pipeline", "SiteRunResult"]
