"""Job log recording and the advisory per-(site, job type) run lock."""

from __future__ import annotations

import time
import uuid
from typing import Any, Protocol

import structlog

from ..errors import PipelineError, RunInProgressError, UnknownError
from ..models import JobLogEntry, JobStatus, JobType
from ..store.repository import Repository, utcnow

_PHASES = {
    JobType.FETCH_SOURCES: "fetch",
    JobType.REWRITE_ARTICLES: "rewrite",
}


class JobStats(Protocol):
    errors: int

    @property
    def successes(self) -> int:
        ...

    def job_counts(self) -> dict[str, int]:
        ...


def job_status(errors: int, successes: int) -> JobStatus:
    if errors > 0 and successes == 0:
        return JobStatus.FAILED
    return JobStatus.COMPLETED


def error_summary(errors: int, job_type: JobType) -> str | None:
    if errors <= 0:
        return None
    return f"{errors} error(s) during {_PHASES[job_type]}"


class JobRecorder:
    """Hold the run lock and append exactly one job log entry per run.

    Use as a context manager around the body of an orchestrator run after its
    fail-fast checks. Assign the (mutable) statistics object to :attr:`stats`
    so a crashing run still logs the partial counts gathered so far.
    """

    def __init__(
        self,
        repository: Repository,
        job_type: JobType,
        site_id: str,
        *,
        ttl: float,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository
        self.job_type = job_type
        self.site_id = site_id
        self.ttl = ttl
        self.logger = logger or structlog.get_logger("syndicator.job_log")
        self.owner = uuid.uuid4().hex
        self.stats: JobStats | None = None
        self.entry: JobLogEntry | None = None
        self._started_at = utcnow()
        self._t0 = 0.0

    def __enter__(self) -> "JobRecorder":
        acquired = self.repository.store.acquire_lock(
            self.site_id, self.job_type.value, self.owner, self.ttl
        )
        if not acquired:
            raise RunInProgressError(self.site_id, self.job_type.value)
        self._started_at = utcnow()
        self._t0 = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> bool:
        try:
            if exc is None:
                self._write_outcome()
                return False
            if not isinstance(exc, Exception):
                return False
            self._write_failure(exc)
            if isinstance(exc, PipelineError):
                return False
            raise UnknownError(
                str(exc) or type(exc).__name__, site_id=self.site_id, partial_stats=self.stats
            ) from exc
        finally:
            self._release()

    # ------------------------------------------------------------------
    def _counts(self) -> dict[str, int]:
        if self.stats is None:
            return {}
        return self.stats.job_counts()

    def _append(self, status: JobStatus, message: str | None) -> JobLogEntry:
        completed = utcnow()
        entry = JobLogEntry(
            job_type=self.job_type,
            site_id=self.site_id,
            status=status,
            error_message=message,
            started_at=self._started_at,
            completed_at=completed,
            duration_ms=int((time.monotonic() - self._t0) * 1000),
            **self._counts(),
        )
        self.entry = self.repository.append_job_log(entry)
        return self.entry

    def _write_outcome(self) -> None:
        errors = self.stats.errors if self.stats is not None else 0
        successes = self.stats.successes if self.stats is not None else 0
        entry = self._append(job_status(errors, successes), error_summary(errors, self.job_type))
        self.logger.info(
            "job_logged",
            job_type=self.job_type.value,
            status=entry.status.value,
            duration_ms=entry.duration_ms,
            **self._counts(),
        )

    def _write_failure(self, exc: Exception) -> None:
        try:
            self._append(JobStatus.FAILED, str(exc) or type(exc).__name__)
        except Exception as write_exc:  # noqa: BLE001
            self.logger.error(
                "job_log_write_failed",
                job_type=self.job_type.value,
                error=str(write_exc),
                original_error=str(exc),
            )

    def _release(self) -> None:
        try:
            self.repository.store.release_lock(self.site_id, self.job_type.value, self.owner)
        except PipelineError as exc:
            self.logger.error("run_lock_release_failed", job_type=self.job_type.value, error=str(exc))


__all__ = ["JobRecorder", "error_summary", "job_status"]
