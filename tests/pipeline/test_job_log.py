from __future__ import annotations

from dataclasses import dataclass

import pytest

from syndicator.errors import PersistenceError, RunInProgressError, UnknownError
from syndicator.models import JobStatus, JobType
from syndicator.pipeline.job_log import JobRecorder, error_summary, job_status


@dataclass
class CountingStats:
    fetched: int = 0
    errors: int = 0

    @property
    def successes(self) -> int:
        return self.fetched

    def job_counts(self) -> dict[str, int]:
        return {"articles_fetched": self.fetched}


@pytest.mark.parametrize(
    ("errors", "successes", "expected"),
    [
        (0, 0, JobStatus.COMPLETED),
        (0, 3, JobStatus.COMPLETED),
        (2, 1, JobStatus.COMPLETED),
        (2, 0, JobStatus.FAILED),
    ],
)
def test_job_status(errors, successes, expected) -> None:
    assert job_status(errors, successes) is expected


def test_error_summary() -> None:
    assert error_summary(0, JobType.FETCH_SOURCES) is None
    assert error_summary(3, JobType.FETCH_SOURCES) == "3 error(s) during fetch"
    assert error_summary(1, JobType.REWRITE_ARTICLES) == "1 error(s) during rewrite"


def _recorder(repository, site, job_type=JobType.FETCH_SOURCES) -> JobRecorder:
    return JobRecorder(repository, job_type, site.id, ttl=60)


def test_recorder_logs_outcome_and_releases_lock(repository, site) -> None:
    with _recorder(repository, site) as job:
        job.stats = CountingStats(fetched=4, errors=1)

    (entry,) = repository.list_job_log(site.id)
    assert entry.status is JobStatus.COMPLETED
    assert entry.articles_fetched == 4
    assert entry.error_message == "1 error(s) during fetch"
    assert entry.duration_ms is not None and entry.duration_ms >= 0
    assert job.entry is not None and job.entry.id == entry.id

    # released: a second run of the same type can start
    with _recorder(repository, site):
        pass
    assert repository.count_job_log(site.id) == 2


def test_concurrent_run_of_same_type_is_rejected(repository, site) -> None:
    with _recorder(repository, site):
        with pytest.raises(RunInProgressError) as excinfo:
            with _recorder(repository, site):
                pass
        # other job types are not blocked
        with _recorder(repository, site, JobType.REWRITE_ARTICLES):
            pass

    assert excinfo.value.message == "A fetch_sources run is already in progress"
    assert {e.job_type for e in repository.list_job_log(site.id)} == {
        JobType.FETCH_SOURCES,
        JobType.REWRITE_ARTICLES,
    }


def test_unexpected_exception_is_wrapped_with_partial_stats(repository, site) -> None:
    stats = CountingStats(fetched=2)

    with pytest.raises(UnknownError) as excinfo:
        with _recorder(repository, site) as job:
            job.stats = stats
            raise RuntimeError("disk on fire")

    assert excinfo.value.partial_stats is stats
    assert excinfo.value.site_id == site.id
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    (entry,) = repository.list_job_log(site.id)
    assert entry.status is JobStatus.FAILED
    assert entry.error_message == "disk on fire"
    assert entry.articles_fetched == 2

    with _recorder(repository, site):
        pass


def test_pipeline_errors_propagate_unwrapped(repository, site) -> None:
    with pytest.raises(PersistenceError):
        with _recorder(repository, site):
            raise PersistenceError("constraint failed")

    (entry,) = repository.list_job_log(site.id)
    assert entry.status is JobStatus.FAILED
    assert entry.error_message == "constraint failed"
