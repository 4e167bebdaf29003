"""Scheduled triggers for the pipeline."""

from .apsched_adapter import APSchedulerAdapter, site_job_id

__all__ = ["APSchedulerAdapter", "site_job_id"]
