"""Fetch and rewrite orchestrators with job logging."""

from .fetch import FetchOrchestrator, FetchStats, SourceStats
from .job_log import JobRecorder
from .rewrite import RewriteOrchestrator, RewriteStats

__all__ = [
    "FetchOrchestrator",
    "FetchStats",
    "JobRecorder",
    "RewriteOrchestrator",
    "RewriteStats",
    "SourceStats",
]
