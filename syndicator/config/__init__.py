"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    AIConfig,
    DedupConfig,
    FetchConfig,
    GlobalConfig,
    HttpConfig,
    RewriteConfig,
    ScheduleConfig,
    ScheduleType,
)

__all__ = [
    "AIConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DedupConfig",
    "FetchConfig",
    "GlobalConfig",
    "HttpConfig",
    "RewriteConfig",
    "ScheduleConfig",
    "ScheduleType",
]
