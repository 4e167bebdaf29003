"""Pydantic models describing the pipeline configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_TRACKING_PARAMS = [
    "fbclid",
    "gclid",
    "dclid",
    "msclkid",
    "mc_cid",
    "mc_eid",
    "igshid",
    "yclid",
    "_hsenc",
    "_hsmi",
    "ref",
    "ref_src",
]


class ScheduleType(str, Enum):
    """Scheduler modes supported by the trigger adapter."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """When scheduled pipeline runs fire for cron-enabled sites."""

    type: ScheduleType = Field(default=ScheduleType.INTERVAL)
    value: Any = Field(
        default=3600,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class HttpConfig(BaseModel):
    """Outbound HTTP behaviour for feeds, validation and article extraction."""

    timeout: float = 10.0
    user_agent: str = "Mozilla/5.0 (compatible; Syndicator/1.0)"
    validation_user_agent: str = "Syndicator/1.0 (+source validation)"
    retry_on_fail: int = 2
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    backoff_max: float = 30.0

    @model_validator(mode="after")
    def _validate_numbers(self) -> "HttpConfig":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.retry_on_fail < 0:
            raise ValueError("retry_on_fail must be >= 0")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff values must be non-negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        return self


class FetchConfig(BaseModel):
    max_child_sitemaps: int = 20

    @field_validator("max_child_sitemaps")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_child_sitemaps must be >= 0")
        return value


class DedupConfig(BaseModel):
    """URL normalisation rules and near-duplicate policy."""

    tracking_params: list[str] = Field(default_factory=lambda: list(DEFAULT_TRACKING_PARAMS))
    tracking_prefixes: list[str] = Field(default_factory=lambda: ["utm_"])
    # Hamming distance between SimHashes of rewritten content; None disables the check.
    near_duplicate_distance: int | None = 3

    @field_validator("tracking_params", "tracking_prefixes", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return [str(item).strip().lower() for item in value if str(item).strip()]

    @field_validator("near_duplicate_distance")
    @classmethod
    def _distance(cls, value: int | None) -> int | None:
        if value is not None and not 0 <= value <= 64:
            raise ValueError("near_duplicate_distance must be between 0 and 64")
        return value


class AIConfig(BaseModel):
    """Generative text service settings."""

    provider: Literal["gemini"] = "gemini"
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: list[str] = Field(
        default_factory=lambda: ["GOOGLE_AI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"]
    )
    timeout: float = 60.0
    max_retries: int = 3
    backoff_seconds: float = 5.0
    backoff_multiplier: float = 3.0

    @model_validator(mode="after")
    def _validate_retry(self) -> "AIConfig":
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")
        if not self.api_key_env:
            raise ValueError("api_key_env needs at least one variable name")
        return self


class RewriteConfig(BaseModel):
    """Quality gates around the AI rewrite step."""

    max_source_chars: int = 8000
    min_source_chars: int = 50
    min_rewrite_chars: int = 200
    # Rewrites whose SimHash lies within this distance of the source are near-copies.
    source_similarity_distance: int = 3
    cta_threshold: int = 3
    default_limit: int | None = None

    @model_validator(mode="after")
    def _validate_limits(self) -> "RewriteConfig":
        if self.max_source_chars <= 0:
            raise ValueError("max_source_chars must be > 0")
        if self.min_source_chars < 0 or self.min_rewrite_chars < 0:
            raise ValueError("minimum lengths must be >= 0")
        if not 0 <= self.source_similarity_distance <= 64:
            raise ValueError("source_similarity_distance must be between 0 and 64")
        if self.cta_threshold < 1:
            raise ValueError("cta_threshold must be >= 1")
        if self.default_limit is not None and self.default_limit < 1:
            raise ValueError("default_limit must be >= 1 or null")
        return self


class GlobalConfig(BaseModel):
    """Top level settings shared by every site run."""

    http: HttpConfig = Field(default_factory=HttpConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    rewrite: RewriteConfig = Field(default_factory=RewriteConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    database_path: Path = Field(default=Path("data/syndicator.db"))
    thread_pool_workers: int = 4
    run_budget_seconds: int = 300

    @field_validator("database_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_workers(self) -> "GlobalConfig":
        if self.thread_pool_workers < 1:
            raise ValueError("thread_pool_workers must be >= 1")
        if self.run_budget_seconds < 1:
            raise ValueError("run_budget_seconds must be >= 1")
        return self

    def resolved_database_path(self, base_dir: Path) -> Path:
        if not self.database_path.is_absolute():
            return (base_dir / self.database_path).resolve()
        return self.database_path


__all__ = [
    "AIConfig",
    "DedupConfig",
    "FetchConfig",
    "GlobalConfig",
    "HttpConfig",
    "RewriteConfig",
    "ScheduleConfig",
    "ScheduleType",
]
