"""Backoff retries for rate-limited generative calls."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

import structlog

from ..errors import AIQuotaError

T = TypeVar("T")

logger = structlog.get_logger("syndicator.ai.retry")


def backoff_schedule(max_retries: int, base: float = 5.0, multiplier: float = 3.0) -> list[float]:
    """Delays before each retry: 5s, 15s, 45s with the defaults."""

    return [base * (multiplier ** attempt) for attempt in range(max_retries)]


def with_quota_retry(
    call: Callable[[], T],
    *,
    max_retries: int = 3,
    base: float = 5.0,
    multiplier: float = 3.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``call``, retrying only on :class:`AIQuotaError`."""

    delays = backoff_schedule(max_retries, base, multiplier)
    attempt = 0
    while True:
        try:
            return call()
        except AIQuotaError as exc:
            if attempt >= len(delays):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                "ai_rate_limited",
                retry_in=delay,
                attempt=attempt,
                max_retries=max_retries,
                error=str(exc),
            )
            sleep(delay)


__all__ = ["backoff_schedule", "with_quota_retry"]
