"""Concrete request policies: user agent, timeout, retry budget and backoff."""

from __future__ import annotations

import httpx

from ...config import HttpConfig
from .chain import AttemptPlan, AttemptState, PolicyChain, RequestPolicy

RETRYABLE_STATUS = frozenset({408, 429})


def is_retryable(response: httpx.Response | None, error: Exception | None) -> bool:
    """Network errors, 5xx, 408 and 429 are worth another attempt."""

    if error is not None:
        return isinstance(error, httpx.TransportError)
    if response is None:
        return False
    return response.status_code >= 500 or response.status_code in RETRYABLE_STATUS


class UserAgentPolicy(RequestPolicy):
    """Send the configured user agent unless the caller asked for another."""

    def plan(self, state: AttemptState, plan: AttemptPlan) -> None:
        plan.headers.setdefault("User-Agent", state.user_agent or state.http.user_agent)


class TimeoutPolicy(RequestPolicy):
    def plan(self, state: AttemptState, plan: AttemptPlan) -> None:
        plan.timeout = state.http.timeout


class BackoffPolicy(RequestPolicy):
    """Exponential delay ahead of every retry attempt."""

    def plan(self, state: AttemptState, plan: AttemptPlan) -> None:
        if state.attempt <= 1:
            return
        http = state.http
        delay = http.backoff_base * (http.backoff_factor ** (state.attempt - 2))
        plan.delay = min(delay, http.backoff_max)


class RetryPolicy(RequestPolicy):
    """``retries=N`` allows N+1 attempts; permanent failures stop at once."""

    def plan(self, state: AttemptState, plan: AttemptPlan) -> None:
        retries = state.http.retry_on_fail if state.retries is None else state.retries
        state.max_attempts = max(1, retries + 1)

    def failed(
        self,
        state: AttemptState,
        response: httpx.Response | None,
        error: Exception | None,
    ) -> None:
        if is_retryable(response, error):
            state.attempt += 1
        else:
            state.gave_up = True


def build_chain(
    http: HttpConfig,
    *,
    retries: int | None = None,
    user_agent: str | None = None,
) -> tuple[AttemptState, PolicyChain]:
    state = AttemptState(http=http, retries=retries, user_agent=user_agent)
    chain = PolicyChain([RetryPolicy(), UserAgentPolicy(), TimeoutPolicy(), BackoffPolicy()])
    return state, chain


__all__ = [
    "BackoffPolicy",
    "RETRYABLE_STATUS",
    "RetryPolicy",
    "TimeoutPolicy",
    "UserAgentPolicy",
    "build_chain",
    "is_retryable",
]
