"""Request policy: per-call attempt state plus the strategies that shape each attempt."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from ...config import HttpConfig


@dataclass
class AttemptPlan:
    """Headers, timeout and pre-attempt delay for one request attempt."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    delay: float = 0.0


@dataclass
class AttemptState:
    """Where one ``Fetcher.fetch`` call stands in its attempt budget."""

    http: HttpConfig
    retries: int | None = None
    user_agent: str | None = None
    attempt: int = 1
    max_attempts: int = 1
    gave_up: bool = False

    @property
    def exhausted(self) -> bool:
        return self.gave_up or self.attempt > self.max_attempts


class RequestPolicy:
    """Base strategy; subclasses override only the hooks they need."""

    def plan(self, state: AttemptState, plan: AttemptPlan) -> None:
        return

    def failed(
        self,
        state: AttemptState,
        response: httpx.Response | None,
        error: Exception | None,
    ) -> None:
        return


class PolicyChain:
    """Run every policy in order for each attempt."""

    def __init__(self, policies: list[RequestPolicy]) -> None:
        self.policies = policies

    def plan(self, state: AttemptState) -> AttemptPlan:
        plan = AttemptPlan()
        for policy in self.policies:
            policy.plan(state, plan)
        return plan

    def failed(
        self,
        state: AttemptState,
        response: httpx.Response | None = None,
        error: Exception | None = None,
    ) -> None:
        for policy in self.policies:
            policy.failed(state, response, error)


__all__ = ["AttemptPlan", "AttemptState", "PolicyChain", "RequestPolicy"]
