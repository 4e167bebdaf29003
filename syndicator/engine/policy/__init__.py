"""Request policy chain (user agent, timeout, retry, backoff)."""

from .chain import AttemptPlan, AttemptState, PolicyChain, RequestPolicy
from .strategies import build_chain, is_retryable

__all__ = [
    "AttemptPlan",
    "AttemptState",
    "PolicyChain",
    "RequestPolicy",
    "build_chain",
    "is_retryable",
]
