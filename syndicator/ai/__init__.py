"""Generative text service clients."""

from .base import TextGenerator
from .gemini import GeminiClient, resolve_api_key
from .retry import backoff_schedule, with_quota_retry

__all__ = ["GeminiClient", "TextGenerator", "backoff_schedule", "resolve_api_key", "with_quota_retry"]
