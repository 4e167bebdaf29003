"""Contract for the generative text service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TextGenerator(Protocol):
    """``generate(prompt) -> text``; raises :class:`~syndicator.errors.AIServiceError` subclasses."""

    def generate(self, prompt: str, system: str | None = None) -> str:
        ...


__all__ = ["TextGenerator"]
