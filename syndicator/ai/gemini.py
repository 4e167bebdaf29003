"""Gemini ``generateContent`` client over plain HTTP."""

from __future__ import annotations

import os
from typing import Any

import httpx
import structlog
from dotenv import load_dotenv

from ..config import AIConfig
from ..errors import (
    AIQuotaError,
    AIResponseError,
    AIServiceError,
    AITimeoutError,
    ContentBlockedError,
)

_BLOCKING_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII", "RECITATION"}


def resolve_api_key(config: AIConfig) -> str | None:
    load_dotenv()
    for name in config.api_key_env:
        value = os.getenv(name)
        if value:
            return value
    return None


class GeminiClient:
    """Minimal text generator backed by the Generative Language REST API."""

    def __init__(
        self,
        config: AIConfig,
        *,
        api_key: str | None = None,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.api_key = api_key or resolve_api_key(config)
        if not self.api_key:
            names = " or ".join(config.api_key_env)
            raise AIServiceError(f"Google AI API key is required. Set {names} in your environment.")
        self.logger = logger or structlog.get_logger("syndicator.ai.gemini")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout, transport=transport)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"

    def generate(self, prompt: str, system: str | None = None) -> str:
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        try:
            response = self._client.post(
                self._endpoint(),
                params={"key": self.api_key},
                json=body,
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as exc:
            raise AITimeoutError(f"Gemini request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise AIServiceError(f"Gemini request failed: {exc}") from exc

        if response.status_code == 429:
            raise AIQuotaError(f"429 Too Many Requests: {response.text[:200]}")
        if response.status_code in (408, 504):
            raise AITimeoutError(f"Gemini timed out with HTTP {response.status_code}")
        if not response.is_success:
            raise AIServiceError(f"Gemini returned HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise AIResponseError("Gemini returned a non-JSON payload") from exc
        return self._extract_text(payload)

    @staticmethod
    def _extract_text(payload: dict[str, Any]) -> str:
        feedback = payload.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            raise ContentBlockedError(f"Prompt blocked: {feedback['blockReason']}")
        candidates = payload.get("candidates") or []
        if not candidates:
            raise AIResponseError("No candidates in Gemini response")
        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        if finish_reason in _BLOCKING_FINISH_REASONS:
            raise ContentBlockedError(f"Response blocked: {finish_reason}")
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise AIResponseError("No response text from Gemini")
        return text


__all__ = ["GeminiClient", "resolve_api_key"]
