from __future__ import annotations

import json

import httpx
import pytest

from syndicator.ai import GeminiClient, resolve_api_key
from syndicator.config import AIConfig
from syndicator.errors import (
    AIQuotaError,
    AIResponseError,
    AIServiceError,
    AITimeoutError,
    ContentBlockedError,
)


def _client(handler) -> GeminiClient:
    return GeminiClient(AIConfig(), api_key="test-key", transport=httpx.MockTransport(handler))


def _reply(payload: dict, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return handler


def test_generate_posts_prompt_and_returns_text() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}]},
        )

    text = _client(handler).generate("Rewrite this", system="Be witty")

    assert text == "Hello world"
    request = captured[0]
    assert request.url.path.endswith("/models/gemini-2.0-flash:generateContent")
    assert request.url.params["key"] == "test-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == "Rewrite this"
    assert body["systemInstruction"]["parts"][0]["text"] == "Be witty"


@pytest.mark.parametrize(
    ("status", "error"),
    [(429, AIQuotaError), (408, AITimeoutError), (504, AITimeoutError), (500, AIServiceError)],
)
def test_http_errors_are_mapped(status, error) -> None:
    with pytest.raises(error):
        _client(_reply({"error": {"message": "nope"}}, status)).generate("x")


def test_transport_timeout_is_mapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(AITimeoutError):
        _client(handler).generate("x")


@pytest.mark.parametrize(
    "payload",
    [
        {"promptFeedback": {"blockReason": "SAFETY"}},
        {"candidates": [{"finishReason": "SAFETY", "content": {"parts": []}}]},
    ],
)
def test_safety_blocks_are_content_blocked(payload) -> None:
    with pytest.raises(ContentBlockedError):
        _client(_reply(payload)).generate("x")


@pytest.mark.parametrize(
    "payload",
    [{}, {"candidates": [{"content": {"parts": [{"text": "   "}]}}]}],
)
def test_empty_output_is_a_response_error(payload) -> None:
    with pytest.raises(AIResponseError):
        _client(_reply(payload)).generate("x")


def test_missing_api_key(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GOOGLE_AI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_GENERATIVE_AI_API_KEY", raising=False)
    with pytest.raises(AIServiceError):
        GeminiClient(AIConfig())


def test_api_key_fallback_variable(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GOOGLE_AI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "fallback")
    assert resolve_api_key(AIConfig()) == "fallback"
