"""HTTP fetching with retry/backoff policy integration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict

import httpx
import structlog

from ..config import HttpConfig
from ..errors import FetchError
from .policy.strategies import build_chain


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str]
    raw: httpx.Response | None = field(repr=False, default=None)

    @property
    def text(self) -> str:
        if self.raw is not None:
            return self.raw.text
        return self.content.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").lower()


class Fetcher:
    """Coordinate request execution and the retry strategy chain."""

    def __init__(
        self,
        http: HttpConfig,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.http = http
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("syndicator.fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=http.timeout,
            transport=transport,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(
        self,
        url: str,
        *,
        retries: int | None = None,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> FetchResponse:
        """GET ``url``, retrying transient failures; raise :class:`FetchError` otherwise."""

        state, chain = build_chain(self.http, retries=retries, user_agent=user_agent)
        last_error: Exception | None = None
        status_code: int | None = None
        while not state.exhausted:
            plan = chain.plan(state)
            req_headers = dict(plan.headers)
            if headers:
                req_headers.update(headers)

            if plan.delay:
                self._sleep(plan.delay)
            attempt = state.attempt

            try:
                response = self._client.get(url, headers=req_headers, timeout=plan.timeout)
                if response.is_success:
                    return FetchResponse(
                        url=str(response.url),
                        status_code=response.status_code,
                        content=response.content,
                        headers={k.lower(): v for k, v in response.headers.items()},
                        raw=response,
                    )
                status_code = response.status_code
                last_error = None
                chain.failed(state, response=response)
                self.logger.warning(
                    "fetch_bad_status",
                    url=url,
                    status_code=status_code,
                    attempt=attempt,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                # InvalidURL is not an HTTPError subclass.
                status_code = None
                last_error = exc
                chain.failed(state, error=exc)
                self.logger.warning(
                    "fetch_error",
                    url=url,
                    attempt=attempt,
                    error=str(exc),
                )

        if status_code is not None:
            message = f"HTTP {status_code} for {url}"
        else:
            message = f"Request failed for {url}: {last_error}"
        raise FetchError(message, url=url, status_code=status_code) from last_error


__all__ = ["FetchResponse", "Fetcher"]
