"""Shared fixtures: temp SQLite store, seeded sites, fake feeds and fake AI."""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest
import structlog

from syndicator.config import ConfigLocator, ConfigRepository, GlobalConfig, HttpConfig
from syndicator.models import Site, Source, SourceKind, ToneOfVoice
from syndicator.orchestrator import Pipeline
from syndicator.store import Repository, SQLiteStore

FEED_URL = "https://news.example.com/feed.xml"
SITEMAP_URL = "https://news.example.com/sitemap.xml"

_VOCABULARY = (
    "market analysis growth quarter revenue engineers platform release update customers "
    "strategy cloud service security privacy network latency storage database cluster region "
    "launch product design research team budget forecast partner investor founder hiring "
    "policy regulation compliance audit report survey dataset model training inference "
    "benchmark hardware chip battery energy solar grid transport vehicle city housing "
    "education school student teacher health clinic patient vaccine study trial result "
    "climate ocean forest river drought harvest farmer supply chain shipping port retail "
    "consumer price inflation wage labour union contract court ruling appeal election "
    "voter campaign debate museum gallery artist festival concert album film series "
    "season league match coach player transfer stadium record victory defeat weather storm"
).split()

SOURCE_PARAGRAPH = (
    "<p>The city council approved a new transit plan on Tuesday after months of debate. "
    "Officials said the first bus lanes will open next spring and the budget includes "
    "funding for safer crossings near schools.</p>"
)


def null_logger_factory(site_id: str) -> structlog.BoundLogger:
    return structlog.wrap_logger(structlog.testing.ReturnLogger(), logger_name="syndicator.tests").bind(site_id=site_id)


def no_sleep(_seconds: float) -> None:
    return None


# ----------------------------------------------------------------------
# Fake HTTP
# ----------------------------------------------------------------------
@dataclass
class FeedServer:
    """Route table backing an ``httpx.MockTransport``."""

    routes: dict[str, Any] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(
        self,
        url: str,
        body: str | bytes = "",
        *,
        status: int = 200,
        content_type: str = "application/xml",
    ) -> None:
        self.routes[url] = (status, body, content_type)

    def add_handler(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[url] = handler

    def hits(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found", request=request)
        if callable(route):
            return route(request)
        status, body, content_type = route
        content = body.encode("utf-8") if isinstance(body, str) else body
        return httpx.Response(
            status, content=content, headers={"Content-Type": content_type}, request=request
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def feed_server() -> FeedServer:
    return FeedServer()


def rss_document(items: Iterable[dict[str, str]], *, title: str = "Example News") -> str:
    entries = []
    for item in items:
        parts = [f"<title>{item['title']}</title>", f"<link>{item['link']}</link>"]
        if item.get("description"):
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        if item.get("pubDate"):
            parts.append(f"<pubDate>{item['pubDate']}</pubDate>")
        if item.get("extra"):
            parts.append(item["extra"])
        entries.append("<item>" + "".join(parts) + "</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">'
        f"<channel><title>{title}</title><link>https://news.example.com/</link>"
        + "".join(entries)
        + "</channel></rss>"
    )


@pytest.fixture
def rss_items() -> Callable[..., list[dict[str, str]]]:
    def _builder(count: int = 3, prefix: str = "story") -> list[dict[str, str]]:
        return [
            {
                "title": f"Transit update {prefix} {index}",
                "link": f"https://news.example.com/{prefix}-{index}",
                "description": SOURCE_PARAGRAPH.replace("Tuesday", f"day {index}"),
                "pubDate": "Tue, 10 Sep 2024 08:00:00 GMT",
            }
            for index in range(1, count + 1)
        ]

    return _builder


# ----------------------------------------------------------------------
# Fake AI
# ----------------------------------------------------------------------
def rewrite_payload(seed: str, **overrides: Any) -> str:
    """JSON rewrite response whose body text is unique per ``seed``."""

    rng = random.Random(seed)
    paragraphs = [
        "<p>" + " ".join(rng.choice(_VOCABULARY) for _ in range(45)) + ".</p>" for _ in range(3)
    ]
    payload: dict[str, Any] = {
        "title": f"Rewritten: {seed}",
        "content": "".join(paragraphs),
        "excerpt": "A short excerpt that hooks readers.",
        "metaDescription": "A meta description for search engines." * 4,
        "tags": ["transit", "city", "policy", "budget", "schools"],
        "category": "Local News",
        "socialCopy": "Big changes are coming to the city's buses.",
        "socialHashtags": ["transit", "citylife", "news"],
    }
    payload.update(overrides)
    return json.dumps(payload)


def prompt_title(prompt: str) -> str:
    return prompt.split("TITLE: ", 1)[1].split("\n", 1)[0].strip()


class FakeGenerator:
    """Text generator returning canned rewrites, optionally per title."""

    def __init__(self, behaviours: dict[str, Any] | None = None) -> None:
        self.behaviours = behaviours or {}
        self.calls: list[tuple[str, str | None]] = []

    def generate(self, prompt: str, system: str | None = None) -> str:
        self.calls.append((prompt, system))
        title = prompt_title(prompt)
        behaviour = self.behaviours.get(title)
        if isinstance(behaviour, BaseException):
            raise behaviour
        if isinstance(behaviour, list):
            outcome = behaviour.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        if isinstance(behaviour, str):
            return behaviour
        return rewrite_payload(title)


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


# ----------------------------------------------------------------------
# Store and seeded rows
# ----------------------------------------------------------------------
@pytest.fixture
def global_config() -> GlobalConfig:
    return GlobalConfig(http=HttpConfig(retry_on_fail=1, backoff_base=0.0))


@pytest.fixture
def store(tmp_path: Path) -> Iterable[SQLiteStore]:
    sqlite_store = SQLiteStore(tmp_path / "syndicator.db")
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def repository(store: SQLiteStore) -> Repository:
    return Repository(store)


@pytest.fixture
def site(repository: Repository) -> Site:
    return repository.create_site(
        "Metro Daily",
        tone_of_voice=ToneOfVoice.FRIENDLY,
        brand_summary="Independent local news for commuters.",
        cron_enabled=True,
    )


@pytest.fixture
def rss_source(repository: Repository, site: Site) -> Source:
    return repository.add_source(site.id, FEED_URL, SourceKind.RSS, name="Example News")


@pytest.fixture
def make_pipeline(global_config: GlobalConfig, store: SQLiteStore, feed_server: FeedServer):
    created: list[Pipeline] = []

    def _builder(generator: Any = None, config: GlobalConfig | None = None) -> Pipeline:
        pipeline = Pipeline(
            config or global_config,
            store,
            generator=generator,
            transport=feed_server.transport,
            sleep=no_sleep,
            logger_factory=null_logger_factory,
        )
        created.append(pipeline)
        return pipeline

    yield _builder
    for pipeline in created:
        pipeline.thread_pool.shutdown()
        pipeline.fetcher.close()


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("SYNDICATOR_HOME", str(tmp_path))
    return ConfigRepository(ConfigLocator(project_root=tmp_path))


@pytest.fixture
def rss_builder() -> Callable[..., str]:
    return rss_document


@pytest.fixture
def payload_builder() -> Callable[..., str]:
    return rewrite_payload


@pytest.fixture
def generator_factory() -> Callable[..., FakeGenerator]:
    return FakeGenerator
