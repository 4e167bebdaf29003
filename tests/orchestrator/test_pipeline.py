from __future__ import annotations

import pytest

from syndicator.errors import ConfigError, SiteNotFoundError
from syndicator.models import ArticleStatus, JobType, SourceKind
from syndicator.orchestrator import SiteRunResult

FEED_URL = "https://news.example.com/feed.xml"
OTHER_FEED = "https://harbour.example.org/rss"


def test_run_site_fetches_then_rewrites(make_pipeline, feed_server, rss_source, site, rss_builder, rss_items, fake_generator) -> None:
    feed_server.add(FEED_URL, rss_builder(rss_items(2)))
    pipeline = make_pipeline(generator=fake_generator)

    result = pipeline.run_site(site.slug)

    assert isinstance(result, SiteRunResult)
    assert result.site_id == site.id
    assert result.skipped == []
    assert result.fetch.new_articles == 2
    assert result.rewrite.published == 2
    assert pipeline.repository.count_articles(site.id, ArticleStatus.PUBLISHED) == 2
    assert [e.job_type for e in pipeline.repository.list_job_log(site.id)] == [
        JobType.REWRITE_ARTICLES,
        JobType.FETCH_SOURCES,
    ]


def test_run_site_without_sources_skips_both_phases(make_pipeline, site, fake_generator) -> None:
    pipeline = make_pipeline(generator=fake_generator)

    result = pipeline.run_site(site.id)

    assert result.fetch is None and result.rewrite is None
    assert result.skipped == [
        "No active sources found. Add a source first.",
        "No articles to rewrite. Fetch sources first.",
    ]
    assert pipeline.repository.count_job_log(site.id) == 0


def test_run_site_unknown_site(make_pipeline) -> None:
    with pytest.raises(SiteNotFoundError):
        make_pipeline().run_site("no-such-site")


def test_run_all_isolates_sites(make_pipeline, feed_server, repository, rss_source, site, rss_builder, rss_items, fake_generator) -> None:
    other = repository.create_site("Harbour Post")
    feed_server.add(FEED_URL, rss_builder(rss_items(1)))
    pipeline = make_pipeline(generator=fake_generator)

    results = pipeline.run_all()

    assert set(results) == {site.id, other.id}
    assert results[site.id].rewrite.published == 1
    assert results[other.id].skipped[0] == "No active sources found. Add a source first."


def test_run_all_cron_only(make_pipeline, feed_server, repository, rss_source, site, rss_builder, rss_items, fake_generator) -> None:
    other = repository.create_site("Harbour Post", cron_enabled=False)
    repository.add_source(other.id, OTHER_FEED, SourceKind.RSS)
    feed_server.add(FEED_URL, rss_builder(rss_items(1)))
    pipeline = make_pipeline(generator=fake_generator)

    results = pipeline.run_all(cron_only=True)

    assert list(results) == [site.id]
    assert feed_server.hits(OTHER_FEED) == 0


def test_run_all_reports_failures_per_site(make_pipeline, feed_server, rss_source, site, rss_builder, rss_items, fake_generator, monkeypatch) -> None:
    feed_server.add(FEED_URL, rss_builder(rss_items(1)))
    pipeline = make_pipeline(generator=fake_generator)

    def broken_fetch(site_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(pipeline, "run_fetch", broken_fetch)
    results = pipeline.run_all()

    assert isinstance(results[site.id], RuntimeError)


def test_validate_source_marks_flag(make_pipeline, feed_server, rss_source, rss_builder, rss_items) -> None:
    feed_server.add(FEED_URL, rss_builder(rss_items(1)))
    pipeline = make_pipeline()

    result = pipeline.validate_source(rss_source.id)

    assert result.is_valid
    source = pipeline.repository.get_source(rss_source.id)
    assert source.is_validated and source.last_error is None


def test_validate_source_rejects_html(make_pipeline, feed_server, rss_source) -> None:
    feed_server.add(FEED_URL, "<html><body>Not a feed</body></html>", content_type="text/html")
    pipeline = make_pipeline()

    result = pipeline.validate_source(rss_source.id)

    assert not result.is_valid
    assert result.reason == "Validation failed"
    source = pipeline.repository.get_source(rss_source.id)
    assert not source.is_validated
    assert source.last_error == "Validation failed"
    assert feed_server.hits(FEED_URL) == 1


def test_validate_unknown_source(make_pipeline) -> None:
    with pytest.raises(ConfigError, match="Source not found"):
        make_pipeline().validate_source("missing")


def test_validate_source_with_invalid_url(make_pipeline, repository, site) -> None:
    bad = repository.add_source(site.id, "https://bad.example.com:port/feed", SourceKind.RSS)

    result = make_pipeline().validate_source(bad.id)

    assert not result.is_valid
    assert result.reason == "Validation failed"


def test_rewrite_is_capped_at_articles_per_day(make_pipeline, feed_server, repository, site, rss_builder, rss_items, fake_generator) -> None:
    capped = repository.create_site("Harbour Post", articles_per_day=2)
    repository.add_source(capped.id, FEED_URL, SourceKind.RSS)
    feed_server.add(FEED_URL, rss_builder(rss_items(5)))
    pipeline = make_pipeline(generator=fake_generator)

    result = pipeline.run_site(capped.id)

    assert result.fetch.new_articles == 5
    assert result.rewrite.processed == 2
    assert len(fake_generator.calls) == 2
    assert pipeline.repository.count_articles(capped.id, ArticleStatus.RAW) == 3


def test_explicit_limit_overrides_articles_per_day(make_pipeline, feed_server, repository, site, rss_builder, rss_items, fake_generator) -> None:
    capped = repository.create_site("Harbour Post", articles_per_day=1)
    repository.add_source(capped.id, FEED_URL, SourceKind.RSS)
    feed_server.add(FEED_URL, rss_builder(rss_items(3)))
    pipeline = make_pipeline(generator=fake_generator)
    pipeline.run_fetch(capped.id)

    stats = pipeline.run_rewrite(capped.id, limit=3)

    assert stats.processed == 3


def test_generator_is_created_once(make_pipeline, site, monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_AI_API_KEY", "test-key")
    pipeline = make_pipeline()

    first = pipeline._generator_for(site.id)
    second = pipeline._generator_for(site.id)

    assert first is second
    first.close()
