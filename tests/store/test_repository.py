from __future__ import annotations

import pytest

from syndicator.errors import InvalidTransitionError, SiteNotFoundError
from syndicator.models import ArticleStatus, SourceKind, ToneOfVoice


def test_site_lookup_by_id_or_slug(repository, site) -> None:
    assert repository.get_site(site.id).slug == "metro-daily"
    assert repository.get_site("metro-daily").id == site.id
    assert repository.get_site(site.id).tone_of_voice is ToneOfVoice.FRIENDLY
    with pytest.raises(SiteNotFoundError):
        repository.get_site("missing")


def test_list_sites_filters(repository, site) -> None:
    repository.create_site("Quiet Site", cron_enabled=False)
    assert [s.slug for s in repository.list_sites()] == ["metro-daily", "quiet-site"]
    assert [s.slug for s in repository.list_sites(cron_only=True)] == ["metro-daily"]


def test_sources_activation_and_bookkeeping(repository, site, rss_source) -> None:
    sitemap = repository.add_source(site.id, " https://e.com/sitemap.xml ", SourceKind.SITEMAP)
    assert sitemap.url == "https://e.com/sitemap.xml"
    assert [s.id for s in repository.active_sources(site.id)] == [rss_source.id, sitemap.id]

    assert repository.set_source_active(sitemap.id, False)
    assert not repository.set_source_active("missing", False)
    assert [s.id for s in repository.active_sources(site.id)] == [rss_source.id]

    repository.record_source_fetch(rss_source, 4)
    stored = repository.get_source(rss_source.id)
    assert stored.article_count == 4
    assert stored.last_fetched_at is not None
    repository.record_source_fetch(stored, 2, "HTTP 500")
    stored = repository.get_source(rss_source.id)
    assert stored.article_count == 6
    assert stored.last_error == "HTTP 500"


def test_rewrite_candidates_are_oldest_first_and_limited(repository, site) -> None:
    ids = [
        repository.insert_raw_article(site.id, None, f"k{i}", url=f"https://e.com/{i}", title=str(i)).id
        for i in range(4)
    ]
    published = repository.get_article(ids[1])
    repository.transition_article(published, ArticleStatus.PUBLISHED)
    failed = repository.get_article(ids[2])
    repository.transition_article(failed, ArticleStatus.FAILED)

    assert [a.id for a in repository.rewrite_candidates(site.id)] == [ids[0], ids[2], ids[3]]
    assert [a.id for a in repository.rewrite_candidates(site.id, 2)] == [ids[0], ids[2]]
    assert repository.count_articles(site.id, ArticleStatus.RAW) == 2


def test_transition_guard(repository, site) -> None:
    article = repository.insert_raw_article(site.id, None, "k", url="https://e.com/k", title="K")
    repository.transition_article(article, ArticleStatus.PUBLISHED)
    published = repository.get_article(article.id)
    with pytest.raises(InvalidTransitionError):
        repository.transition_article(published, ArticleStatus.RAW)
    unpublished = repository.unpublish_article(article.id)
    assert unpublished.status is ArticleStatus.UNPUBLISHED
    with pytest.raises(InvalidTransitionError):
        repository.transition_article(unpublished, ArticleStatus.PUBLISHED)
    assert repository.unpublish_article("missing") is None


def test_categories_are_resolved_by_slug(repository, site) -> None:
    first = repository.resolve_category(site.id, "Local News")
    again = repository.resolve_category(site.id, "local news")
    assert first.id == again.id
    assert first.slug == "local-news"
    repository.bump_category(first)
    assert repository.list_categories(site.id)[0].article_count == 1
