from __future__ import annotations

import pytest

from syndicator.errors import DuplicateKeyError, PersistenceError
from syndicator.store import eq, gt, gte, in_, lt, lte, neq
from syndicator.store.sqlite_store import SQLiteStore


def _seed_jobs(store: SQLiteStore) -> None:
    for index, fetched in enumerate([0, 3, 5, 8]):
        store.insert(
            "job_log",
            {
                "job_type": "fetch_sources",
                "site_id": "site-a" if index % 2 == 0 else "site-b",
                "status": "completed",
                "articles_fetched": fetched,
                "started_at": f"2024-09-1{index}T08:00:00+00:00",
            },
        )


def test_insert_generates_id_and_returns_row(store) -> None:
    row = store.insert(
        "sites", {"name": "Metro", "slug": "metro", "cron_enabled": True, "status": "active"}
    )
    assert row["id"]
    assert row["cron_enabled"] == 1
    assert store.count("sites") == 1


def test_conditions(store) -> None:
    _seed_jobs(store)

    def fetched(*where):
        rows = store.select("job_log", where=list(where), order_by=[("articles_fetched", "asc")])
        return [row["articles_fetched"] for row in rows]

    assert fetched(eq("site_id", "site-a")) == [0, 5]
    assert fetched(neq("site_id", "site-a")) == [3, 8]
    assert fetched(gt("articles_fetched", 3)) == [5, 8]
    assert fetched(gte("articles_fetched", 3)) == [3, 5, 8]
    assert fetched(lt("articles_fetched", 3)) == [0]
    assert fetched(lte("articles_fetched", 3)) == [0, 3]
    assert fetched(in_("articles_fetched", [0, 8])) == [0, 8]
    assert fetched(in_("articles_fetched", [])) == []
    assert fetched(eq("error_message", None)) == [0, 3, 5, 8]


def test_ordering_limit_offset_and_count(store) -> None:
    _seed_jobs(store)
    rows = store.select(
        "job_log", order_by=[("articles_fetched", "desc")], limit=2, offset=1
    )
    assert [row["articles_fetched"] for row in rows] == [5, 3]
    assert store.count("job_log", [eq("site_id", "site-b")]) == 2


def test_update_and_delete_report_rowcounts(store) -> None:
    _seed_jobs(store)
    assert store.update("job_log", {"status": "failed"}, [eq("site_id", "site-a")]) == 2
    assert store.count("job_log", [eq("status", "failed")]) == 2
    assert store.delete("job_log", [eq("status", "failed")]) == 2
    assert store.count("job_log") == 2


def test_unknown_columns_and_tables_are_rejected(store) -> None:
    with pytest.raises(PersistenceError):
        store.select("job_log", where=[eq("bogus; DROP TABLE sites", 1)])
    with pytest.raises(PersistenceError):
        store.insert("nope", {"id": "x"})
    with pytest.raises(PersistenceError):
        store.select("job_log", order_by=[("injected", "asc")])


def test_unique_site_fingerprint_constraint(repository, site) -> None:
    repository.insert_raw_article(site.id, None, "abc", url="https://e.com/a", title="A")
    with pytest.raises(DuplicateKeyError):
        repository.insert_raw_article(site.id, None, "abc", url="https://e.com/a", title="A again")
    other = repository.create_site("Second Site")
    repository.insert_raw_article(other.id, None, "abc", url="https://e.com/a", title="A")
    assert repository.store.count("articles", [eq("fingerprint", "abc")]) == 2


def test_not_null_violation_is_a_persistence_error(store) -> None:
    with pytest.raises(PersistenceError) as excinfo:
        store.insert("sites", {"slug": "no-name"})
    assert not isinstance(excinfo.value, DuplicateKeyError)


def test_json_columns_round_trip(repository, site) -> None:
    article = repository.insert_raw_article(site.id, None, "k1", url="https://e.com/a", title="A")
    repository.store.update(
        "articles", {"tags": ["one", "two"]}, [eq("id", article.id)]
    )
    assert repository.get_article(article.id).tags == ["one", "two"]


def test_run_lock_is_exclusive_until_released_or_expired(store) -> None:
    assert store.acquire_lock("site-a", "fetch_sources", "owner-1", ttl=60)
    assert not store.acquire_lock("site-a", "fetch_sources", "owner-2", ttl=60)
    assert store.acquire_lock("site-a", "rewrite_articles", "owner-2", ttl=60)
    assert store.acquire_lock("site-b", "fetch_sources", "owner-2", ttl=60)

    store.release_lock("site-a", "fetch_sources", "owner-2")
    assert not store.acquire_lock("site-a", "fetch_sources", "owner-3", ttl=60)
    store.release_lock("site-a", "fetch_sources", "owner-1")
    assert store.acquire_lock("site-a", "fetch_sources", "owner-3", ttl=60)


def test_expired_lock_can_be_taken_over(store) -> None:
    assert store.acquire_lock("site-a", "fetch_sources", "stale", ttl=-1)
    assert store.acquire_lock("site-a", "fetch_sources", "fresh", ttl=60)
