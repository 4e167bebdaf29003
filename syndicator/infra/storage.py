"""SQLite connection management and schema for the pipeline tables."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sites (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        organization_id TEXT,
        description TEXT,
        tone_of_voice TEXT NOT NULL DEFAULT 'professional',
        brand_summary TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        articles_per_day INTEGER NOT NULL DEFAULT 10,
        cron_enabled INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sources (
        id TEXT PRIMARY KEY,
        site_id TEXT NOT NULL REFERENCES sites(id) ON DELETE CASCADE,
        url TEXT NOT NULL,
        source_type TEXT NOT NULL,
        name TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        is_validated INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        last_fetched_at TEXT,
        article_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        site_id TEXT NOT NULL REFERENCES sites(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        slug TEXT NOT NULL,
        article_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        UNIQUE (site_id, slug)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        site_id TEXT NOT NULL REFERENCES sites(id) ON DELETE CASCADE,
        source_id TEXT REFERENCES sources(id) ON DELETE SET NULL,
        category_id TEXT REFERENCES categories(id) ON DELETE SET NULL,
        status TEXT NOT NULL DEFAULT 'raw',
        fingerprint TEXT NOT NULL,
        original_url TEXT NOT NULL,
        original_title TEXT NOT NULL,
        original_content TEXT,
        original_author TEXT,
        original_published_at TEXT,
        title TEXT,
        slug TEXT,
        content TEXT,
        excerpt TEXT,
        meta_description TEXT,
        featured_image_url TEXT,
        tags TEXT,
        social_copy TEXT,
        social_hashtags TEXT,
        content_hash TEXT,
        view_count INTEGER NOT NULL DEFAULT 0,
        published_at TEXT,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE (site_id, fingerprint)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_site_status ON articles(site_id, status, created_at)",
    """
    CREATE TABLE IF NOT EXISTS job_log (
        id TEXT PRIMARY KEY,
        job_type TEXT NOT NULL,
        site_id TEXT,
        status TEXT NOT NULL,
        articles_fetched INTEGER NOT NULL DEFAULT 0,
        articles_rewritten INTEGER NOT NULL DEFAULT 0,
        articles_published INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        started_at TEXT NOT NULL,
        completed_at TEXT,
        duration_ms INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS run_locks (
        site_id TEXT NOT NULL,
        job_type TEXT NOT NULL,
        owner TEXT NOT NULL,
        acquired_at REAL NOT NULL,
        expires_at REAL NOT NULL,
        PRIMARY KEY (site_id, job_type)
    )
    """,
)


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()

    def disconnect(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()


__all__ = ["SCHEMA", "SQLiteManager"]
