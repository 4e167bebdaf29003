"""SQLite backed implementation of the data store contract."""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Any, Iterator, Sequence

from ..errors import DuplicateKeyError, PersistenceError
from ..infra.storage import SQLiteManager
from .base import Condition, DataStore, Direction

JSON_COLUMNS: dict[str, frozenset[str]] = {
    "articles": frozenset({"tags", "social_hashtags"}),
}

_SQL_OPERATORS = {
    "eq": "=",
    "neq": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    return value


class SQLiteStore(DataStore):
    """Relational store on a single SQLite file shared by all worker threads."""

    def __init__(self, path: Path, manager: SQLiteManager | None = None) -> None:
        self.path = Path(path)
        self.manager = manager or SQLiteManager()
        try:
            self.conn = self.manager.connect(self.path)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {self.path}: {exc}") from exc
        self._lock = RLock()
        self._columns = self._load_columns()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _load_columns(self) -> dict[str, frozenset[str]]:
        tables = [
            row["name"]
            for row in self.conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        ]
        columns: dict[str, frozenset[str]] = {}
        for table in tables:
            info = self.conn.execute(f"PRAGMA table_info({table})").fetchall()
            columns[table] = frozenset(row["name"] for row in info)
        return columns

    def _check(self, table: str, names: Sequence[str]) -> None:
        known = self._columns.get(table)
        if known is None:
            raise PersistenceError(f"Unknown table: {table}")
        unknown = [name for name in names if name not in known]
        if unknown:
            raise PersistenceError(f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}")

    def _encode(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        json_columns = JSON_COLUMNS.get(table, frozenset())
        encoded: dict[str, Any] = {}
        for key, value in row.items():
            if key in json_columns and value is not None:
                encoded[key] = json.dumps(list(value), ensure_ascii=False)
            else:
                encoded[key] = _to_db(value)
        return encoded

    def _decode(self, table: str, row: sqlite3.Row) -> dict[str, Any]:
        data = dict(row)
        for key in JSON_COLUMNS.get(table, frozenset()):
            raw = data.get(key)
            if isinstance(raw, str):
                data[key] = json.loads(raw)
        return data

    def _where(self, table: str, where: Sequence[Condition]) -> tuple[str, list[Any]]:
        if not where:
            return "", []
        self._check(table, [condition.column for condition in where])
        clauses: list[str] = []
        params: list[Any] = []
        for condition in where:
            if condition.op == "in":
                values = [_to_db(value) for value in condition.value]
                if not values:
                    clauses.append("0")
                    continue
                placeholders = ", ".join("?" for _ in values)
                clauses.append(f"{condition.column} IN ({placeholders})")
                params.extend(values)
            elif condition.value is None and condition.op in ("eq", "neq"):
                clauses.append(
                    f"{condition.column} IS {'NOT ' if condition.op == 'neq' else ''}NULL"
                )
            else:
                operator = _SQL_OPERATORS.get(condition.op)
                if operator is None:
                    raise PersistenceError(f"Unsupported operator: {condition.op}")
                clauses.append(f"{condition.column} {operator} ?")
                params.append(_to_db(condition.value))
        return " WHERE " + " AND ".join(clauses), params

    @contextmanager
    def _guard(self, write: bool = False) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
                if write:
                    self.conn.commit()
            except sqlite3.IntegrityError as exc:
                self.conn.rollback()
                if "UNIQUE" in str(exc) or "PRIMARY KEY" in str(exc):
                    raise DuplicateKeyError(str(exc)) from exc
                raise PersistenceError(str(exc)) from exc
            except sqlite3.Error as exc:
                if write:
                    self.conn.rollback()
                raise PersistenceError(str(exc)) from exc

    # ------------------------------------------------------------------
    # DataStore API
    # ------------------------------------------------------------------
    def select(
        self,
        table: str,
        where: Sequence[Condition] = (),
        order_by: Sequence[tuple[str, Direction]] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        clause, params = self._where(table, where)
        sql = f"SELECT * FROM {table}{clause}"
        if order_by:
            self._check(table, [column for column, _ in order_by if column != "rowid"])
            parts = [
                f"{column} {'DESC' if direction == 'desc' else 'ASC'}"
                for column, direction in order_by
            ]
            sql += " ORDER BY " + ", ".join(parts)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(offset)])
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(int(offset))
        with self._guard() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._decode(table, row) for row in rows]

    def count(self, table: str, where: Sequence[Condition] = ()) -> int:
        clause, params = self._where(table, where)
        with self._guard() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {table}{clause}", params).fetchone()
        return int(row["total"])

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        payload = dict(row)
        self._check(table, list(payload))
        if "id" in self._columns[table] and not payload.get("id"):
            payload["id"] = str(uuid.uuid4())
        encoded = self._encode(table, payload)
        columns = ", ".join(encoded)
        placeholders = ", ".join("?" for _ in encoded)
        with self._guard(write=True) as conn:
            conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                list(encoded.values()),
            )
        if "id" in payload:
            stored = self.select_one(table, [Condition("id", "eq", payload["id"])])
            if stored is not None:
                return stored
        return payload

    def update(self, table: str, values: dict[str, Any], where: Sequence[Condition]) -> int:
        if not values:
            return 0
        self._check(table, list(values))
        encoded = self._encode(table, values)
        assignments = ", ".join(f"{column} = ?" for column in encoded)
        clause, params = self._where(table, where)
        with self._guard(write=True) as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments}{clause}",
                list(encoded.values()) + params,
            )
        return cursor.rowcount

    def delete(self, table: str, where: Sequence[Condition]) -> int:
        clause, params = self._where(table, where)
        with self._guard(write=True) as conn:
            cursor = conn.execute(f"DELETE FROM {table}{clause}", params)
        return cursor.rowcount

    def acquire_lock(self, site_id: str, job_type: str, owner: str, ttl: float) -> bool:
        now = time.time()
        with self._lock:
            try:
                self.conn.execute(
                    "DELETE FROM run_locks WHERE site_id = ? AND job_type = ? AND expires_at <= ?",
                    (site_id, job_type, now),
                )
                self.conn.execute(
                    "INSERT INTO run_locks (site_id, job_type, owner, acquired_at, expires_at)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (site_id, job_type, owner, now, now + ttl),
                )
                self.conn.commit()
            except sqlite3.IntegrityError:
                self.conn.rollback()
                return False
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise PersistenceError(str(exc), site_id=site_id) from exc
        return True

    def release_lock(self, site_id: str, job_type: str, owner: str) -> None:
        with self._guard(write=True) as conn:
            conn.execute(
                "DELETE FROM run_locks WHERE site_id = ? AND job_type = ? AND owner = ?",
                (site_id, job_type, owner),
            )

    def close(self) -> None:
        with self._lock:
            self.manager.disconnect(self.path)


__all__ = ["JSON_COLUMNS", "SQLiteStore"]
