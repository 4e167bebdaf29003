"""Data store contract consumed by the pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Sequence

Operator = Literal["eq", "neq", "in", "gt", "gte", "lt", "lte"]
Direction = Literal["asc", "desc"]


@dataclass(slots=True, frozen=True)
class Condition:
    column: str
    op: Operator
    value: Any


def eq(column: str, value: Any) -> Condition:
    return Condition(column, "eq", value)


def neq(column: str, value: Any) -> Condition:
    return Condition(column, "neq", value)


def in_(column: str, values: Iterable[Any]) -> Condition:
    return Condition(column, "in", tuple(values))


def gt(column: str, value: Any) -> Condition:
    return Condition(column, "gt", value)


def gte(column: str, value: Any) -> Condition:
    return Condition(column, "gte", value)


def lt(column: str, value: Any) -> Condition:
    return Condition(column, "lt", value)


def lte(column: str, value: Any) -> Condition:
    return Condition(column, "lte", value)


class DataStore(ABC):
    """Table-like read/write contract against named relations.

    Every operation is request/response. Implementations raise
    :class:`~syndicator.errors.PersistenceError` when the backend rejects a
    call and :class:`~syndicator.errors.DuplicateKeyError` when an insert
    violates a uniqueness constraint.
    """

    @abstractmethod
    def select(
        self,
        table: str,
        where: Sequence[Condition] = (),
        order_by: Sequence[tuple[str, Direction]] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return matching rows as plain dictionaries."""

    @abstractmethod
    def count(self, table: str, where: Sequence[Condition] = ()) -> int:
        """Return the number of matching rows."""

    @abstractmethod
    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored (with generated id)."""

    @abstractmethod
    def update(self, table: str, values: dict[str, Any], where: Sequence[Condition]) -> int:
        """Update matching rows and return how many changed."""

    @abstractmethod
    def delete(self, table: str, where: Sequence[Condition]) -> int:
        """Delete matching rows and return how many were removed."""

    @abstractmethod
    def acquire_lock(self, site_id: str, job_type: str, owner: str, ttl: float) -> bool:
        """Take the advisory (site, job type) lock unless a live holder exists."""

    @abstractmethod
    def release_lock(self, site_id: str, job_type: str, owner: str) -> None:
        """Release a lock previously taken by ``owner``."""

    def select_one(self, table: str, where: Sequence[Condition] = ()) -> dict[str, Any] | None:
        rows = self.select(table, where=where, limit=1)
        return rows[0] if rows else None

    def close(self) -> None:
        """Release underlying resources."""


__all__ = [
    "Condition",
    "DataStore",
    "Direction",
    "eq",
    "gt",
    "gte",
    "in_",
    "lt",
    "lte",
    "neq",
]
