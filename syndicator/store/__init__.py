"""Data store contract, SQLite implementation and typed repository."""

from .base import Condition, DataStore, eq, gt, gte, in_, lt, lte, neq
from .repository import Repository
from .sqlite_store import SQLiteStore

__all__ = [
    "Condition",
    "DataStore",
    "Repository",
    "SQLiteStore",
    "eq",
    "gt",
    "gte",
    "in_",
    "lt",
    "lte",
    "neq",
]
