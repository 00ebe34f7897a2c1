"""
Dialect strategy registry.
"""

from __future__ import annotations

from typing import Callable

from .base import Dialect, DialectCapabilities, normalize_ts_query
from .mysql import MySQLDialect
from .postgres import PostgresDialect
from .sqlite import SQLiteDialect

DEFAULT_DIALECT = "postgresql"

_REGISTRY: dict[str, Callable[[], Dialect]] = {
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "sqlite": SQLiteDialect,
    "sqlite3": SQLiteDialect,
}


def get_dialect(name: str | None) -> Dialect:
    """
    Resolve a provider name to a dialect; unknown names fall back to PostgreSQL.
    """
    factory = _REGISTRY.get((name or "").strip().lower(), _REGISTRY[DEFAULT_DIALECT])
    return factory()


__all__ = [
    "DEFAULT_DIALECT",
    "Dialect",
    "DialectCapabilities",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "get_dialect",
    "normalize_ts_query",
]
