"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass

from ..dialects.sqlite import SQLiteDialect
from ..utils.performance import PerformanceTracker
from ..utils.timeouts import current_deadline
from .base import AdapterConnectionError, ConnectionConfig, DatabaseAdapter

# Number of SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection
    deadline: float | None = None


class SQLiteAdapter(DatabaseAdapter):
    """
    Adapter wrapping the Python stdlib sqlite3 module.
    """

    def __init__(
        self,
        slow_query_ms: int | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        super().__init__(SQLiteDialect(), slow_query_ms=slow_query_ms, tracker=tracker)
        self._state: SQLiteConnectionState | None = None

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        path = self._normalize_path(config.url)
        timeout = config.timeout if config.timeout is not None else 5.0

        # isolation_level=None hands transaction control to explicit BEGIN/COMMIT.
        connection = sqlite3.connect(
            path,
            isolation_level=None if config.autocommit else "DEFERRED",
            timeout=timeout,
            check_same_thread=False,
        )
        connection.execute("PRAGMA foreign_keys = ON")

        self._state = SQLiteConnectionState(connection)
        self.logger.info("Connected to SQLite %s", path)
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None

    def _ensure_connection(self) -> sqlite3.Connection:
        if not self._state:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._state.connection

    def _is_autocommit(self, connection: sqlite3.Connection) -> bool:
        return connection.isolation_level is None

    def _apply_deadline(self, connection: sqlite3.Connection) -> None:
        state = self._state
        target = current_deadline()
        if state is None or state.deadline == target:
            return
        state.deadline = target
        if target is None:
            connection.set_progress_handler(None, 0)
            return
        # A non-zero return aborts the running statement with "interrupted".
        connection.set_progress_handler(lambda: int(time.monotonic() >= target), _PROGRESS_STEPS)

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite:///:memory:", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url
