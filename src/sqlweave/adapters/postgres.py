"""
PostgreSQL database adapter implementation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.postgres import PostgresDialect
from ..utils.performance import PerformanceTracker
from ..utils.timeouts import remaining_seconds
from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    ConnectionConfig,
    DatabaseAdapter,
    translate_placeholders,
)


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


@dataclass
class PostgresConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any
    statement_timeout_ms: int = 0


class PostgresAdapter(DatabaseAdapter):
    """
    Adapter wrapping the psycopg PostgreSQL driver.
    """

    def __init__(
        self,
        slow_query_ms: int | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        super().__init__(PostgresDialect(), slow_query_ms=slow_query_ms, tracker=tracker)
        self._state: PostgresConnectionState | None = None

    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError("psycopg is required to use PostgresAdapter.")

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.postgres_options().items():
                options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to PostgreSQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )

        try:
            connection = driver.connect(config.url, **options)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to PostgreSQL.") from exc
        connection.autocommit = bool(config.autocommit)
        if config.isolation_level:
            setattr(connection, "isolation_level", config.isolation_level)

        self._state = PostgresConnectionState(connection, config, driver)
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("PostgresAdapter is not connected.")
        conn = self._state.connection
        if getattr(conn, "closed", False):
            if self.in_transaction:
                raise AdapterConnectionError("PostgreSQL connection lost during a transaction.")
            self.logger.warning("PostgreSQL connection closed; reconnecting.")
            conn = self.connect(self._state.config)
        return conn

    def _prepare_statement(self, sql: str, params: Sequence[Any]) -> tuple[str, Sequence[Any] | None]:
        if not params:
            return sql, None
        return translate_placeholders(sql, params, source_style=self.dialect.param_style)

    def _apply_deadline(self, connection: Any) -> None:
        state = self._state
        if state is None:
            return
        remaining = remaining_seconds()
        # Whole seconds keep the session setting stable across calls in one budget.
        timeout_ms = 0 if remaining is None else max(1, math.ceil(remaining)) * 1000
        if timeout_ms == state.statement_timeout_ms:
            return
        cursor = connection.cursor()
        try:
            cursor.execute(f"SET statement_timeout = {timeout_ms}")
        finally:
            cursor.close()
        state.statement_timeout_ms = timeout_ms
