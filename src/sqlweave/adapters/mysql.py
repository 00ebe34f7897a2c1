"""
MySQL database adapter implementation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.mysql import MySQLDialect
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
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


@dataclass
class MySQLConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any
    max_execution_ms: int = 0


class MySQLAdapter(DatabaseAdapter):
    """
    Adapter wrapping a MySQL DB-API driver (PyMySQL or mysqlclient).
    """

    begin_statement = "START TRANSACTION"

    def __init__(
        self,
        slow_query_ms: int | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        super().__init__(MySQLDialect(), slow_query_ms=slow_query_ms, tracker=tracker)
        self._state: MySQLConnectionState | None = None

    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError(
                "PyMySQL or mysqlclient is required to use MySQLAdapter."
            )
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to MySQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )

        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port

        try:
            connection = driver.connect(**connect_kwargs)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to MySQL.") from exc
        if hasattr(connection, "autocommit"):
            connection.autocommit(config.autocommit)

        self._state = MySQLConnectionState(connection, config, driver)
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("MySQLAdapter is not connected.")
        conn = self._state.connection
        if getattr(conn, "open", True) is False:
            if self.in_transaction:
                raise AdapterConnectionError("MySQL connection lost during a transaction.")
            self.logger.warning("MySQL connection closed; reconnecting.")
            conn = self.connect(self._state.config)
        return conn

    def _is_autocommit(self, connection: Any) -> bool:
        # autocommit is a setter method on both drivers; the flag lives in the config.
        return bool(self._state and self._state.config.autocommit)

    def _prepare_statement(self, sql: str, params: Sequence[Any]) -> tuple[str, Sequence[Any] | None]:
        if not params:
            return sql, None
        return translate_placeholders(sql, params, source_style=self.dialect.param_style)

    def _apply_deadline(self, connection: Any) -> None:
        state = self._state
        if state is None:
            return
        remaining = remaining_seconds()
        timeout_ms = 0 if remaining is None else max(1, math.ceil(remaining)) * 1000
        if timeout_ms == state.max_execution_ms:
            return
        cursor = connection.cursor()
        try:
            cursor.execute(f"SET SESSION max_execution_time = {timeout_ms}")
        finally:
            cursor.close()
        state.max_execution_ms = timeout_ms
