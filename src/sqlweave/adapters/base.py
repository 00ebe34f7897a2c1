"""
Adapter protocol definitions and shared DB-API plumbing for sqlweave.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Protocol, Sequence

from ..dialects.base import Dialect
from ..security.dsns import DSNConfig, parse_dsn
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from ..utils.performance import PerformanceTracker, resolve_slow_query_ms
from ..utils.timeouts import deadline_exceeded

if TYPE_CHECKING:
    from ..persistence.transaction import Transaction


class AdapterError(RuntimeError):
    """Base error for adapter-related failures."""


class AdapterConfigurationError(AdapterError):
    """Raised when configuration or required dependencies are invalid."""


class AdapterConnectionError(AdapterError):
    """Raised when establishing or using a connection fails."""


class AdapterExecutionError(AdapterError):
    """Raised when SQL parameters do not line up with the statement."""


class AdapterTransactionError(AdapterError):
    """Raised when transaction operations fail."""


class DriverError(AdapterError):
    """
    A failure reported by the database driver, wrapped once with the
    operation that triggered it. The driver exception is kept as ``__cause__``.
    """

    code = "P2010"

    def __init__(self, message: str, *, operation: str | None = None, sql: str | None = None) -> None:
        self.operation = operation
        self.sql = sql
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{message}")


class UniqueConstraintError(DriverError):
    code = "P2002"


class ForeignKeyConstraintError(DriverError):
    code = "P2003"


class NullConstraintError(DriverError):
    code = "P2011"


class QueryTimeoutError(DriverError):
    code = "P1008"


class ConnectionFailedError(DriverError):
    code = "P1001"


_ERROR_MARKERS: tuple[tuple[type[DriverError], tuple[str, ...]], ...] = (
    (UniqueConstraintError, ("duplicate key", "unique constraint", "23505", "1062")),
    (ForeignKeyConstraintError, ("foreign key", "23503", "1452")),
    (NullConstraintError, ("not null", "null value", "23502", "1048")),
    (
        QueryTimeoutError,
        ("timeout", "timed out", "canceling statement", "interrupted", "max_execution_time"),
    ),
    (
        ConnectionFailedError,
        ("connection refused", "connection reset", "server closed", "broken pipe", "2006", "2013"),
    ),
)


def map_driver_error(exc: BaseException, *, operation: str | None = None, sql: str | None = None) -> DriverError:
    """
    Classify a driver exception by its message text and SQLSTATE/errno.
    """
    if isinstance(exc, DriverError):
        return exc
    text = " ".join(
        str(part)
        for part in (exc, getattr(exc, "sqlstate", None), getattr(exc, "pgcode", None))
        if part
    )
    args = getattr(exc, "args", ())
    if args and isinstance(args[0], int):
        text += f" {args[0]}"
    lowered = text.lower()
    for error_type, markers in _ERROR_MARKERS:
        if any(marker in lowered for marker in markers):
            return error_type(str(exc), operation=operation, sql=sql)
    return DriverError(str(exc), operation=operation, sql=sql)


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def postgres_options(self) -> dict[str, Any]:
        options = {
            "sslmode": self.mode,
            "sslrootcert": self.rootcert,
            "sslcert": self.cert,
            "sslkey": self.key,
        }
        return {key: value for key, value in options.items() if value}

    def mysql_options(self) -> dict[str, Any]:
        ssl = {key: value for key, value in (("ca", self.ca), ("cert", self.cert), ("key", self.key)) if value}
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        return {"ssl": ssl} if ssl else {}


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# DSN query keys consumed by SSLConfig, mapped to attribute names.
_SSL_KEYS = {
    "sslmode": "mode",
    "sslrootcert": "rootcert",
    "sslcert": "cert",
    "sslkey": "key",
    "ssl_ca": "ca",
    "ssl_cert": "cert",
    "ssl_key": "key",
}


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise AdapterConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_number(value: str, *, key: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid {kind.__name__} value for '{key}': {value!r}") from exc


def _parse_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    found = False
    for key, attribute in _SSL_KEYS.items():
        if key in query:
            setattr(ssl, attribute, query.pop(key))
            found = True
    if "ssl_check_hostname" in query:
        ssl.check_hostname = _parse_bool(query.pop("ssl_check_hostname"), key="ssl_check_hostname")
        found = True
    return ssl if found else None


@dataclass
class ConnectionConfig:
    """
    Normalized connection configuration for adapters.

    Connections default to autocommit; explicit transactions are opened with
    ``adapter.begin()``.
    """

    url: str
    autocommit: bool = True
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Build a connection config by parsing the DSN string.
        """
        parsed = parse_dsn(dsn)
        query = dict(parsed.query)

        parsed_autocommit = (
            _parse_bool(query.pop("autocommit"), key="autocommit") if "autocommit" in query else None
        )
        parsed_timeout = (
            _parse_number(query.pop("timeout"), key="timeout", kind=float) if "timeout" in query else None
        )
        parsed_isolation_level = query.pop("isolation_level", None)
        parsed_ssl = _parse_ssl(query)
        options: dict[str, Any] = {
            key: _parse_number(value, key=key, kind=int) if key == "connect_timeout" else value
            for key, value in query.items()
        }
        options.update(kwargs.pop("options", None) or {})

        autocommit = kwargs.pop("autocommit", parsed_autocommit)
        return cls(
            url=dsn,
            dsn=parsed,
            autocommit=True if autocommit is None else autocommit,
            isolation_level=kwargs.pop("isolation_level", parsed_isolation_level),
            timeout=kwargs.pop("timeout", parsed_timeout),
            options=options or None,
            ssl=kwargs.pop("ssl", parsed_ssl),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Build a config from an environment variable containing a DSN.
        """
        value = os.getenv(env_var)
        if not value:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    def redacted_dsn(self) -> str:
        if self.dsn:
            return self.dsn.redacted()
        return self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted


@dataclass(frozen=True)
class ExecResult:
    rows_affected: int
    last_insert_id: Any = None


class Rows:
    """
    Row cursor over a DB-API cursor. Iterating yields tuples; callers own
    ``close()`` (or use it as a context manager).
    """

    def __init__(self, cursor: Any, columns: Sequence[str] | None = None) -> None:
        self._cursor = cursor
        description = getattr(cursor, "description", None) or ()
        self.columns: list[str] = list(columns) if columns is not None else [d[0] for d in description]
        self.closed = False

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while True:
            row = self.fetchone()
            if row is None:
                return
            yield row

    def __enter__(self) -> "Rows":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetchone(self) -> tuple[Any, ...] | None:
        if self.closed:
            raise AdapterExecutionError("Row cursor is closed.")
        try:
            row = self._cursor.fetchone()
        except Exception as exc:
            raise map_driver_error(exc, operation="fetch") from exc
        return None if row is None else tuple(row)

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self._cursor, "close", None)
        if callable(close):
            close()


class Executor(Protocol):
    """
    Executable-connection capability shared by adapters and open transactions.
    """

    @property
    def dialect(self) -> Dialect: ...

    def exec(self, sql: str, params: Sequence[Any] | None = None) -> ExecResult: ...

    def query(self, sql: str, params: Sequence[Any] | None = None) -> Rows: ...

    def query_row(self, sql: str, params: Sequence[Any] | None = None) -> tuple[Any, ...] | None: ...

    def begin(self) -> "Transaction": ...


def translate_placeholders(
    sql: str, params: Sequence[Any], *, source_style: str
) -> tuple[str, list[Any]]:
    """
    Rewrite ``$n`` (numeric_dollar) or ``?`` (qmark) markers into the
    ``%s`` format style used by psycopg and PyMySQL. Literal ``%`` signs are
    doubled; quoted literals and identifiers are left untouched apart from
    that escaping.
    """
    pieces: list[str] = []
    ordered: list[Any] = []
    seen: set[int] = set()
    quote: str | None = None
    idx = 0
    length = len(sql)
    while idx < length:
        char = sql[idx]
        if quote is not None:
            pieces.append("%%" if char == "%" else char)
            if char == quote:
                quote = None
            idx += 1
            continue
        if char in ("'", '"', "`"):
            quote = char
            pieces.append(char)
            idx += 1
            continue
        if char == "%":
            pieces.append("%%")
            idx += 1
            continue
        if source_style == "numeric_dollar" and char == "$" and idx + 1 < length and sql[idx + 1].isdigit():
            end = idx + 1
            while end < length and sql[end].isdigit():
                end += 1
            position = int(sql[idx + 1 : end])
            if position < 1 or position > len(params):
                raise AdapterExecutionError(
                    f"Placeholder ${position} has no matching parameter ({len(params)} supplied)."
                )
            seen.add(position)
            ordered.append(params[position - 1])
            pieces.append("%s")
            idx = end
            continue
        if source_style == "qmark" and char == "?":
            if len(ordered) >= len(params):
                raise AdapterExecutionError(
                    f"Parameter count mismatch: more placeholders than the {len(params)} supplied."
                )
            ordered.append(params[len(ordered)])
            pieces.append("%s")
            idx += 1
            continue
        pieces.append(char)
        idx += 1

    expected = len(seen) if source_style == "numeric_dollar" else len(ordered)
    if expected != len(params):
        raise AdapterExecutionError(
            f"Parameter count mismatch: expected {expected}, received {len(params)}."
        )
    return "".join(pieces), ordered


class DatabaseAdapter:
    """
    Base for DB-API adapters. Subclasses provide ``connect``, ``close`` and
    ``_ensure_connection``; this class supplies statement execution, the
    executable-connection capability, and transaction bookkeeping.
    """

    dialect: Dialect
    begin_statement = "BEGIN"

    def __init__(
        self,
        dialect: Dialect,
        *,
        slow_query_ms: int | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        self.dialect = dialect
        self.logger = get_logger(f"adapters.{dialect.name}")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)
        self.tracker = tracker
        self._transaction: "Transaction | None" = None

    # ------------------------------------------------------------------ #
    # Connection management (subclass hooks)
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> Any:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def _ensure_connection(self) -> Any:
        raise NotImplementedError

    def _prepare_statement(self, sql: str, params: Sequence[Any]) -> tuple[str, Sequence[Any] | None]:
        """
        Convert dialect placeholders into what the driver accepts.
        """
        return sql, params

    def _apply_deadline(self, connection: Any) -> None:
        """
        Push the active deadline down to the driver before a round trip.
        """

    def _is_autocommit(self, connection: Any) -> bool:
        return bool(getattr(connection, "autocommit", False))

    # ------------------------------------------------------------------ #
    # Execution helpers
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None, *, operation: str = "execute") -> Any:
        connection = self._ensure_connection()
        params = list(params or ())
        driver_sql, driver_params = self._prepare_statement(sql, params)
        if deadline_exceeded():
            raise QueryTimeoutError("deadline exceeded before statement was sent", operation=operation, sql=sql)
        timer = time_call(
            f"{self.dialect.name}.{operation}",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        )
        cursor = None
        try:
            self._apply_deadline(connection)
            cursor = connection.cursor()
            with timer:
                if driver_params:
                    cursor.execute(driver_sql, driver_params)
                else:
                    cursor.execute(driver_sql)
        except Exception as exc:
            if cursor is not None:
                self._discard_cursor(cursor)
            raise map_driver_error(exc, operation=operation, sql=sql) from exc
        if self.tracker is not None:
            self.tracker.record(sql, params, timer.elapsed_ms)
        return cursor

    def executemany(self, sql: str, seq_of_params: Sequence[Sequence[Any]] | Iterable[Sequence[Any]]) -> Any:
        connection = self._ensure_connection()
        prepared = [self._prepare_statement(sql, list(params)) for params in seq_of_params]
        if not prepared:
            return None
        driver_sql = prepared[0][0]
        cursor = connection.cursor()
        try:
            with time_call(
                f"{self.dialect.name}.executemany",
                self.logger,
                sql=sql,
                params="bulk",
                threshold_ms=self.slow_query_ms,
            ):
                cursor.executemany(driver_sql, [params for _, params in prepared])
        except Exception as exc:
            self._discard_cursor(cursor)
            raise map_driver_error(exc, operation="executemany", sql=sql) from exc
        return cursor

    # ------------------------------------------------------------------ #
    # Executable-connection capability
    # ------------------------------------------------------------------ #
    def exec(self, sql: str, params: Sequence[Any] | None = None) -> ExecResult:
        cursor = self.execute(sql, params, operation="exec")
        try:
            return ExecResult(
                rows_affected=max(getattr(cursor, "rowcount", 0) or 0, 0),
                last_insert_id=self.last_insert_id(cursor),
            )
        finally:
            _close_cursor(cursor)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> Rows:
        return Rows(self.execute(sql, params, operation="query"))

    def query_row(self, sql: str, params: Sequence[Any] | None = None) -> tuple[Any, ...] | None:
        cursor = self.execute(sql, params, operation="query_row")
        try:
            row = cursor.fetchone()
        except Exception as exc:
            raise map_driver_error(exc, operation="query_row", sql=sql) from exc
        finally:
            _close_cursor(cursor)
        return None if row is None else tuple(row)

    def begin(self) -> "Transaction":
        from ..persistence.transaction import Transaction, TransactionError

        if self._transaction is not None and self._transaction.is_open:
            raise TransactionError("A transaction is already open on this connection.")
        try:
            self.start_transaction()
        except DriverError as exc:
            raise TransactionError(f"failed to begin transaction: {exc}") from exc
        self._transaction = Transaction(self)
        return self._transaction

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_open

    def _release(self, transaction: "Transaction") -> None:
        if self._transaction is transaction:
            self._transaction = None

    # ------------------------------------------------------------------ #
    # Transactions (raw)
    # ------------------------------------------------------------------ #
    def start_transaction(self) -> None:
        # Without autocommit the driver opens the transaction implicitly.
        if self._is_autocommit(self._ensure_connection()):
            _close_cursor(self.execute(self.begin_statement, operation="begin"))

    def commit(self) -> None:
        connection = self._ensure_connection()
        try:
            if self._is_autocommit(connection):
                _close_cursor(self.execute("COMMIT", operation="commit"))
            else:
                connection.commit()
        except DriverError:
            raise
        except Exception as exc:
            raise map_driver_error(exc, operation="commit") from exc

    def rollback(self) -> None:
        connection = self._ensure_connection()
        try:
            if self._is_autocommit(connection):
                _close_cursor(self.execute("ROLLBACK", operation="rollback"))
            else:
                connection.rollback()
        except DriverError:
            raise
        except Exception as exc:
            raise map_driver_error(exc, operation="rollback") from exc

    def last_insert_id(self, cursor: Any) -> Any:
        return getattr(cursor, "lastrowid", None) or None

    def _discard_cursor(self, cursor: Any) -> None:
        try:
            _close_cursor(cursor)
        except Exception as exc:
            # The statement error is the one worth raising.
            self.logger.debug("Failed to close cursor after error: %s", exc)


def _close_cursor(cursor: Any) -> None:
    close = getattr(cursor, "close", None)
    if callable(close):
        close()
