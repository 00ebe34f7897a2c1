"""
Database adapter interfaces and implementations.
"""

from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
    AdapterTransactionError,
    ConnectionConfig,
    ConnectionFailedError,
    DatabaseAdapter,
    DriverError,
    ExecResult,
    Executor,
    ForeignKeyConstraintError,
    NullConstraintError,
    QueryTimeoutError,
    Rows,
    SSLConfig,
    UniqueConstraintError,
    map_driver_error,
    translate_placeholders,
)
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "AdapterTransactionError",
    "ConnectionConfig",
    "ConnectionFailedError",
    "DatabaseAdapter",
    "DriverError",
    "ExecResult",
    "Executor",
    "ForeignKeyConstraintError",
    "MySQLAdapter",
    "NullConstraintError",
    "PostgresAdapter",
    "QueryTimeoutError",
    "Rows",
    "SQLiteAdapter",
    "SSLConfig",
    "UniqueConstraintError",
    "map_driver_error",
    "translate_placeholders",
]
