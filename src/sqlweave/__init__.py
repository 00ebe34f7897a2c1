"""
sqlweave public package initialization.

Dialect-aware SQL building, row mapping, transactions and batch writes over
DB-API drivers.
"""

from .adapters import (  # noqa: F401
    ConnectionConfig,
    DriverError,
    MySQLAdapter,
    PostgresAdapter,
    SQLiteAdapter,
)
from .config import QueryConfig, QueryLimits  # noqa: F401
from .core import ColumnMapper, ConfigurationError, ResultTooLargeError, ScanError, column  # noqa: F401
from .dialects import get_dialect  # noqa: F401
from .persistence import (  # noqa: F401
    Transaction,
    TransactionCoordinator,
    TransactionError,
    execute_sequential_transactions,
    execute_transaction,
    transaction,
)
from .query import (  # noqa: F401
    BatchError,
    BatchResult,
    OrderBy,
    Query,
    QueryOptions,
    RecordNotFoundError,
    TableQueryBuilder,
)
from .schema import SchemaBuilder  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "BatchError",
    "BatchResult",
    "ColumnMapper",
    "ConfigurationError",
    "ConnectionConfig",
    "DriverError",
    "MySQLAdapter",
    "OrderBy",
    "PostgresAdapter",
    "Query",
    "QueryConfig",
    "QueryLimits",
    "QueryOptions",
    "RecordNotFoundError",
    "ResultTooLargeError",
    "SQLiteAdapter",
    "ScanError",
    "SchemaBuilder",
    "TableQueryBuilder",
    "Transaction",
    "TransactionCoordinator",
    "TransactionError",
    "ValidationError",
    "column",
    "execute_sequential_transactions",
    "execute_transaction",
    "get_dialect",
    "transaction",
]
