"""
Explicit configuration shared by builders.

One ``QueryConfig`` is built at startup and handed to every builder; there
are no module-level defaults to mutate.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

from .adapters.base import AdapterConfigurationError
from .core.mapper import MAX_SCAN_ROWS, ColumnMapper
from .dialects import Dialect, get_dialect
from .utils import get_logger
from .utils.performance import resolve_slow_query_ms
from .utils.timeouts import BULK_TIMEOUT, QUERY_TIMEOUT, TRANSACTION_TIMEOUT, TimeoutBudgets

DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class QueryLimits:
    """
    Caps on clause list sizes; entries past a cap are dropped with a warning.
    """

    max_select_fields: int = 100
    max_order_fields: int = 20
    max_group_fields: int = 20
    max_joins: int = 50
    max_conditions: int = 1000


@dataclass
class QueryConfig:
    """
    Settings shared by builders. A ``None`` dialect is taken from the
    executor the config is used with.
    """

    dialect: Dialect | None = None
    logger: logging.Logger = field(default_factory=lambda: get_logger("query"))
    limits: QueryLimits = field(default_factory=QueryLimits)
    timeouts: TimeoutBudgets = field(default_factory=TimeoutBudgets)
    max_scan_rows: int = MAX_SCAN_ROWS
    batch_size: int = DEFAULT_BATCH_SIZE
    slow_query_ms: int = 1000
    mapper: ColumnMapper = field(default_factory=ColumnMapper)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise AdapterConfigurationError("batch_size must be at least 1")
        if self.max_scan_rows < 1:
            raise AdapterConfigurationError("max_scan_rows must be at least 1")

    @classmethod
    def for_dialect(cls, name: str, **kwargs: Any) -> "QueryConfig":
        return cls(dialect=get_dialect(name), **kwargs)

    @classmethod
    def from_env(cls, prefix: str = "SQLWEAVE_", **kwargs: Any) -> "QueryConfig":
        """
        Read overrides from ``<prefix>DIALECT``, ``<prefix>QUERY_TIMEOUT``,
        ``<prefix>TRANSACTION_TIMEOUT``, ``<prefix>BULK_TIMEOUT``,
        ``<prefix>MAX_SCAN_ROWS`` and ``<prefix>BATCH_SIZE``. Explicit keyword
        arguments win over the environment.
        """
        env = os.environ
        if "dialect" not in kwargs and env.get(f"{prefix}DIALECT"):
            kwargs["dialect"] = get_dialect(env[f"{prefix}DIALECT"])
        if "timeouts" not in kwargs:
            kwargs["timeouts"] = TimeoutBudgets(
                query=_env_float(env, f"{prefix}QUERY_TIMEOUT", QUERY_TIMEOUT),
                transaction=_env_float(env, f"{prefix}TRANSACTION_TIMEOUT", TRANSACTION_TIMEOUT),
                bulk=_env_float(env, f"{prefix}BULK_TIMEOUT", BULK_TIMEOUT),
            )
        if "max_scan_rows" not in kwargs:
            kwargs["max_scan_rows"] = _env_int(env, f"{prefix}MAX_SCAN_ROWS", MAX_SCAN_ROWS)
        if "batch_size" not in kwargs:
            kwargs["batch_size"] = _env_int(env, f"{prefix}BATCH_SIZE", DEFAULT_BATCH_SIZE)
        if "slow_query_ms" not in kwargs:
            kwargs["slow_query_ms"] = resolve_slow_query_ms(default=1000)
        return cls(**kwargs)


def _env_float(env: Any, key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid float value for '{key}': {raw!r}") from exc


def _env_int(env: Any, key: str, default: int) -> int:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid integer value for '{key}': {raw!r}") from exc
