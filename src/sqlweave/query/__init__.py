"""
Query construction: filters, compilation, builders and batch execution.
"""

from .accumulator import SQLAccumulator
from .batch import BatchError, BatchExecutor, BatchResult
from .builder import BuilderBase, Query, RecordNotFoundError
from .compiler import (
    FieldCondition,
    GroupCondition,
    Join,
    OrderBy,
    QueryState,
    RawCondition,
    SQLCompiler,
    render_raw,
)
from .filters import (
    FilterOperator,
    Where,
    compile_filter,
    contains,
    contains_insensitive,
    ends_with,
    ends_with_insensitive,
    equals,
    gt,
    gte,
    has,
    has_every,
    has_some,
    ilike,
    in_,
    is_empty,
    is_not_null,
    is_null,
    like,
    lt,
    lte,
    not_equals,
    not_in,
    search,
    search_with_config,
    starts_with,
    starts_with_insensitive,
)
from .table import QueryOptions, TableQueryBuilder

__all__ = [
    "BatchError",
    "BatchExecutor",
    "BatchResult",
    "BuilderBase",
    "FieldCondition",
    "FilterOperator",
    "GroupCondition",
    "Join",
    "OrderBy",
    "Query",
    "QueryOptions",
    "QueryState",
    "RawCondition",
    "RecordNotFoundError",
    "SQLAccumulator",
    "SQLCompiler",
    "TableQueryBuilder",
    "Where",
    "compile_filter",
    "contains",
    "contains_insensitive",
    "ends_with",
    "ends_with_insensitive",
    "equals",
    "gt",
    "gte",
    "has",
    "has_every",
    "has_some",
    "ilike",
    "in_",
    "is_empty",
    "is_not_null",
    "is_null",
    "like",
    "lt",
    "lte",
    "not_equals",
    "not_in",
    "render_raw",
    "search",
    "search_with_config",
    "starts_with",
    "starts_with_insensitive",
]
