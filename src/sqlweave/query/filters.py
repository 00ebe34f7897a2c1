"""
Declarative filter operators and their dialect-aware SQL rendering.

Operators are plain values; nothing here knows about a dialect until
:func:`compile_filter` renders one against an accumulator.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from ..validation.errors import ValidationError
from .accumulator import SQLAccumulator

EQUALS = "EQUALS"
NOT_EQUALS = "NOT_EQUALS"
GT = "GT"
GTE = "GTE"
LT = "LT"
LTE = "LTE"
LIKE = "LIKE"
ILIKE = "ILIKE"
IN = "IN"
NOT_IN = "NOT_IN"
IS_NULL = "IS_NULL"
IS_NOT_NULL = "IS_NOT_NULL"
CONTAINS = "CONTAINS"
STARTS_WITH = "STARTS_WITH"
ENDS_WITH = "ENDS_WITH"
CONTAINS_INSENSITIVE = "CONTAINS_INSENSITIVE"
STARTS_WITH_INSENSITIVE = "STARTS_WITH_INSENSITIVE"
ENDS_WITH_INSENSITIVE = "ENDS_WITH_INSENSITIVE"
HAS = "HAS"
HAS_EVERY = "HAS_EVERY"
HAS_SOME = "HAS_SOME"
IS_EMPTY = "IS_EMPTY"
FULLTEXT_SEARCH = "FULLTEXT_SEARCH"
FULLTEXT_SEARCH_CONFIG = "FULLTEXT_SEARCH_CONFIG"

DEFAULT_SEARCH_CONFIG = "english"

_COMPARISONS = {
    EQUALS: "=",
    NOT_EQUALS: "!=",
    GT: ">",
    GTE: ">=",
    LT: "<",
    LTE: "<=",
}

_LIKE_PATTERNS = {
    CONTAINS: "%{}%",
    STARTS_WITH: "{}%",
    ENDS_WITH: "%{}",
    CONTAINS_INSENSITIVE: "%{}%",
    STARTS_WITH_INSENSITIVE: "{}%",
    ENDS_WITH_INSENSITIVE: "%{}",
}

_INSENSITIVE = {ILIKE, CONTAINS_INSENSITIVE, STARTS_WITH_INSENSITIVE, ENDS_WITH_INSENSITIVE}

_CONFIG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class FilterOperator:
    """
    One comparison against a field: an operator name plus its operand.
    """

    op: str
    value: Any = None
    config: str | None = None


# Mapping of column name to an operator, ``None`` (IS NULL) or a plain value (equality).
Where = Mapping[str, Union[FilterOperator, Any]]


def equals(value: Any) -> FilterOperator:
    return FilterOperator(EQUALS, value)


def not_equals(value: Any) -> FilterOperator:
    return FilterOperator(NOT_EQUALS, value)


def gt(value: Any) -> FilterOperator:
    return FilterOperator(GT, value)


def gte(value: Any) -> FilterOperator:
    return FilterOperator(GTE, value)


def lt(value: Any) -> FilterOperator:
    return FilterOperator(LT, value)


def lte(value: Any) -> FilterOperator:
    return FilterOperator(LTE, value)


def like(pattern: str) -> FilterOperator:
    return FilterOperator(LIKE, pattern)


def ilike(pattern: str) -> FilterOperator:
    return FilterOperator(ILIKE, pattern)


def in_(*values: Any) -> FilterOperator:
    """
    ``in_(1, 2, 3)`` or ``in_([1, 2, 3])``. An empty list is rejected rather
    than rendered as an always-false predicate.
    """
    return FilterOperator(IN, _non_empty(IN, values))


def not_in(*values: Any) -> FilterOperator:
    return FilterOperator(NOT_IN, _non_empty(NOT_IN, values))


def is_null() -> FilterOperator:
    return FilterOperator(IS_NULL)


def is_not_null() -> FilterOperator:
    return FilterOperator(IS_NOT_NULL)


def contains(value: str) -> FilterOperator:
    return FilterOperator(CONTAINS, value)


def starts_with(value: str) -> FilterOperator:
    return FilterOperator(STARTS_WITH, value)


def ends_with(value: str) -> FilterOperator:
    return FilterOperator(ENDS_WITH, value)


def contains_insensitive(value: str) -> FilterOperator:
    return FilterOperator(CONTAINS_INSENSITIVE, value)


def starts_with_insensitive(value: str) -> FilterOperator:
    return FilterOperator(STARTS_WITH_INSENSITIVE, value)


def ends_with_insensitive(value: str) -> FilterOperator:
    return FilterOperator(ENDS_WITH_INSENSITIVE, value)


def has(value: Any) -> FilterOperator:
    """JSON array column contains ``value``."""
    return FilterOperator(HAS, value)


def has_every(*values: Any) -> FilterOperator:
    return FilterOperator(HAS_EVERY, _non_empty(HAS_EVERY, values))


def has_some(*values: Any) -> FilterOperator:
    return FilterOperator(HAS_SOME, _non_empty(HAS_SOME, values))


def is_empty() -> FilterOperator:
    return FilterOperator(IS_EMPTY)


def search(query: str) -> FilterOperator:
    return FilterOperator(FULLTEXT_SEARCH, query)


def search_with_config(query: str, config: str = DEFAULT_SEARCH_CONFIG) -> FilterOperator:
    if not _CONFIG_NAME.match(config or ""):
        raise ValidationError.single("config", f"Invalid text search configuration {config!r}.")
    return FilterOperator(FULLTEXT_SEARCH_CONFIG, query, config=config)


def normalize_operand(value: Any) -> FilterOperator:
    """
    Interpret a ``Where`` value: operators pass through, ``None`` means
    IS NULL, scalars mean equality. Sequences must go through ``in_()``.
    """
    if isinstance(value, FilterOperator):
        return value
    if value is None:
        return is_null()
    if isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError.single(
            "where", "Sequence values need an explicit operator such as in_() or has_every()."
        )
    return equals(value)


def compile_filter(field: str, operator: FilterOperator, acc: SQLAccumulator) -> tuple[str, SQLAccumulator]:
    """
    Render ``field <operator>`` and return it with the advanced accumulator.
    """
    dialect = acc.dialect
    column = dialect.format_column(field)
    op = operator.op

    if op in _COMPARISONS:
        token, acc = acc.bind(operator.value)
        return f"{column} {_COMPARISONS[op]} {token}", acc

    if op == LIKE:
        token, acc = acc.bind(operator.value)
        return f"{column} LIKE {token}", acc

    if op == ILIKE:
        token, acc = acc.bind(operator.value)
        return _insensitive_like(acc, column, token), acc

    if op in _LIKE_PATTERNS:
        token, acc = acc.bind(_LIKE_PATTERNS[op].format(operator.value))
        if op in _INSENSITIVE:
            return _insensitive_like(acc, column, token), acc
        return f"{column} LIKE {token}", acc

    if op in (IN, NOT_IN):
        values = _non_empty(op, (operator.value,))
        tokens, acc = acc.bind_many(values)
        keyword = "IN" if op == IN else "NOT IN"
        return f"{column} {keyword} ({', '.join(tokens)})", acc

    if op == IS_NULL:
        return f"{column} IS NULL", acc

    if op == IS_NOT_NULL:
        return f"{column} IS NOT NULL", acc

    if op in (HAS, HAS_EVERY, HAS_SOME, IS_EMPTY):
        return _compile_json(field, column, operator, acc)

    if op in (FULLTEXT_SEARCH, FULLTEXT_SEARCH_CONFIG):
        return _compile_search(field, column, operator, acc)

    raise ValidationError.single(field, f"Unsupported filter operator {op!r}.")


# Helpers -------------------------------------------------------------------


def _non_empty(op: str, values: Iterable[Any]) -> tuple[Any, ...]:
    values = tuple(values)
    if len(values) == 1 and isinstance(values[0], (list, tuple, set, frozenset)):
        values = tuple(values[0])
    if not values:
        raise ValidationError.single(op.lower(), f"{op} requires at least one value.")
    return values


def _insensitive_like(acc: SQLAccumulator, column: str, token: str) -> str:
    if acc.dialect.capabilities.supports_ilike:
        return f"{column} ILIKE {token}"
    return f"LOWER({column}) LIKE LOWER({token})"


def _compile_json(
    field: str, column: str, operator: FilterOperator, acc: SQLAccumulator
) -> tuple[str, SQLAccumulator]:
    dialect = acc.dialect
    op = operator.op

    if op == IS_EMPTY:
        if dialect.capabilities.supports_json:
            return dialect.json_is_empty_query(field), acc
        return f"({column} IS NULL OR {column} = '')", acc

    values = (operator.value,) if op == HAS else _non_empty(op, (operator.value,))

    if not dialect.capabilities.supports_json:
        # Lossy: substring matches over the column's text, not JSON semantics.
        tokens, acc = acc.bind_many(f"%{value}%" for value in values)
        clauses = [f"{column} LIKE {token}" for token in tokens]
        if len(clauses) == 1:
            return clauses[0], acc
        joiner = " OR " if op == HAS_SOME else " AND "
        return f"({joiner.join(clauses)})", acc

    if op in (HAS, HAS_EVERY):
        token, acc = acc.bind(json.dumps(list(values)))
        return dialect.json_contains_query(field, token, bound=True), acc

    if dialect.name == "postgresql":
        tokens, acc = acc.bind_many(str(value) for value in values)
        return f"{column} ?| array[{', '.join(tokens)}]", acc

    clauses = []
    for value in values:
        token, acc = acc.bind(json.dumps(value))
        clauses.append(dialect.json_contains_query(field, token, bound=True))
    return f"({' OR '.join(clauses)})", acc


def _compile_search(
    field: str, column: str, operator: FilterOperator, acc: SQLAccumulator
) -> tuple[str, SQLAccumulator]:
    dialect = acc.dialect
    query = str(operator.value or "")
    if not dialect.capabilities.supports_full_text:
        token, acc = acc.bind(f"%{query}%")
        return f"{column} LIKE {token}", acc
    token, acc = acc.bind(dialect.normalize_full_text(query))
    config = operator.config if operator.op == FULLTEXT_SEARCH_CONFIG else None
    return dialect.full_text_query(field, token, bound=True, config=config), acc
