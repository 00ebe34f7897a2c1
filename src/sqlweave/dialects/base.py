"""
Dialect strategy interfaces describing SQL syntax and capability differences.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_returning: bool = False
    supports_json: bool = False
    supports_full_text: bool = False
    supports_ilike: bool = False
    supports_savepoints: bool = True
    supports_schema_namespaces: bool = False


class Dialect(Protocol):
    """
    Strategy interface consumed across query, schema, and adapter layers.

    Implementations are stateless; one instance can be shared freely.
    """

    @property
    def name(self) -> str: ...

    @property
    def param_style(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    @property
    def auto_increment_keyword(self) -> str: ...

    @property
    def now_function(self) -> str: ...

    @property
    def driver_name(self) -> str: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def quote_string_literal(self, value: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def format_column(self, column: str) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def limit_offset(self, limit: int | None, offset: int | None) -> str: ...

    def map_type(self, type_name: str, *, is_array: bool = False) -> str: ...

    def map_default_value(self, value: str) -> str: ...

    def normalize_full_text(self, query: str) -> str: ...

    def full_text_query(
        self, field: str, query: str, *, bound: bool = False, config: str | None = None
    ) -> str: ...

    def json_contains_query(self, field: str, value: str, *, bound: bool = False) -> str: ...

    def json_is_empty_query(self, field: str) -> str: ...

    def skip_duplicates_clause(self, columns: Sequence[str]) -> str: ...

    def upsert_clause(self, conflict_columns: Sequence[str], update_columns: Sequence[str]) -> str: ...

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str: ...


# Helpers -------------------------------------------------------------------


def normalize_ts_query(query: str) -> str:
    """
    Turn free text into an AND-of-prefix-terms tsquery: ``"go lang"`` becomes
    ``"go:* & lang:*"``. Blank input yields ``""``.
    """
    words = query.split()
    if not words:
        return ""
    return " & ".join(f"{word}:*" for word in words)


def has_limit(value: int | None) -> bool:
    return value is not None and value > 0


def format_dotted(dialect: Dialect, column: str) -> str:
    if column == "*":
        return column
    return ".".join(
        part if part == "*" else dialect.quote_identifier(part) for part in column.split(".")
    )


def format_qualified_table(dialect: Dialect, table_name: str) -> str:
    if "." in table_name:
        schema, table = table_name.split(".", 1)
        return f"{dialect.quote_identifier(schema)}.{dialect.quote_identifier(table)}"
    return dialect.quote_identifier(table_name)


def render_default_column(dialect: Dialect, column: str, column_type: str, *, nullable: bool) -> str:
    null_clause = "" if nullable else " NOT NULL"
    return f"{dialect.quote_identifier(column)} {column_type}{null_clause}"


def is_sql_type(type_name: str) -> bool:
    """
    Logical type names are lowercase words; anything uppercase or
    parameterised is treated as a raw SQL type.
    """
    return type_name.isupper() or "(" in type_name
