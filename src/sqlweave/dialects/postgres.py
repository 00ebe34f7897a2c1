"""
PostgreSQL dialect implementation.
"""

from __future__ import annotations

import re
from typing import Final, Sequence

from .base import (
    DialectCapabilities,
    format_dotted,
    format_qualified_table,
    has_limit,
    is_sql_type,
    normalize_ts_query,
    render_default_column,
)

_TYPE_MAP: Final[dict[str, str]] = {
    "string": "TEXT",
    "int": "INTEGER",
    "integer": "INTEGER",
    "bigint": "BIGINT",
    "boolean": "BOOLEAN",
    "bool": "BOOLEAN",
    "datetime": "TIMESTAMP",
    "float": "DOUBLE PRECISION",
    "decimal": "DECIMAL(65, 30)",
    "json": "JSONB",
    "bytes": "BYTEA",
    "uuid": "UUID",
}

_CONFIG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PostgresDialect:
    """
    PostgreSQL dialect using numbered ``$n`` placeholders.
    """

    name: Final[str] = "postgresql"
    param_style: Final[str] = "numeric_dollar"
    auto_increment_keyword: Final[str] = "SERIAL"
    now_function: Final[str] = "NOW()"
    driver_name: Final[str] = "psycopg"
    default_text_search_config: Final[str] = "english"
    capabilities: DialectCapabilities = DialectCapabilities(
        supports_returning=True,
        supports_json=True,
        supports_full_text=True,
        supports_ilike=True,
        supports_savepoints=True,
        supports_schema_namespaces=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def quote_string_literal(self, value: str) -> str:
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    def format_table(self, table_name: str) -> str:
        return format_qualified_table(self, table_name)

    def format_column(self, column: str) -> str:
        return format_dotted(self, column)

    def placeholder(self, index: int) -> str:
        return f"${index}"

    def limit_offset(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if has_limit(limit):
            parts.append(f"LIMIT {limit}")
        if has_limit(offset):
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def map_type(self, type_name: str, *, is_array: bool = False) -> str:
        sql_type = _TYPE_MAP.get(type_name.lower())
        if sql_type is None:
            sql_type = type_name if is_sql_type(type_name) else "TEXT"
        return f"{sql_type}[]" if is_array else sql_type

    def map_default_value(self, value: str) -> str:
        lowered = value.lower().removesuffix("()")
        if lowered == "autoincrement":
            return ""
        if lowered == "now":
            return self.now_function
        if lowered in ("uuid", "cuid"):
            return "gen_random_uuid()"
        return value

    def normalize_full_text(self, query: str) -> str:
        return normalize_ts_query(query)

    def full_text_query(
        self, field: str, query: str, *, bound: bool = False, config: str | None = None
    ) -> str:
        column = self.format_column(field)
        operand = query if bound else self.quote_string_literal(query)
        if config is None:
            return f"{column} @@ to_tsquery({operand})"
        if not _CONFIG_NAME.match(config):
            raise ValueError(f"Invalid text search configuration name: {config!r}")
        return f"to_tsvector('{config}', {column}) @@ to_tsquery('{config}', {operand})"

    def json_contains_query(self, field: str, value: str, *, bound: bool = False) -> str:
        operand = value if bound else self.quote_string_literal(value)
        return f"{self.format_column(field)} @> {operand}::jsonb"

    def json_is_empty_query(self, field: str) -> str:
        column = self.format_column(field)
        return (
            f"((jsonb_typeof({column}) = 'array' AND jsonb_array_length({column}) = 0) "
            f"OR {column} = '[]'::jsonb)"
        )

    def skip_duplicates_clause(self, columns: Sequence[str]) -> str:
        return "ON CONFLICT DO NOTHING"

    def upsert_clause(self, conflict_columns: Sequence[str], update_columns: Sequence[str]) -> str:
        target = ", ".join(self.quote_identifier(column) for column in conflict_columns)
        if not update_columns:
            return f"ON CONFLICT ({target}) DO NOTHING"
        assignments = ", ".join(
            f"{self.quote_identifier(column)} = EXCLUDED.{self.quote_identifier(column)}"
            for column in update_columns
        )
        return f"ON CONFLICT ({target}) DO UPDATE SET {assignments}"

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str:
        return render_default_column(self, column, column_type, nullable=nullable)
