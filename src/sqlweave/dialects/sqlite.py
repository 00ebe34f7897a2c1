"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final, Sequence

from .base import (
    DialectCapabilities,
    format_dotted,
    has_limit,
    is_sql_type,
    render_default_column,
)

_TYPE_MAP: Final[dict[str, str]] = {
    "string": "TEXT",
    "int": "INTEGER",
    "integer": "INTEGER",
    "bigint": "INTEGER",
    "boolean": "INTEGER",
    "bool": "INTEGER",
    "datetime": "TEXT",
    "float": "REAL",
    "decimal": "NUMERIC",
    "json": "TEXT",
    "bytes": "BLOB",
    "uuid": "TEXT",
}


class SQLiteDialect:
    """
    SQLite dialect using qmark param style and JSON1 functions.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "qmark"
    auto_increment_keyword: Final[str] = "AUTOINCREMENT"
    now_function: Final[str] = "(datetime('now'))"
    driver_name: Final[str] = "sqlite3"
    capabilities: DialectCapabilities = DialectCapabilities(
        supports_returning=False,
        supports_json=True,
        supports_full_text=False,
        supports_ilike=False,
        supports_savepoints=True,
        supports_schema_namespaces=False,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def quote_string_literal(self, value: str) -> str:
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def format_column(self, column: str) -> str:
        return format_dotted(self, column)

    def placeholder(self, index: int) -> str:
        return "?"

    def limit_offset(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if has_limit(limit):
            parts.append(f"LIMIT {limit}")
        if has_limit(offset):
            if not has_limit(limit):
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def map_type(self, type_name: str, *, is_array: bool = False) -> str:
        if is_array:
            return "TEXT"
        if is_sql_type(type_name):
            return type_name
        return _TYPE_MAP.get(type_name.lower(), "TEXT")

    def map_default_value(self, value: str) -> str:
        lowered = value.lower().removesuffix("()")
        if lowered == "autoincrement":
            return ""
        if lowered == "now":
            return self.now_function
        if lowered in ("uuid", "cuid"):
            return "(lower(hex(randomblob(16))))"
        return value

    def normalize_full_text(self, query: str) -> str:
        return query.strip()

    def full_text_query(
        self, field: str, query: str, *, bound: bool = False, config: str | None = None
    ) -> str:
        # No native full-text engine: substring match.
        column = self.format_column(field)
        if bound:
            return f"{column} LIKE '%' || {query} || '%'"
        return f"{column} LIKE {self.quote_string_literal(f'%{query}%')}"

    def json_contains_query(self, field: str, value: str, *, bound: bool = False) -> str:
        operand = value if bound else self.quote_string_literal(value)
        column = self.format_column(field)
        return (
            f"NOT EXISTS (SELECT 1 FROM json_each({operand}) AS needle "
            f"WHERE needle.value NOT IN (SELECT value FROM json_each({column})))"
        )

    def json_is_empty_query(self, field: str) -> str:
        column = self.format_column(field)
        return f"(json_array_length({column}) = 0 OR {column} IS NULL)"

    def skip_duplicates_clause(self, columns: Sequence[str]) -> str:
        return "ON CONFLICT DO NOTHING"

    def upsert_clause(self, conflict_columns: Sequence[str], update_columns: Sequence[str]) -> str:
        target = ", ".join(self.quote_identifier(column) for column in conflict_columns)
        if not update_columns:
            return f"ON CONFLICT ({target}) DO NOTHING"
        assignments = ", ".join(
            f"{self.quote_identifier(column)} = excluded.{self.quote_identifier(column)}"
            for column in update_columns
        )
        return f"ON CONFLICT ({target}) DO UPDATE SET {assignments}"

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str:
        return render_default_column(self, column, column_type, nullable=nullable)
