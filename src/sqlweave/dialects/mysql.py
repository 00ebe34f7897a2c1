"""
MySQL dialect implementation.
"""

from __future__ import annotations

from typing import Final, Sequence

from .base import (
    DialectCapabilities,
    format_dotted,
    format_qualified_table,
    has_limit,
    is_sql_type,
    render_default_column,
)

_TYPE_MAP: Final[dict[str, str]] = {
    "string": "VARCHAR(191)",
    "int": "INT",
    "integer": "INT",
    "bigint": "BIGINT",
    "boolean": "TINYINT(1)",
    "bool": "TINYINT(1)",
    "datetime": "DATETIME",
    "float": "DOUBLE",
    "decimal": "DECIMAL(65, 30)",
    "json": "JSON",
    "bytes": "BLOB",
    "uuid": "CHAR(36)",
}

# PostgreSQL-flavoured SQL types rewritten to their closest MySQL type.
_SQL_TYPE_MAP: Final[dict[str, str]] = {
    "BYTEA": "BLOB",
    "JSONB": "JSON",
    "TIMESTAMPTZ": "TIMESTAMP",
    "TIMESTAMP WITH TIME ZONE": "TIMESTAMP",
    "DOUBLE PRECISION": "DOUBLE",
    "BOOL": "TINYINT(1)",
    "BOOLEAN": "TINYINT(1)",
    "SERIAL": "INT AUTO_INCREMENT",
    "BIGSERIAL": "BIGINT AUTO_INCREMENT",
    "UUID": "CHAR(36)",
    "INET": "VARCHAR(255)",
    "CIDR": "VARCHAR(255)",
    "MONEY": "VARCHAR(255)",
    "BIT": "VARCHAR(255)",
    "VARBIT": "VARCHAR(255)",
}

# Largest unsigned BIGINT; MySQL has no OFFSET without LIMIT.
_MAX_LIMIT: Final[str] = "18446744073709551615"


class MySQLDialect:
    """
    MySQL dialect using ``?`` markers and backtick identifiers.
    """

    name: Final[str] = "mysql"
    param_style: Final[str] = "qmark"
    auto_increment_keyword: Final[str] = "AUTO_INCREMENT"
    now_function: Final[str] = "CURRENT_TIMESTAMP"
    driver_name: Final[str] = "pymysql"
    capabilities: DialectCapabilities = DialectCapabilities(
        supports_returning=False,
        supports_json=True,
        supports_full_text=True,
        supports_ilike=False,
        supports_savepoints=True,
        supports_schema_namespaces=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace("`", "``")
        return f"`{escaped}`"

    def quote_string_literal(self, value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace("'", "''")
        return f"'{escaped}'"

    def format_table(self, table_name: str) -> str:
        return format_qualified_table(self, table_name)

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
                parts.append(f"LIMIT {_MAX_LIMIT}")
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def map_type(self, type_name: str, *, is_array: bool = False) -> str:
        if is_array:
            return "JSON"
        if is_sql_type(type_name):
            return _SQL_TYPE_MAP.get(type_name.upper(), type_name)
        return _TYPE_MAP.get(type_name.lower(), "VARCHAR(191)")

    def map_default_value(self, value: str) -> str:
        lowered = value.lower().removesuffix("()")
        if lowered == "autoincrement":
            return ""
        if lowered == "now":
            return self.now_function
        if lowered in ("uuid", "cuid"):
            return "(UUID())"
        return value

    def normalize_full_text(self, query: str) -> str:
        # Boolean-mode equivalent of an AND of prefix terms.
        return " ".join(f"+{word}*" for word in query.split())

    def full_text_query(
        self, field: str, query: str, *, bound: bool = False, config: str | None = None
    ) -> str:
        operand = query if bound else self.quote_string_literal(query)
        return f"MATCH({self.format_column(field)}) AGAINST({operand} IN BOOLEAN MODE)"

    def json_contains_query(self, field: str, value: str, *, bound: bool = False) -> str:
        operand = value if bound else self.quote_string_literal(value)
        return f"JSON_CONTAINS({self.format_column(field)}, {operand})"

    def json_is_empty_query(self, field: str) -> str:
        column = self.format_column(field)
        return f"((JSON_TYPE({column}) = 'ARRAY' AND JSON_LENGTH({column}) = 0) OR {column} = '[]')"

    def skip_duplicates_clause(self, columns: Sequence[str]) -> str:
        if not columns:
            return ""
        first = self.quote_identifier(columns[0])
        return f"ON DUPLICATE KEY UPDATE {first} = {first}"

    def upsert_clause(self, conflict_columns: Sequence[str], update_columns: Sequence[str]) -> str:
        # MySQL resolves conflicts against every unique key; the target list is implicit.
        columns = list(update_columns) or list(conflict_columns)
        assignments = ", ".join(
            f"{self.quote_identifier(column)} = VALUES({self.quote_identifier(column)})"
            for column in columns
        )
        return f"ON DUPLICATE KEY UPDATE {assignments}"

    def render_column_definition(self, column: str, column_type: str, *, nullable: bool) -> str:
        return render_default_column(self, column, column_type, nullable=nullable)
