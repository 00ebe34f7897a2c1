"""
Schema builder converting record types into DDL statements.
"""

from __future__ import annotations

import datetime
import decimal
import typing
import uuid
from typing import Any, List, Mapping

from ..core.records import RecordSchema, build_schema
from ..dialects.base import Dialect
from ..utils import get_logger

_LOGICAL_TYPES: List[tuple[type, str]] = [
    (bool, "boolean"),
    (int, "int"),
    (float, "float"),
    (decimal.Decimal, "decimal"),
    (datetime.datetime, "datetime"),
    (bytes, "bytes"),
    (uuid.UUID, "uuid"),
    (dict, "json"),
    (list, "json"),
    (str, "string"),
]

_NONE_TYPE = type(None)


class SchemaBuilder:
    """
    Produces dialect-specific SQL for creating tables from record dataclasses.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.logger = get_logger("schema.builder")

    def create_table_sql(
        self,
        record_type: type,
        table: str,
        *,
        primary_key: str | None = "id",
        types: Mapping[str, str] | None = None,
        defaults: Mapping[str, str] | None = None,
    ) -> str:
        """
        ``types`` and ``defaults`` are keyed by column name and hold logical
        names (``"string"``, ``"now"``, ``"uuid"``) or raw SQL.
        """
        schema = build_schema(record_type)
        columns_sql = self._render_columns(schema, primary_key, types or {}, defaults or {})
        table_name = self.dialect.format_table(table)
        return f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(columns_sql)})"

    def full_text_index_sql(self, table: str, column_name: str) -> str:
        if not self.dialect.capabilities.supports_full_text:
            raise ValueError(f"{self.dialect.name} has no native full-text index.")
        index = self.dialect.quote_identifier(f"idx_{table.replace('.', '_')}_{column_name}_fts")
        table_sql = self.dialect.format_table(table)
        column_sql = self.dialect.quote_identifier(column_name)
        if self.dialect.name == "mysql":
            return f"CREATE FULLTEXT INDEX {index} ON {table_sql} ({column_sql})"
        config = getattr(self.dialect, "default_text_search_config", "english")
        return (
            f"CREATE INDEX IF NOT EXISTS {index} ON {table_sql} "
            f"USING GIN (to_tsvector('{config}', {column_sql}))"
        )

    def drop_table_sql(self, table: str) -> str:
        table_name = self.dialect.format_table(table)
        self.logger.warning(
            "DROP TABLE generated for %s; confirm the destructive change before applying.",
            table_name,
        )
        return f"DROP TABLE IF EXISTS {table_name}"

    def _render_columns(
        self,
        schema: RecordSchema,
        primary_key: str | None,
        types: Mapping[str, str],
        defaults: Mapping[str, str],
    ) -> List[str]:
        hints = _type_hints(schema.record_type)
        pieces: List[str] = []
        for spec in schema:
            hint = hints.get(spec.name, Any)
            logical, nullable, is_array = _logical_type(hint)
            is_pk = spec.column == primary_key
            column_type = self.dialect.map_type(types.get(spec.column, logical), is_array=is_array)
            extras: List[str] = []
            default = defaults.get(spec.column)
            if is_pk:
                nullable = False
                auto = logical == "int" and spec.column not in types and default in (None, "autoincrement")
                if auto and self.dialect.name == "postgresql":
                    column_type = self.dialect.auto_increment_keyword
                    extras.append("PRIMARY KEY")
                elif auto:
                    extras.extend(["PRIMARY KEY", self.dialect.auto_increment_keyword])
                else:
                    extras.append("PRIMARY KEY")
            elif spec.required:
                nullable = False
            if default is not None:
                default_sql = self.dialect.map_default_value(default)
                if default_sql:
                    extras.append(f"DEFAULT {default_sql}")
            column_def = self.dialect.render_column_definition(spec.column, column_type, nullable=nullable)
            if extras:
                column_def = f"{column_def} {' '.join(extras)}"
            pieces.append(column_def)
        return pieces


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        return {}


def _logical_type(hint: Any) -> tuple[str, bool, bool]:
    """
    ``(logical type, nullable, is_array)`` for a field annotation.
    """
    nullable = False
    args = typing.get_args(hint)
    if args and _NONE_TYPE in args:
        nullable = True
        remaining = [arg for arg in args if arg is not _NONE_TYPE]
        hint = remaining[0] if len(remaining) == 1 else Any
    origin = typing.get_origin(hint)
    if origin in (list, tuple, set):
        inner = typing.get_args(hint)
        if inner and inner[0] in (str, int, float, bool):
            return _logical_type(inner[0])[0], nullable, True
        return "json", nullable, False
    if origin is dict:
        return "json", nullable, False
    for python_type, logical in _LOGICAL_TYPES:
        if isinstance(hint, type) and issubclass(hint, python_type):
            return logical, nullable, False
    return "string", nullable, False
