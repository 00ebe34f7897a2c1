"""
Fluent query builder bound to an executable connection or transaction.
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Sequence, Tuple

from ..adapters.base import ExecResult
from ..config import QueryConfig
from ..core.mapper import ColumnMapper
from ..core.records import ConfigurationError, is_zero, primary_key_field, record_payload
from ..dialects import get_dialect
from ..security.redaction import redact_params
from ..utils.logging import time_call
from ..utils.timeouts import deadline
from ..validation.errors import ValidationError
from ..validation.pipeline import validate_record
from .compiler import (
    AND,
    ASC,
    JOIN_TYPES,
    OR,
    FieldCondition,
    GroupCondition,
    Join,
    OrderBy,
    QueryState,
    RawCondition,
    SQLCompiler,
    conditions_from_where,
    pk_condition,
    render_delete,
    render_insert,
    render_update,
)
from .filters import Where, search, search_with_config

if TYPE_CHECKING:
    from ..adapters.base import Executor
    from .batch import BatchResult

# Builders created without an explicit config share one schema cache.
_SHARED_MAPPER = ColumnMapper()


class RecordNotFoundError(LookupError):
    code = "P2025"


def config_for(executor: "Executor", config: QueryConfig | None = None) -> QueryConfig:
    """
    ``config`` with its dialect filled from the executor, or a default config
    using the executor's dialect. A config whose dialect disagrees with the
    executor's raises :class:`ConfigurationError`.
    """
    dialect = getattr(executor, "dialect", None)
    if config is None:
        return QueryConfig(dialect=dialect or get_dialect(None), mapper=_SHARED_MAPPER)
    if config.dialect is None:
        return replace(config, dialect=dialect or get_dialect(None))
    if dialect is not None and config.dialect.name != dialect.name:
        raise ConfigurationError(
            f"Config dialect '{config.dialect.name}' does not match the executor's '{dialect.name}'."
        )
    return config


def _scan_columns(projection: Sequence[str], described: Sequence[str]) -> List[str]:
    # Wildcards are only resolvable from the cursor description.
    if not projection or any(column == "*" or column.endswith(".*") for column in projection):
        return list(described)
    return list(projection)


class BuilderBase:
    """
    Shared plumbing for builders: execution under deadlines and timing, row
    scanning, and the single-record write flows keyed by primary key.
    """

    def __init__(
        self,
        executor: "Executor",
        table: str,
        columns: Sequence[str] = (),
        *,
        primary_key: str | None = None,
        record_type: type | None = None,
        config: QueryConfig | None = None,
    ) -> None:
        if not table:
            raise ValidationError.single("table", "A table name is required.")
        self.executor = executor
        self.config = config_for(executor, config)
        self.dialect = self.config.dialect
        self.logger = self.config.logger
        self.table = table
        self.primary_key = primary_key
        self.record_type = record_type
        if not columns and record_type is not None:
            columns = self.config.mapper.schema_for(record_type).columns()
        self.columns: Tuple[str, ...] = tuple(columns)

    # Execution ---------------------------------------------------------
    def _timer(self, name: str, sql: str, args: Sequence[Any]):
        return time_call(
            f"{name} {self.table}",
            self.logger,
            sql=sql,
            params=redact_params(args),
            threshold_ms=self.config.slow_query_ms,
        )

    def _exec(self, name: str, sql: str, args: Sequence[Any]) -> ExecResult:
        with deadline(self.config.timeouts.query):
            with self._timer(name, sql, args):
                return self.executor.exec(sql, args)

    def _fetch_all(
        self, name: str, sql: str, args: Sequence[Any], columns: Sequence[str], record_type: type | None
    ) -> List[Any]:
        with deadline(self.config.timeouts.query):
            with self._timer(name, sql, args):
                with self.executor.query(sql, args) as rows:
                    return self.config.mapper.scan_rows(
                        rows,
                        _scan_columns(columns, rows.columns),
                        record_type,
                        max_rows=self.config.max_scan_rows,
                    )

    def _fetch_one(
        self, name: str, sql: str, args: Sequence[Any], columns: Sequence[str], record_type: type | None
    ) -> Any:
        with deadline(self.config.timeouts.query):
            with self._timer(name, sql, args):
                with self.executor.query(sql, args) as rows:
                    row = rows.fetchone()
                    if row is None:
                        return None
                    return self.config.mapper.scan_row(row, _scan_columns(columns, rows.columns), record_type)

    def _scalar(self, name: str, sql: str, args: Sequence[Any]) -> Any:
        with deadline(self.config.timeouts.query):
            with self._timer(name, sql, args):
                row = self.executor.query_row(sql, args)
        return None if row is None else row[0]

    # Single-record writes ----------------------------------------------
    def _require_primary_key(self, operation: str) -> str:
        if not self.primary_key:
            raise ConfigurationError(
                f"{operation} on '{self.table}' requires a primary key column to be configured."
            )
        return self.primary_key

    def _result_type(self, record: Any) -> type | None:
        if self.record_type is not None:
            return self.record_type
        if dataclasses.is_dataclass(record) and not isinstance(record, type):
            return type(record)
        return None

    def _result_columns(self, record_type: type | None) -> Tuple[str, ...]:
        if self.columns:
            return self.columns
        if record_type is not None:
            return tuple(self.config.mapper.schema_for(record_type).columns())
        return ()

    def _insert_payload(self, record: Any) -> Tuple[List[str], List[Any], Any]:
        """
        Columns, values and primary key value for inserting ``record``.

        Dataclass records are validated first; zero-valued fields are left
        out, except a textual primary key which receives a fresh UUID.
        """
        if isinstance(record, Mapping):
            data = dict(record)
            pk_value = data.get(self.primary_key) if self.primary_key else None
            if self.primary_key in data and is_zero(pk_value):
                del data[self.primary_key]
                pk_value = None
            return list(data), list(data.values()), pk_value

        schema = self.config.mapper.schema_for(type(record))
        validate_record(record, schema)
        columns: List[str] = []
        values: List[Any] = []
        pk_value = None
        pk_spec = primary_key_field(schema, self.primary_key)
        if pk_spec is not None:
            pk_value = getattr(record, pk_spec.name)
            if is_zero(pk_value) and pk_spec.textual:
                pk_value = str(uuid.uuid4())
            if is_zero(pk_value):
                pk_value = None
            else:
                columns.append(pk_spec.column)
                values.append(pk_value)
        pk_column = pk_spec.column if pk_spec is not None else self.primary_key
        for spec, value in record_payload(schema, record, primary_key=pk_column):
            columns.append(spec.column)
            values.append(value)
        return columns, values, pk_value

    def _update_payload(self, record: Any) -> List[Tuple[str, Any]]:
        if isinstance(record, Mapping):
            return [(key, value) for key, value in record.items() if key != self.primary_key]
        schema = self.config.mapper.schema_for(type(record))
        validate_record(record, schema)
        pk_spec = primary_key_field(schema, self.primary_key)
        pk_column = pk_spec.column if pk_spec is not None else self.primary_key
        return [(spec.column, value) for spec, value in record_payload(schema, record, primary_key=pk_column)]

    def _record_key(self, record: Any) -> Any:
        primary_key = self._require_primary_key("update")
        if isinstance(record, Mapping):
            return record.get(primary_key)
        pk_spec = primary_key_field(self.config.mapper.schema_for(type(record)), primary_key)
        if pk_spec is None:
            raise ConfigurationError(
                f"{type(record).__name__} declares no field for primary key '{primary_key}'."
            )
        value = getattr(record, pk_spec.name)
        return None if is_zero(value) else value

    def _find_by_key(self, key: Any, record_type: type | None) -> Any:
        primary_key = self._require_primary_key("find")
        state = QueryState(
            self.table, self._result_columns(record_type), conditions=[pk_condition(primary_key, key)]
        )
        sql, args = SQLCompiler(state, self.dialect).select(single=True)
        return self._fetch_one("find", sql, args, state.projection(), record_type)

    def _read_back(self, operation: str, key: Any, record_type: type | None) -> Any:
        if not self.primary_key or key is None:
            self.logger.debug(
                "%s on %s: no primary key value to read the row back with", operation, self.table
            )
            return None
        return self._find_by_key(key, record_type)

    def _insert_one(
        self,
        operation: str,
        record: Any,
        payload: Tuple[List[str], List[Any], Any],
        *,
        suffix: str = "",
    ) -> Any:
        columns, values, pk_value = payload
        record_type = self._result_type(record)
        returning = self._result_columns(record_type)
        if self.dialect.capabilities.supports_returning and returning:
            sql, args = render_insert(
                self.dialect, self.table, columns, [values], suffix=suffix, returning=returning
            )
            created = self._fetch_one(operation, sql, args, returning, record_type)
            if created is not None:
                return created
            # ON CONFLICT DO NOTHING returns no row; read the existing one.
            return self._read_back(operation, pk_value, record_type)
        sql, args = render_insert(self.dialect, self.table, columns, [values], suffix=suffix)
        result = self._exec(operation, sql, args)
        key = pk_value if pk_value is not None else result.last_insert_id
        return self._read_back(operation, key, record_type)

    def _create(self, record: Any) -> Any:
        return self._insert_one("create", record, self._insert_payload(record))

    def _upsert(self, record: Any) -> Any:
        primary_key = self._require_primary_key("upsert")
        payload = self._insert_payload(record)
        columns = payload[0]
        update_columns = [column for column in columns if column != primary_key]
        suffix = self.dialect.upsert_clause([primary_key], update_columns)
        return self._insert_one("upsert", record, payload, suffix=suffix)

    def _update_by_key(self, key: Any, record: Any) -> Any:
        primary_key = self._require_primary_key("update")
        if key is None:
            raise ValidationError.single(primary_key, "A primary key value is required.")
        assignments = self._update_payload(record)
        if not assignments:
            raise ValidationError.single("data", "No fields to update.")
        record_type = self._result_type(record)
        returning = self._result_columns(record_type)
        conditions = [pk_condition(primary_key, key)]
        if self.dialect.capabilities.supports_returning and returning:
            sql, args = render_update(self.dialect, self.table, assignments, conditions, returning=returning)
            updated = self._fetch_one("update", sql, args, returning, record_type)
        else:
            sql, args = render_update(self.dialect, self.table, assignments, conditions)
            self._exec("update", sql, args)
            updated = self._find_by_key(key, record_type)
        if updated is None:
            raise RecordNotFoundError(f"No row in '{self.table}' with {primary_key} = {key!r}.")
        return updated

    def _delete_by_key(self, key: Any) -> int:
        primary_key = self._require_primary_key("delete")
        if key is None:
            raise ValidationError.single(primary_key, "A primary key value is required.")
        sql, args = render_delete(self.dialect, self.table, [pk_condition(primary_key, key)])
        return self._exec("delete", sql, args).rows_affected

    def _batch(self):
        from .batch import BatchExecutor

        return BatchExecutor(
            self.executor, self.table, primary_key=self.primary_key, config=self.config
        )


class Query(BuilderBase):
    """
    Chainable builder. Clause methods mutate this instance and return it;
    one instance serves one logical query at a time (see ``reset``).

    >>> users = Query(adapter, "users", primary_key="id", record_type=User)
    >>> users.where({"age": gte(18)}).order("name").take(10).find()
    """

    def __init__(
        self,
        executor: "Executor",
        table: str,
        columns: Sequence[str] = (),
        *,
        primary_key: str | None = None,
        record_type: type | None = None,
        config: QueryConfig | None = None,
    ) -> None:
        super().__init__(
            executor, table, columns, primary_key=primary_key, record_type=record_type, config=config
        )
        self.state = QueryState(self.table, self.columns)

    # Public API --------------------------------------------------------
    def where(self, condition: Any, *args: Any) -> "Query":
        """
        ``where("age > ?", 18)``, ``where({"age": gt(18)})`` or a prepared
        condition. Joined to the previous condition with AND.
        """
        return self._add_condition(self.state.conditions, condition, args, AND, False)

    def or_(self, condition: Any, *args: Any) -> "Query":
        return self._add_condition(self.state.conditions, condition, args, OR, False)

    def not_(self, condition: Any, *args: Any) -> "Query":
        return self._add_condition(self.state.conditions, condition, args, AND, True)

    def having(self, condition: Any, *args: Any) -> "Query":
        return self._add_condition(self.state.having, condition, args, AND, False)

    def search(self, field_name: str, query: str, config: str | None = None) -> "Query":
        operator = search(query) if config is None else search_with_config(query, config)
        return self.where(FieldCondition(field_name, operator))

    def select(self, *fields: str) -> "Query":
        for name in fields:
            self._append(self.state.select, name, self.config.limits.max_select_fields, "select field")
        return self

    def order(self, *specs: str | OrderBy) -> "Query":
        for spec in specs:
            order = spec if isinstance(spec, OrderBy) else OrderBy.parse(spec)
            self._append(self.state.order_by, order, self.config.limits.max_order_fields, "order field")
        return self

    def order_by(self, field_name: str, direction: str = ASC) -> "Query":
        return self.order(OrderBy(field_name, direction))

    def take(self, count: int) -> "Query":
        if count < 0:
            raise ValidationError.single("take", "take must not be negative.")
        self.state.take = count
        return self

    def skip(self, count: int) -> "Query":
        if count < 0:
            raise ValidationError.single("skip", "skip must not be negative.")
        self.state.skip = count
        return self

    def group(self, *fields: str) -> "Query":
        for name in fields:
            self._append(self.state.group_by, name, self.config.limits.max_group_fields, "group field")
        return self

    def join(self, kind: str, table: str, on: str, *args: Any) -> "Query":
        """
        ``join("LEFT", "orders o", "o.user_id = users.id AND o.total > ?", 100)``.
        The ON fragment is used as written, with ``?`` markers bound in order.
        """
        kind = kind.strip().upper()
        if kind not in JOIN_TYPES:
            raise ValidationError.single("join", f"Unsupported join type {kind!r}.")
        self._append(self.state.joins, Join(kind, table, on, tuple(args)), self.config.limits.max_joins, "join")
        return self

    def inner_join(self, table: str, on: str, *args: Any) -> "Query":
        return self.join("INNER", table, on, *args)

    def left_join(self, table: str, on: str, *args: Any) -> "Query":
        return self.join("LEFT", table, on, *args)

    def right_join(self, table: str, on: str, *args: Any) -> "Query":
        return self.join("RIGHT", table, on, *args)

    def reset(self) -> "Query":
        self.state.reset()
        return self

    def to_sql(self, *, single: bool = False) -> tuple[str, list[Any]]:
        return self._compiler().select(single=single)

    def count_sql(self) -> tuple[str, list[Any]]:
        return self._compiler().count()

    # Reads -------------------------------------------------------------
    def find(self) -> List[Any]:
        sql, args = self.to_sql()
        return self._fetch_all("find", sql, args, self.state.projection(), self.record_type)

    def first(self) -> Any:
        sql, args = self.to_sql(single=True)
        return self._fetch_one("first", sql, args, self.state.projection(), self.record_type)

    def count(self) -> int:
        sql, args = self.count_sql()
        return int(self._scalar("count", sql, args) or 0)

    def aggregate(self, function: str, field_name: str | None = None) -> Any:
        """
        Scalar result, or one dict per group when ``group`` was used.
        """
        sql, args = self._compiler().aggregate(function, field_name)
        if not self.state.group_by:
            return self._scalar(function.lower(), sql, args)
        columns = list(self.state.group_by) + [function.lower()]
        return self._fetch_all(function.lower(), sql, args, columns, None)

    def sum(self, field_name: str) -> Any:
        return self.aggregate("SUM", field_name)

    def avg(self, field_name: str) -> Any:
        return self.aggregate("AVG", field_name)

    def min(self, field_name: str) -> Any:
        return self.aggregate("MIN", field_name)

    def max(self, field_name: str) -> Any:
        return self.aggregate("MAX", field_name)

    # Writes ------------------------------------------------------------
    def create(self, record: Any) -> Any:
        return self._create(record)

    def save(self, record: Any) -> Any:
        """Insert ``record`` or update the row sharing its primary key."""
        return self._upsert(record)

    def update(self, column_name: str, value: Any) -> int:
        return self.updates({column_name: value})

    def updates(self, data: Mapping[str, Any]) -> int:
        """
        Mass update of every row matching the current conditions.
        """
        self._require_conditions("update")
        sql, args = render_update(self.dialect, self.table, list(data.items()), self.state.conditions)
        return self._exec("update", sql, args).rows_affected

    def delete(self) -> int:
        self._require_conditions("delete")
        sql, args = render_delete(self.dialect, self.table, self.state.conditions)
        return self._exec("delete", sql, args).rows_affected

    def update_record(self, record: Any) -> Any:
        return self._update_by_key(self._record_key(record), record)

    def delete_by_id(self, key: Any) -> int:
        return self._delete_by_key(key)

    def create_many(self, records: Sequence[Any], *, skip_duplicates: bool = False) -> "BatchResult":
        return self._batch().create_many(records, skip_duplicates=skip_duplicates)

    def update_many(self, where: Where, data: Mapping[str, Any]) -> "BatchResult":
        return self._batch().update_many(where, data)

    # Internal helpers --------------------------------------------------
    def _compiler(self) -> SQLCompiler:
        return SQLCompiler(self.state, self.dialect)

    def _require_conditions(self, operation: str) -> None:
        if not self.state.conditions:
            raise ValidationError.single(
                "where", f"Refusing to {operation} every row of '{self.table}' without conditions."
            )

    def _add_condition(
        self, target: list, condition: Any, args: Tuple[Any, ...], connector: str, negated: bool
    ) -> "Query":
        built = _build_condition(condition, args, connector, negated)
        if built is not None:
            self._append(target, built, self.config.limits.max_conditions, "condition")
        return self

    def _append(self, target: list, item: Any, limit: int, label: str) -> bool:
        if len(target) >= limit:
            self.logger.warning(
                "Dropping %s on %s: limit of %s reached", label, self.table, limit
            )
            return False
        target.append(item)
        return True


def _build_condition(condition: Any, args: Iterable[Any], connector: str, negated: bool):
    args = tuple(args)
    if isinstance(condition, str):
        return RawCondition(condition, args, connector=connector, negated=negated)
    if args:
        raise ValidationError.single("where", "Arguments are only accepted with a raw SQL fragment.")
    if isinstance(condition, Mapping):
        return conditions_from_where(condition, connector=connector, negated=negated)
    if isinstance(condition, (RawCondition, FieldCondition, GroupCondition)):
        return replace(condition, connector=connector, negated=condition.negated or negated)
    raise ValidationError.single("where", f"Unsupported condition {condition!r}.")
