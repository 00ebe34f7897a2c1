"""
Chunked multi-row inserts and condition-guarded bulk updates.
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Mapping, Sequence, Tuple

from ..adapters.base import DriverError
from ..core.records import is_zero, primary_key_field, record_payload
from ..security.redaction import redact_params
from ..utils.logging import time_call
from ..utils.timeouts import deadline
from ..validation.errors import ValidationError
from ..validation.pipeline import validate_record
from .builder import config_for
from .compiler import conditions_from_where, render_delete, render_insert, render_update
from .filters import Where

if TYPE_CHECKING:
    from ..adapters.base import Executor
    from ..config import QueryConfig


@dataclass
class BatchResult:
    affected_count: int = 0


class BatchError(DriverError):
    """
    A bulk statement failed. ``result`` holds the rows affected by the
    chunks that completed; the driver error is the ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        result: BatchResult,
        operation: str | None = None,
        sql: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, sql=sql)
        self.result = result
        if code:
            self.code = code


class BatchExecutor:
    def __init__(
        self,
        executor: "Executor",
        table: str,
        *,
        primary_key: str | None = None,
        config: "QueryConfig | None" = None,
    ) -> None:
        self.executor = executor
        self.table = table
        self.primary_key = primary_key
        self.config = config_for(executor, config)
        self.dialect = self.config.dialect
        self.logger = self.config.logger

    # Public API --------------------------------------------------------
    def create_many(self, records: Sequence[Any], *, skip_duplicates: bool = False) -> BatchResult:
        """
        Insert ``records`` in chunks of ``config.batch_size`` rows, one
        statement per chunk, strictly in order.

        The column set comes from the first record. Every record is
        validated before the first statement is sent.
        """
        records = list(records)
        if not records:
            return BatchResult()
        columns, rows = self._rows(records)
        suffix = self.dialect.skip_duplicates_clause(columns) if skip_duplicates else ""
        size = self.config.batch_size
        chunks = (len(rows) + size - 1) // size
        result = BatchResult()
        with deadline(self.config.timeouts.bulk):
            for index in range(chunks):
                chunk = rows[index * size : (index + 1) * size]
                sql, args = render_insert(self.dialect, self.table, columns, chunk, suffix=suffix)
                affected = self._run(
                    f"create_many chunk {index + 1}/{chunks}", sql, args, result, operation="create_many"
                )
                result.affected_count += affected
        self.logger.debug(
            "Inserted %s rows into %s in %s statements", result.affected_count, self.table, chunks
        )
        return result

    def update_many(self, where: Where, data: Any) -> BatchResult:
        """
        One ``UPDATE ... SET ... WHERE ...`` over every matching row. Empty
        conditions or empty data are rejected before anything is sent.
        """
        if not where:
            raise ValidationError.single(
                "where", f"Refusing to update every row of '{self.table}' without conditions."
            )
        assignments = self._assignments(data)
        if not assignments:
            raise ValidationError.single("data", "No fields to update.")
        condition = conditions_from_where(where)
        sql, args = render_update(self.dialect, self.table, assignments, [condition])
        result = BatchResult()
        with deadline(self.config.timeouts.bulk):
            result.affected_count = self._run("update_many", sql, args, result, operation="update_many")
        return result

    def delete_many(self, where: Where) -> BatchResult:
        if not where:
            raise ValidationError.single(
                "where", f"Refusing to delete every row of '{self.table}' without conditions."
            )
        sql, args = render_delete(self.dialect, self.table, [conditions_from_where(where)])
        result = BatchResult()
        with deadline(self.config.timeouts.bulk):
            result.affected_count = self._run("delete_many", sql, args, result, operation="delete_many")
        return result

    # Internal helpers --------------------------------------------------
    def _run(self, name: str, sql: str, args: Sequence[Any], result: BatchResult, *, operation: str) -> int:
        try:
            with time_call(
                f"{name} {self.table}",
                self.logger,
                sql=sql,
                params=redact_params(args),
                threshold_ms=self.config.slow_query_ms,
            ):
                return self.executor.exec(sql, args).rows_affected
        except DriverError as exc:
            raise BatchError(
                f"{name} on '{self.table}' failed after {result.affected_count} rows: {exc}",
                result=BatchResult(result.affected_count),
                operation=operation,
                sql=sql,
                code=exc.code,
            ) from exc

    def _rows(self, records: List[Any]) -> Tuple[List[str], List[List[Any]]]:
        first = records[0]
        if isinstance(first, Mapping):
            columns = list(first)
            return columns, [[record.get(column) for column in columns] for record in records]

        schema = self.config.mapper.schema_for(type(first))
        for record in records:
            validate_record(record, schema)

        pk_spec = primary_key_field(schema, self.primary_key)
        pk_column = pk_spec.column if pk_spec is not None else self.primary_key
        specs = [spec for spec, _ in record_payload(schema, first, primary_key=pk_column)]
        generate_key = False
        if pk_spec is not None:
            generate_key = pk_spec.textual
            if generate_key or not is_zero(getattr(first, pk_spec.name)):
                specs.insert(0, pk_spec)

        rows: List[List[Any]] = []
        for record in records:
            row = []
            for spec in specs:
                value = getattr(record, spec.name, None)
                if spec is pk_spec and generate_key and is_zero(value):
                    value = str(uuid.uuid4())
                row.append(value)
            rows.append(row)
        return [spec.column for spec in specs], rows

    def _assignments(self, data: Any) -> List[Tuple[str, Any]]:
        if isinstance(data, Mapping):
            return list(data.items())
        if dataclasses.is_dataclass(data) and not isinstance(data, type):
            schema = self.config.mapper.schema_for(type(data))
            payload = record_payload(schema, data, primary_key=self.primary_key)
            return [(spec.column, value) for spec, value in payload]
        raise ValidationError.single("data", f"Unsupported update payload {type(data).__name__}.")
