"""
Row-to-record mapping with a per-type schema cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ..utils import get_logger
from ..utils.locks import ReadWriteLock
from .records import FieldSpec, RecordSchema, build_schema

MAX_SCAN_ROWS = 100_000


class ScanError(RuntimeError):
    """Raised when a result row does not line up with the scanned columns."""


class ResultTooLargeError(RuntimeError):
    """Raised when a result set grows past the configured row ceiling."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Query returned more than {limit} rows; narrow the filter or paginate.")


@dataclass(frozen=True)
class ScanPlan:
    """
    Target slot per result column; ``None`` slots discard the column value.
    """

    schema: RecordSchema
    columns: tuple[str, ...]
    slots: tuple[FieldSpec | None, ...]

    @property
    def discarded(self) -> list[str]:
        return [column for column, slot in zip(self.columns, self.slots) if slot is None]

    def build(self, row: Sequence[Any] | Mapping[str, Any]) -> Any:
        values = _row_values(row, self.columns)
        if len(values) != len(self.slots):
            raise ScanError(
                f"Row has {len(values)} values but {len(self.slots)} columns were selected."
            )
        assigned: dict[str, Any] = {}
        for slot, value in zip(self.slots, values):
            if slot is not None:
                assigned[slot.name] = value

        kwargs: dict[str, Any] = {}
        late: dict[str, Any] = {}
        for spec in self.schema.fields:
            value = assigned[spec.name] if spec.name in assigned else spec.default()
            if spec.init:
                kwargs[spec.name] = value
            elif spec.name in assigned:
                late[spec.name] = value
        try:
            record = self.schema.record_type(**kwargs)
        except TypeError as exc:
            raise ScanError(
                f"Cannot construct {self.schema.record_type.__name__} from row: {exc}"
            ) from exc
        for name, value in late.items():
            object.__setattr__(record, name, value)
        return record


class ColumnMapper:
    """
    Resolves result columns onto record fields.

    Schemas are computed once per record type and cached; lookups take the
    read side of the lock so concurrent scans do not serialize.
    """

    def __init__(self) -> None:
        self._schemas: dict[type, RecordSchema] = {}
        self._lock = ReadWriteLock()
        self.logger = get_logger("core.mapper")

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._schemas)

    def schema_for(self, record_type: type) -> RecordSchema:
        with self._lock.read():
            schema = self._schemas.get(record_type)
        if schema is not None:
            return schema
        schema = build_schema(record_type)
        with self._lock.write():
            return self._schemas.setdefault(record_type, schema)

    def clear(self) -> None:
        with self._lock.write():
            self._schemas.clear()

    def plan(self, record_type: type, columns: Sequence[str]) -> ScanPlan:
        schema = self.schema_for(record_type)
        slots = tuple(schema.resolve(column) for column in columns)
        plan = ScanPlan(schema=schema, columns=tuple(columns), slots=slots)
        if any(slot is None for slot in slots):
            self.logger.debug(
                "Discarding columns %s not declared on %s",
                plan.discarded,
                record_type.__name__,
            )
        return plan

    # ------------------------------------------------------------------ #
    # Scanning
    # ------------------------------------------------------------------ #
    def scan_row(
        self,
        row: Sequence[Any] | Mapping[str, Any],
        columns: Sequence[str],
        record_type: type | None = None,
    ) -> Any:
        if record_type is None:
            return _as_dict(row, columns)
        return self.plan(record_type, columns).build(row)

    def scan_rows(
        self,
        rows: Iterable[Sequence[Any] | Mapping[str, Any]],
        columns: Sequence[str],
        record_type: type | None = None,
        *,
        max_rows: int = MAX_SCAN_ROWS,
    ) -> list[Any]:
        """
        Scan every row; fails with ResultTooLargeError as soon as a row
        arrives after ``max_rows`` rows have been collected.
        """
        plan = self.plan(record_type, columns) if record_type is not None else None
        results: list[Any] = []
        for row in rows:
            if len(results) >= max_rows:
                raise ResultTooLargeError(max_rows)
            if plan is None:
                results.append(_as_dict(row, columns))
            else:
                results.append(plan.build(row))
        return results


# Helpers -------------------------------------------------------------------


def _row_values(row: Sequence[Any] | Mapping[str, Any], columns: Sequence[str]) -> tuple[Any, ...]:
    if isinstance(row, Mapping):
        try:
            return tuple(row[column] for column in columns)
        except KeyError as exc:
            raise ScanError(f"Row is missing column {exc.args[0]!r}") from exc
    return tuple(row)


def _as_dict(row: Sequence[Any] | Mapping[str, Any], columns: Sequence[str]) -> dict[str, Any]:
    values = _row_values(row, columns)
    if len(values) != len(columns):
        raise ScanError(f"Row has {len(values)} values but {len(columns)} columns were selected.")
    return dict(zip(columns, values))
