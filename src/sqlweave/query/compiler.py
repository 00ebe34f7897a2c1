"""
SQL compilation: condition trees and builder state rendered into
dialect-specific statements plus their ordered argument lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Sequence, Tuple, Union

from ..dialects.base import Dialect
from ..validation.errors import ValidationError
from .accumulator import SQLAccumulator
from .filters import FilterOperator, compile_filter, equals, normalize_operand

AND = "AND"
OR = "OR"

ASC = "ASC"
DESC = "DESC"

JOIN_TYPES = ("INNER", "LEFT", "RIGHT", "FULL", "CROSS")

AGGREGATES = ("COUNT", "SUM", "AVG", "MIN", "MAX")

_QUOTES = ("'", '"', "`")
_SINGLE_VALUE_SUFFIXES = ("=", "<", ">", "LIKE")


@dataclass(frozen=True)
class RawCondition:
    """
    Hand-written fragment with ``?`` markers (``??`` for a literal ``?``).
    """

    fragment: str
    args: Tuple[Any, ...] = ()
    connector: str = AND
    negated: bool = False


@dataclass(frozen=True)
class FieldCondition:
    field: str
    operator: FilterOperator
    connector: str = AND
    negated: bool = False


@dataclass(frozen=True)
class GroupCondition:
    """
    Conditions ANDed together and parenthesised as one unit.
    """

    children: Tuple["Condition", ...]
    connector: str = AND
    negated: bool = False


Condition = Union[RawCondition, FieldCondition, GroupCondition]


@dataclass(frozen=True)
class Join:
    kind: str
    table: str
    on: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = ASC

    @classmethod
    def parse(cls, spec: str) -> "OrderBy":
        """
        ``"name"``, ``"name desc"`` or ``"-name"``.
        """
        spec = spec.strip()
        if spec.startswith("-"):
            return cls(spec[1:].strip(), DESC)
        parts = spec.rsplit(None, 1)
        if len(parts) == 2 and parts[1].upper() in (ASC, DESC):
            return cls(parts[0], parts[1].upper())
        if len(parts) == 2:
            return cls(parts[0], ASC)
        return cls(spec, ASC)

    @property
    def normalized_direction(self) -> str:
        direction = (self.direction or "").strip().upper()
        return direction if direction in (ASC, DESC) else ASC


@dataclass
class QueryState:
    """
    Clause state owned by one builder. ``reset`` keeps the static
    configuration (table, columns) and clears everything else.
    """

    table: str
    columns: Tuple[str, ...] = ()
    conditions: List[Condition] = field(default_factory=list)
    joins: List[Join] = field(default_factory=list)
    group_by: List[str] = field(default_factory=list)
    having: List[Condition] = field(default_factory=list)
    order_by: List[OrderBy] = field(default_factory=list)
    select: List[str] = field(default_factory=list)
    take: int | None = None
    skip: int | None = None

    def reset(self) -> None:
        self.conditions.clear()
        self.joins.clear()
        self.group_by.clear()
        self.having.clear()
        self.order_by.clear()
        self.select.clear()
        self.take = None
        self.skip = None

    def projection(self) -> List[str]:
        return list(self.select) if self.select else list(self.columns)


def conditions_from_where(
    where: Mapping[str, Any], *, connector: str = AND, negated: bool = False
) -> Condition | None:
    children = tuple(
        FieldCondition(name, normalize_operand(value)) for name, value in where.items()
    )
    if not children:
        return None
    if len(children) == 1:
        return replace(children[0], connector=connector, negated=negated)
    return GroupCondition(children, connector=connector, negated=negated)


# Condition rendering -------------------------------------------------------


def render_raw(fragment: str, args: Sequence[Any], acc: SQLAccumulator) -> tuple[str, SQLAccumulator]:
    """
    Rewrite ``?`` markers into dialect placeholders, in order.

    A list/tuple argument expands to one placeholder per element; the
    expansion is parenthesised unless the marker already sits in ``( )``.
    """
    pieces: List[str] = []
    used = 0
    quote: str | None = None
    idx = 0
    length = len(fragment)
    while idx < length:
        char = fragment[idx]
        if quote is not None:
            pieces.append(char)
            if char == quote:
                quote = None
            idx += 1
            continue
        if char in _QUOTES:
            quote = char
            pieces.append(char)
            idx += 1
            continue
        if char != "?":
            pieces.append(char)
            idx += 1
            continue
        if idx + 1 < length and fragment[idx + 1] == "?":
            pieces.append("?")
            idx += 2
            continue
        if used >= len(args):
            raise ValidationError.single(
                "where", f"Fragment {fragment!r} has more markers than the {len(args)} arguments given."
            )
        value = args[used]
        used += 1
        if isinstance(value, (list, tuple)):
            before = "".join(pieces)
            _guard_sequence(fragment, before, value)
            tokens, acc = acc.bind_many(value)
            joined = ", ".join(tokens)
            enclosed = before.rstrip().endswith("(") and fragment[idx + 1 :].lstrip().startswith(")")
            pieces.append(joined if enclosed else f"({joined})")
        else:
            token, acc = acc.bind(value)
            pieces.append(token)
        idx += 1

    if used != len(args):
        raise ValidationError.single(
            "where", f"Fragment {fragment!r} has {used} markers but {len(args)} arguments were given."
        )
    return "".join(pieces), acc


def render_condition(condition: Condition, acc: SQLAccumulator) -> tuple[str, SQLAccumulator]:
    if isinstance(condition, RawCondition):
        text, acc = render_raw(condition.fragment, condition.args, acc)
    elif isinstance(condition, FieldCondition):
        text, acc = compile_filter(condition.field, condition.operator, acc)
    else:
        parts: List[str] = []
        for child in condition.children:
            part, acc = render_condition(child, acc)
            parts.append(part)
        text = " AND ".join(parts)
        if len(parts) > 1 and not condition.negated:
            text = f"({text})"
    if condition.negated:
        text = f"NOT ({text})"
    return text, acc


def render_conditions(conditions: Sequence[Condition], acc: SQLAccumulator) -> tuple[str, SQLAccumulator]:
    """
    Join conditions in insertion order; each condition's connector decides
    the AND/OR placed before it (the first connector is ignored).
    """
    parts: List[str] = []
    for index, condition in enumerate(conditions):
        text, acc = render_condition(condition, acc)
        if index:
            parts.append(condition.connector)
        parts.append(text)
    return " ".join(parts), acc


def _guard_sequence(fragment: str, before: str, value: Sequence[Any]) -> None:
    if not value:
        raise ValidationError.single("where", f"Empty sequence bound in fragment {fragment!r}.")
    tail = before.rstrip().upper()
    if tail.endswith(_SINGLE_VALUE_SUFFIXES):
        raise ValidationError.single(
            "where",
            f"Sequence bound to a single-value comparison in {fragment!r}; use IN instead.",
        )


# Statement compilation -----------------------------------------------------


class SQLCompiler:
    """
    Compile builder state into SQL statements and parameters.
    """

    def __init__(self, state: QueryState, dialect: Dialect) -> None:
        self.state = state
        self.dialect = dialect

    def start(self) -> SQLAccumulator:
        return SQLAccumulator(self.dialect)

    def select(self, *, single: bool = False) -> Tuple[str, List[Any]]:
        columns = self.state.projection()
        select_list = ", ".join(self.dialect.format_column(c) for c in columns) if columns else "*"
        acc = self.start().add(f"SELECT {select_list}", "FROM", self.dialect.format_table(self.state.table))
        acc = self.joins(acc)
        acc = self.where(acc)
        acc = self.group_having(acc)
        acc = self.ordering(acc)
        if single:
            acc = acc.add("LIMIT 1")
        elif self.state.take or self.state.skip:
            acc = acc.add(self.dialect.limit_offset(self.state.take, self.state.skip))
        return acc.build()

    def count(self) -> Tuple[str, List[Any]]:
        acc = self.start().add("SELECT COUNT(*)", "FROM", self.dialect.format_table(self.state.table))
        acc = self.joins(acc)
        acc = self.where(acc)
        return acc.build()

    def aggregate(self, function: str, field_name: str | None = None) -> Tuple[str, List[Any]]:
        function = function.upper()
        if function not in AGGREGATES:
            raise ValidationError.single("aggregate", f"Unsupported aggregate function {function!r}.")
        if field_name is None or field_name == "*":
            if function != "COUNT":
                raise ValidationError.single("aggregate", f"{function} requires a field.")
            target = "*"
        else:
            target = self.dialect.format_column(field_name)
        expression = f"{function}({target})"
        group_columns = ", ".join(self.dialect.format_column(c) for c in self.state.group_by)
        select_list = f"{group_columns}, {expression}" if group_columns else expression
        acc = self.start().add(f"SELECT {select_list}", "FROM", self.dialect.format_table(self.state.table))
        acc = self.joins(acc)
        acc = self.where(acc)
        acc = self.group_having(acc)
        acc = self.ordering(acc)
        return acc.build()

    # Clause helpers -----------------------------------------------------
    def joins(self, acc: SQLAccumulator) -> SQLAccumulator:
        for join in self.state.joins:
            on_sql, acc = render_raw(join.on, join.args, acc)
            acc = acc.add(f"{join.kind} JOIN", self.dialect.format_table(join.table), "ON", on_sql)
        return acc

    def where(self, acc: SQLAccumulator) -> SQLAccumulator:
        if not self.state.conditions:
            return acc
        where_sql, sub = render_conditions(self.state.conditions, acc.fresh())
        return acc.merge(sub).add("WHERE", where_sql)

    def group_having(self, acc: SQLAccumulator) -> SQLAccumulator:
        if self.state.group_by:
            acc = acc.add(
                "GROUP BY", ", ".join(self.dialect.format_column(c) for c in self.state.group_by)
            )
        if self.state.having:
            having_sql, acc = render_conditions(self.state.having, acc)
            acc = acc.add("HAVING", having_sql)
        return acc

    def ordering(self, acc: SQLAccumulator) -> SQLAccumulator:
        if not self.state.order_by:
            return acc
        order_sql = ", ".join(
            f"{self.dialect.format_column(order.field)} {order.normalized_direction}"
            for order in self.state.order_by
        )
        return acc.add("ORDER BY", order_sql)


# Write statements ----------------------------------------------------------


def render_insert(
    dialect: Dialect,
    table: str,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    *,
    suffix: str = "",
    returning: Sequence[str] = (),
) -> Tuple[str, List[Any]]:
    """
    ``INSERT INTO t (cols) VALUES (...), (...)`` with placeholders numbered
    from 1 for this statement.
    """
    acc = SQLAccumulator(dialect)
    groups: List[str] = []
    for row in rows:
        if len(row) != len(columns):
            raise ValidationError.single(
                "values", f"Row has {len(row)} values for {len(columns)} columns."
            )
        tokens, acc = acc.bind_many(row)
        groups.append(f"({', '.join(tokens)})")
    if columns:
        column_sql = ", ".join(dialect.quote_identifier(c) for c in columns)
        values_sql = f"({column_sql}) VALUES {', '.join(groups)}"
    elif dialect.name == "mysql":
        values_sql = "() VALUES ()"
    else:
        values_sql = "DEFAULT VALUES"
    acc = acc.add("INSERT INTO", dialect.format_table(table), values_sql, suffix)
    if returning:
        acc = acc.add("RETURNING", ", ".join(dialect.format_column(c) for c in returning))
    return acc.build()


def render_update(
    dialect: Dialect,
    table: str,
    assignments: Sequence[Tuple[str, Any]],
    conditions: Sequence[Condition],
    *,
    returning: Sequence[str] = (),
) -> Tuple[str, List[Any]]:
    if not assignments:
        raise ValidationError.single("data", "No fields to update.")
    acc = SQLAccumulator(dialect)
    sets: List[str] = []
    for column_name, value in assignments:
        token, acc = acc.bind(value)
        sets.append(f"{dialect.quote_identifier(column_name)} = {token}")
    acc = acc.add("UPDATE", dialect.format_table(table), "SET", ", ".join(sets))
    if conditions:
        where_sql, acc = render_conditions(conditions, acc)
        acc = acc.add("WHERE", where_sql)
    if returning:
        acc = acc.add("RETURNING", ", ".join(dialect.format_column(c) for c in returning))
    return acc.build()


def render_delete(
    dialect: Dialect, table: str, conditions: Sequence[Condition]
) -> Tuple[str, List[Any]]:
    acc = SQLAccumulator(dialect).add("DELETE FROM", dialect.format_table(table))
    if conditions:
        where_sql, acc = render_conditions(conditions, acc)
        acc = acc.add("WHERE", where_sql)
    return acc.build()


def pk_condition(primary_key: str, value: Any) -> FieldCondition:
    return FieldCondition(primary_key, equals(value))
