"""
Record schema descriptors.

Records are plain dataclasses. Column naming can be steered per field with
:func:`column`; everything else is derived from the field name.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping

from ..utils.naming import to_snake_case

COLUMN_KEY = "column"
ALIAS_KEY = "alias"
REQUIRED_KEY = "required"
VALIDATORS_KEY = "validators"

_UNION_TYPES = (typing.Union, types.UnionType)


class ConfigurationError(RuntimeError):
    """
    Raised when a builder lacks configuration an operation depends on, such
    as a primary key or a record type.
    """


def column(
    *,
    name: str | None = None,
    alias: str | None = None,
    required: bool = False,
    validators: Iterable[Callable[[Any], None]] = (),
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    **kwargs: Any,
) -> Any:
    """
    Declare a record field with an explicit column name and/or alias.

    ``name`` is the column override and always wins when resolving result
    columns; ``alias`` is a secondary name (typically a serialization key)
    consulted before the snake_case field name.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata.update(
        {
            COLUMN_KEY: name,
            ALIAS_KEY: alias,
            REQUIRED_KEY: required,
            VALIDATORS_KEY: tuple(validators),
        }
    )
    if default is not dataclasses.MISSING:
        kwargs["default"] = default
    if default_factory is not dataclasses.MISSING:
        kwargs["default_factory"] = default_factory
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class FieldSpec:
    """
    Resolved naming and defaults for one record field.
    """

    name: str
    column: str
    override: str | None
    alias: str | None
    snake: str
    textual: bool
    required: bool = False
    validators: tuple[Callable[[Any], None], ...] = ()
    default_factory: Callable[[], Any] | None = None
    init: bool = True

    def default(self) -> Any:
        if self.default_factory is None:
            return None
        return self.default_factory()


@dataclass(frozen=True)
class RecordSchema:
    """
    Per-type descriptor: ordered fields plus the column-name lookup table.
    """

    record_type: type
    fields: tuple[FieldSpec, ...]
    lookup: Mapping[str, FieldSpec]

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.fields)

    @property
    def has_validation(self) -> bool:
        return any(spec.required or spec.validators for spec in self.fields)

    def resolve(self, column_name: str) -> FieldSpec | None:
        """
        Field receiving ``column_name``; qualified names use their last segment.
        """
        spec = self.lookup.get(column_name)
        if spec is None and "." in column_name:
            spec = self.lookup.get(column_name.rsplit(".", 1)[1])
        return spec

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def field_for_column(self, column_name: str) -> FieldSpec | None:
        """
        Field written to ``column_name`` (override or snake_case only).
        """
        for spec in self.fields:
            if spec.column == column_name:
                return spec
        return None

    def columns(self) -> list[str]:
        return [spec.column for spec in self.fields]

    def values(self, record: Any) -> list[tuple[FieldSpec, Any]]:
        return [(spec, getattr(record, spec.name, None)) for spec in self.fields]


def build_schema(record_type: type) -> RecordSchema:
    """
    Introspect a dataclass once and compute its column lookup table.

    Lookup precedence is tiered across all fields: override names beat
    aliases, which beat snake_case names. Within a tier the first declared
    field wins.
    """
    if not isinstance(record_type, type) or not dataclasses.is_dataclass(record_type):
        raise ConfigurationError(
            f"Record type {record_type!r} must be a dataclass to be mapped to columns."
        )

    hints = _type_hints(record_type)
    specs: list[FieldSpec] = []
    for field in dataclasses.fields(record_type):
        override = field.metadata.get(COLUMN_KEY)
        alias = field.metadata.get(ALIAS_KEY)
        snake = to_snake_case(field.name)
        specs.append(
            FieldSpec(
                name=field.name,
                column=override or snake,
                override=override,
                alias=alias,
                snake=snake,
                textual=_is_textual(hints.get(field.name, field.type)),
                required=bool(field.metadata.get(REQUIRED_KEY, False)),
                validators=tuple(field.metadata.get(VALIDATORS_KEY, ())),
                default_factory=_default_factory(field),
                init=field.init,
            )
        )

    lookup: dict[str, FieldSpec] = {}
    for tier in ("snake", "alias", "override"):
        seen: dict[str, FieldSpec] = {}
        for spec in specs:
            key = getattr(spec, tier)
            if key and key not in seen:
                seen[key] = spec
        lookup.update(seen)

    return RecordSchema(record_type=record_type, fields=tuple(specs), lookup=lookup)


def is_zero(value: Any) -> bool:
    """
    True for values that count as "not set": None, False, 0, empty strings,
    bytes and containers.
    """
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str, bytes, list, tuple, dict, set)):
        return not value
    return False


def record_payload(
    schema: RecordSchema, record: Any, *, primary_key: str | None = None
) -> list[tuple[FieldSpec, Any]]:
    """
    Non-zero fields of ``record`` in declaration order, skipping the primary key.
    """
    return [
        (spec, value)
        for spec, value in schema.values(record)
        if spec.column != primary_key and not is_zero(value)
    ]


def primary_key_field(schema: RecordSchema, primary_key: str | None) -> FieldSpec | None:
    if not primary_key:
        return None
    return schema.field_for_column(primary_key) or schema.field(primary_key)


# Helpers -------------------------------------------------------------------


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        return {}


def _is_textual(hint: Any) -> bool:
    if hint is str:
        return True
    if isinstance(hint, str):
        cleaned = hint.replace(" ", "")
        return cleaned in ("str", "str|None", "None|str", "Optional[str]", "typing.Optional[str]")
    if typing.get_origin(hint) in _UNION_TYPES:
        args = typing.get_args(hint)
        non_null = [arg for arg in args if arg is not type(None)]
        return len(non_null) == 1 and non_null[0] is str
    return False


def _default_factory(field: dataclasses.Field) -> Callable[[], Any] | None:
    if field.default is not dataclasses.MISSING:
        value = field.default
        return lambda: value
    if field.default_factory is not dataclasses.MISSING:
        return field.default_factory
    return None
