"""
Validation pipeline run against records before they are written.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.records import FieldSpec, RecordSchema, build_schema, is_zero
from .errors import ValidationError


def validate_record(record: Any, schema: RecordSchema | None = None) -> None:
    schema = schema or build_schema(type(record))
    clean_method = getattr(record, "clean", None)
    if not schema.has_validation and not callable(clean_method):
        return

    errors: Dict[str, List[str]] = {}
    for spec in schema.fields:
        value = getattr(record, spec.name, None)
        try:
            _validate_field(spec, value)
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)

    # Record-level clean hook
    if callable(clean_method):
        try:
            clean_method()
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)
        except ValueError as exc:
            _add_error(errors, "__all__", str(exc))

    if errors:
        raise ValidationError(errors)


def _validate_field(spec: FieldSpec, value: Any) -> None:
    if is_zero(value):
        if spec.required:
            raise ValidationError({spec.name: ["This field is required."]})
        if value is None:
            return

    messages: List[str] = []
    for validator in spec.validators:
        try:
            validator(value)
        except (ValueError, TypeError) as exc:
            messages.append(str(exc))
    if messages:
        raise ValidationError({spec.name: messages})


def _add_error(errors: Dict[str, List[str]], field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for field, messages in source.items():
        target.setdefault(field, []).extend(messages)
