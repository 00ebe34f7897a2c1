"""Redaction of credentials and sensitive bound values before logging."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

REDACTED_VALUE = "***"

_SENSITIVE_NAMES = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "access_key",
    "private_key",
    "sslkey",
    "sslcert",
    "sslrootcert",
    "ssl_ca",
)

_SENSITIVE_MARKERS = (
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "private_key",
    "bearer",
    "authorization",
)


def _squash(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


def is_sensitive_key(key: str) -> bool:
    """
    True when a column or option name looks like it holds a credential.
    """
    lowered = key.lower()
    squashed = _squash(key)
    return any(token in lowered or _squash(token) in squashed for token in _SENSITIVE_NAMES)


def is_sensitive_value(value: str) -> bool:
    lowered = value.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def redact_query_params(query: dict[str, str]) -> dict[str, str]:
    return {key: REDACTED_VALUE if is_sensitive_key(key) else val for key, val in query.items()}


def redact_value(value: Any, *, key: str | None = None) -> Any:
    if key is not None and is_sensitive_key(str(key)):
        return REDACTED_VALUE
    if isinstance(value, dict):
        return {k: redact_value(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact_value(item) for item in value)
    if isinstance(value, bytes):
        decoded = value.decode("utf-8", errors="ignore")
        return REDACTED_VALUE if decoded and is_sensitive_value(decoded) else value
    if isinstance(value, str) and is_sensitive_value(value):
        return REDACTED_VALUE
    return value


def redact_params(params: Iterable[Any], columns: Sequence[str] | None = None) -> list[Any]:
    """
    Redact a bound-argument list. When ``columns`` lines up with the values
    (INSERT/UPDATE payloads) the column names are checked too.
    """
    values = list(params)
    if columns is not None and len(columns) == len(values):
        return [redact_value(value, key=column) for column, value in zip(columns, values)]
    return [redact_value(value) for value in values]
