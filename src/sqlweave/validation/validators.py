"""
Built-in validator helpers attached to record fields via ``column(validators=...)``.
"""

from __future__ import annotations

import re
from typing import Any, Protocol


class Validator(Protocol):
    def __call__(self, value: Any) -> None: ...


class MinValueValidator:
    def __init__(self, minimum: float, message: str | None = None) -> None:
        self.minimum = minimum
        self.message = message or f"Ensure value is greater than or equal to {minimum}."

    def __call__(self, value: Any) -> None:
        if value is not None and value < self.minimum:
            raise ValueError(self.message)


class MaxValueValidator:
    def __init__(self, maximum: float, message: str | None = None) -> None:
        self.maximum = maximum
        self.message = message or f"Ensure value is less than or equal to {maximum}."

    def __call__(self, value: Any) -> None:
        if value is not None and value > self.maximum:
            raise ValueError(self.message)


class MinLengthValidator:
    def __init__(self, minimum: int, message: str | None = None) -> None:
        self.minimum = minimum
        self.message = message or f"Ensure length is at least {minimum}."

    def __call__(self, value: Any) -> None:
        if value is not None and len(value) < self.minimum:
            raise ValueError(self.message)


class MaxLengthValidator:
    def __init__(self, maximum: int, message: str | None = None) -> None:
        self.maximum = maximum
        self.message = message or f"Ensure length is at most {maximum}."

    def __call__(self, value: Any) -> None:
        if value is not None and len(value) > self.maximum:
            raise ValueError(self.message)


class RegexValidator:
    def __init__(self, pattern: str, message: str | None = None) -> None:
        self.pattern = re.compile(pattern)
        self.message = message or "Value does not match required pattern."

    def __call__(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, str):
            raise ValueError("Value must be a string for RegexValidator.")
        if not self.pattern.match(value):
            raise ValueError(self.message)


class EmailValidator(RegexValidator):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$",
            message or "Enter a valid email address.",
        )
