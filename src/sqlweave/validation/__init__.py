"""
Validation utilities exposed at the package level.
"""

from .errors import ValidationError
from .pipeline import validate_record
from .validators import (
    EmailValidator,
    MaxLengthValidator,
    MaxValueValidator,
    MinLengthValidator,
    MinValueValidator,
    RegexValidator,
)

__all__ = [
    "ValidationError",
    "validate_record",
    "EmailValidator",
    "MaxLengthValidator",
    "MaxValueValidator",
    "MinLengthValidator",
    "MinValueValidator",
    "RegexValidator",
]
