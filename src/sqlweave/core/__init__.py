"""
Record schemas and row mapping.
"""

from .mapper import MAX_SCAN_ROWS, ColumnMapper, ResultTooLargeError, ScanError, ScanPlan
from .records import ConfigurationError, FieldSpec, RecordSchema, build_schema, column, is_zero

__all__ = [
    "MAX_SCAN_ROWS",
    "ColumnMapper",
    "ConfigurationError",
    "FieldSpec",
    "RecordSchema",
    "ResultTooLargeError",
    "ScanError",
    "ScanPlan",
    "build_schema",
    "column",
    "is_zero",
]
