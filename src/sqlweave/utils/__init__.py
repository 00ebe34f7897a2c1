"""
Utility helpers shared across sqlweave packages.
"""

from .logging import configure_logging, get_logger, time_call
from .naming import to_snake_case

__all__ = ["configure_logging", "get_logger", "time_call", "to_snake_case"]
