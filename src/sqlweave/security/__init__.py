"""
Credential handling helpers: DSN parsing and log redaction.
"""

from .dsns import DSNConfig, dsn_from_env, parse_dsn
from .redaction import REDACTED_VALUE, redact_params, redact_value

__all__ = [
    "DSNConfig",
    "dsn_from_env",
    "parse_dsn",
    "REDACTED_VALUE",
    "redact_params",
    "redact_value",
]
