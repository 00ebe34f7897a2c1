"""
Validation error hierarchy for sqlweave.
"""

from __future__ import annotations

from typing import Dict, List, Mapping


class ValidationError(Exception):
    """
    Aggregated validation error storing field-to-messages mapping.

    Raised before any statement is sent: invalid record values, mass
    updates/deletes without conditions, empty update payloads, bad filters.
    """

    def __init__(self, errors: Mapping[str, List[str]]) -> None:
        self.errors: Dict[str, List[str]] = {
            key: list(messages) for key, messages in errors.items()
        }
        super().__init__(self._format_message())

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    def _format_message(self) -> str:
        segments = []
        for field, messages in self.errors.items():
            prefix = field if field != "__all__" else "non-field"
            segments.append(f"{prefix}: {'; '.join(messages)}")
        return "; ".join(segments)
