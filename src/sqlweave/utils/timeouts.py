"""
Deadline tracking for database round trips.

Budgets are assigned per operation kind and carried in a context variable so
adapters can enforce them without every call site threading a timeout
argument through.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Generator

QUERY_TIMEOUT = 5.0
TRANSACTION_TIMEOUT = 30.0
BULK_TIMEOUT = 300.0
DEFAULT_TIMEOUT = 30.0

_deadline: ContextVar[float | None] = ContextVar("sqlweave_deadline", default=None)


@dataclass(frozen=True)
class TimeoutBudgets:
    """
    Seconds allowed per operation kind. ``None`` disables a budget.
    """

    query: float | None = QUERY_TIMEOUT
    transaction: float | None = TRANSACTION_TIMEOUT
    bulk: float | None = BULK_TIMEOUT


@contextmanager
def deadline(seconds: float | None) -> Generator[float | None, None, None]:
    """
    Bound the enclosed block by ``seconds``; an outer, earlier deadline wins.
    """
    current = _deadline.get()
    if seconds is None:
        yield current
        return
    candidate = time.monotonic() + seconds
    effective = candidate if current is None else min(current, candidate)
    token = _deadline.set(effective)
    try:
        yield effective
    finally:
        _deadline.reset(token)


def current_deadline() -> float | None:
    return _deadline.get()


def remaining_seconds() -> float | None:
    """
    Seconds left before the active deadline, never negative; ``None`` without one.
    """
    value = _deadline.get()
    if value is None:
        return None
    return max(0.0, value - time.monotonic())


def deadline_exceeded() -> bool:
    value = _deadline.get()
    return value is not None and time.monotonic() >= value
