"""
Performance tracking utilities and N+1 query detection.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import List, Sequence

SLOW_QUERY_ENV = "SQLWEAVE_SLOW_QUERY_MS"


def resolve_slow_query_ms(default: int = 100, override: int | None = None) -> int:
    """
    Pick the slow-query threshold: explicit override, then environment, then default.
    """
    if override is not None:
        return override
    raw = os.getenv(SLOW_QUERY_ENV)
    if raw:
        try:
            return int(raw)
        except ValueError:
            logging.getLogger("sqlweave.utils.performance").warning(
                "Ignoring invalid %s value %r", SLOW_QUERY_ENV, raw
            )
    return default


@dataclass
class QueryStat:
    sql: str
    count: int = 0
    total_ms: float = 0.0
    fingerprints: set[str] = field(default_factory=set)
    samples: List[str] = field(default_factory=list)

    def record(self, fingerprint: str, elapsed_ms: float, *, sample_limit: int) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        if fingerprint and fingerprint not in self.fingerprints:
            self.fingerprints.add(fingerprint)
            if len(self.samples) < sample_limit:
                self.samples.append(fingerprint)

    @property
    def average_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count


class PerformanceTracker:
    """
    Tracks executed statements and warns when one shape repeats with varying
    parameters, the usual signature of an N+1 access pattern.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        n_plus_one_threshold: int = 5,
        sample_size: int = 5,
        max_statements: int = 1000,
    ) -> None:
        self.logger = logger
        self.n_plus_one_threshold = n_plus_one_threshold
        self.sample_size = sample_size
        self.max_statements = max_statements
        self.stats: dict[str, QueryStat] = {}
        self._reported: set[str] = set()
        self._lock = threading.Lock()

    def record(self, sql: str, params: Sequence[object], elapsed_ms: float) -> None:
        normalized_sql = self._normalize_sql(sql)
        fingerprint = self._fingerprint(params)
        with self._lock:
            stat = self.stats.get(normalized_sql)
            if stat is None:
                if len(self.stats) >= self.max_statements:
                    # Evict the oldest tracked statement (dicts keep insertion order).
                    oldest = next(iter(self.stats))
                    del self.stats[oldest]
                    self._reported.discard(oldest)
                stat = self.stats[normalized_sql] = QueryStat(sql=normalized_sql)
            stat.record(fingerprint, elapsed_ms, sample_limit=self.sample_size)
            should_report = self._should_report(stat)
            if should_report:
                self._reported.add(normalized_sql)
        if should_report:
            self._report(normalized_sql, stat)

    def summary(self) -> List[dict[str, object]]:
        with self._lock:
            return [
                {
                    "sql": stat.sql,
                    "count": stat.count,
                    "total_ms": stat.total_ms,
                    "average_ms": stat.average_ms,
                    "distinct_params": len(stat.fingerprints),
                }
                for stat in self.stats.values()
            ]

    def reset(self) -> None:
        with self._lock:
            self.stats.clear()
            self._reported.clear()

    def _should_report(self, stat: QueryStat) -> bool:
        if stat.count < self.n_plus_one_threshold:
            return False
        if len(stat.fingerprints) < 2:
            return False
        return stat.sql not in self._reported

    def _report(self, sql: str, stat: QueryStat) -> None:
        self.logger.warning(
            "Potential N+1 detected for SQL '%s' (%s executions, %s distinct params)",
            self._abbreviate(sql),
            stat.count,
            len(stat.fingerprints),
            extra={"sql": sql, "count": stat.count, "distinct_params": len(stat.fingerprints)},
        )

    @staticmethod
    def _normalize_sql(sql: str) -> str:
        return " ".join(sql.strip().split())

    @staticmethod
    def _fingerprint(params: Sequence[object]) -> str:
        if not params:
            return ""
        normalized = []
        for value in params:
            if isinstance(value, (list, tuple)):
                normalized.append(tuple(value))
            elif isinstance(value, dict):
                normalized.append(tuple(sorted(value.items())))
            else:
                normalized.append(value)
        return repr(tuple(normalized))

    @staticmethod
    def _abbreviate(sql: str, max_length: int = 80) -> str:
        if len(sql) <= max_length:
            return sql
        return sql[: max_length - 3] + "..."
