"""
Options-record builder: each call takes its conditions in one go.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from ..adapters.base import Rows
from ..utils.timeouts import deadline
from .builder import BuilderBase, Query
from .compiler import OrderBy
from .filters import Where

if TYPE_CHECKING:
    from .batch import BatchResult


@dataclass
class QueryOptions:
    where: Where | None = None
    order_by: Sequence[str | OrderBy] = ()
    take: int | None = None
    skip: int | None = None
    select: Sequence[str] = field(default_factory=tuple)


class TableQueryBuilder(BuilderBase):
    """
    Builder for one table where every operation is self-contained.

    Reads compile through the same clause routine as :class:`Query`; a
    fresh ``Query`` is assembled per call, so instances hold no clause state.
    """

    def find_first(self, where: Where | None = None) -> Any:
        return self._query(QueryOptions(where=where)).first()

    def find_many(self, options: QueryOptions | None = None) -> list[Any] | Rows:
        """
        Records of ``record_type``, or an open :class:`Rows` cursor when the
        builder has no record type. The caller closes the cursor.
        """
        query = self._query(options or QueryOptions())
        if self.record_type is not None:
            return query.find()
        sql, args = query.to_sql()
        with deadline(self.config.timeouts.query):
            with self._timer("find_many", sql, args):
                return self.executor.query(sql, args)

    def count(self, where: Where | None = None) -> int:
        return self._query(QueryOptions(where=where)).count()

    def create(self, record: Any) -> Any:
        return self._create(record)

    def update(self, key: Any, record: Any) -> Any:
        return self._update_by_key(key, record)

    def upsert(self, record: Any) -> Any:
        return self._upsert(record)

    def delete(self, key: Any) -> int:
        return self._delete_by_key(key)

    def delete_many(self, where: Where) -> "BatchResult":
        return self._batch().delete_many(where)

    def create_many(self, records: Sequence[Any], *, skip_duplicates: bool = False) -> "BatchResult":
        return self._batch().create_many(records, skip_duplicates=skip_duplicates)

    def update_many(self, where: Where, data: Mapping[str, Any] | Any) -> "BatchResult":
        return self._batch().update_many(where, data)

    def _query(self, options: QueryOptions) -> Query:
        query = Query(
            self.executor,
            self.table,
            self.columns,
            primary_key=self.primary_key,
            record_type=self.record_type,
            config=self.config,
        )
        if options.where:
            query.where(options.where)
        if options.select:
            query.select(*options.select)
        if options.order_by:
            query.order(*options.order_by)
        if options.take is not None:
            query.take(options.take)
        if options.skip is not None:
            query.skip(options.skip)
        return query

