"""
Transaction handles and the coordinator running units of work.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Generator, Sequence, TypeVar

from ..adapters.base import AdapterTransactionError, DriverError, ExecResult, Rows
from ..utils import get_logger
from ..utils.timeouts import TRANSACTION_TIMEOUT, deadline

if TYPE_CHECKING:
    from ..adapters.base import DatabaseAdapter, Executor
    from ..config import QueryConfig
    from ..query.builder import Query
    from ..query.table import TableQueryBuilder

T = TypeVar("T")


class TransactionError(AdapterTransactionError):
    pass


class Transaction:
    """
    An open transaction on one adapter connection.

    Offers the same executable capability as the adapter, except that
    ``begin`` always fails: nested transactions are not supported.
    """

    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"

    def __init__(self, adapter: "DatabaseAdapter") -> None:
        self.adapter = adapter
        self.state = self.OPEN
        self.logger = get_logger("persistence.transaction")

    @property
    def dialect(self):
        return self.adapter.dialect

    @property
    def is_open(self) -> bool:
        return self.state == self.OPEN

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.is_open:
            return False
        if exc_type is None:
            self.commit()
        else:
            self._rollback_quietly()
        return False

    # ------------------------------------------------------------------ #
    # Executable capability
    # ------------------------------------------------------------------ #
    def exec(self, sql: str, params: Sequence[Any] | None = None) -> ExecResult:
        self._require_open()
        return self.adapter.exec(sql, params)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> Rows:
        self._require_open()
        return self.adapter.query(sql, params)

    def query_row(self, sql: str, params: Sequence[Any] | None = None) -> tuple[Any, ...] | None:
        self._require_open()
        return self.adapter.query_row(sql, params)

    def begin(self) -> "Transaction":
        raise TransactionError("cannot begin a transaction within a transaction")

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #
    def commit(self) -> None:
        self._require_open()
        try:
            self.adapter.commit()
        except DriverError:
            self.state = self.ROLLED_BACK
            self.adapter._release(self)
            raise
        self.state = self.COMMITTED
        self.adapter._release(self)
        self.logger.debug("Transaction committed")

    def rollback(self) -> None:
        self._require_open()
        try:
            self.adapter.rollback()
        finally:
            self.state = self.ROLLED_BACK
            self.adapter._release(self)
        self.logger.debug("Transaction rolled back")

    # ------------------------------------------------------------------ #
    # Builders bound to this transaction
    # ------------------------------------------------------------------ #
    def builder(self, table: str, columns: Sequence[str] = (), **kwargs: Any) -> "Query":
        from ..query.builder import Query

        return Query(self, table, columns, **kwargs)

    def table(self, table: str, columns: Sequence[str] = (), **kwargs: Any) -> "TableQueryBuilder":
        from ..query.table import TableQueryBuilder

        return TableQueryBuilder(self, table, columns, **kwargs)

    def _require_open(self) -> None:
        if not self.is_open:
            raise TransactionError(f"Transaction is already {self.state.replace('_', ' ')}.")

    def _rollback_quietly(self) -> None:
        # The body's exception is what the caller needs to see.
        try:
            self.rollback()
        except DriverError:
            self.logger.exception("Rollback failed after transaction body error")


class TransactionCoordinator:
    """
    Runs units of work inside a transaction on one executor, bounded by the
    transaction timeout budget.
    """

    def __init__(self, executor: "Executor", *, timeout: float | None = TRANSACTION_TIMEOUT) -> None:
        self.executor = executor
        self.timeout = timeout
        self.logger = get_logger("persistence.transaction")

    @classmethod
    def from_config(cls, executor: "Executor", config: "QueryConfig") -> "TransactionCoordinator":
        return cls(executor, timeout=config.timeouts.transaction)

    def begin(self) -> Transaction:
        try:
            return self.executor.begin()
        except TransactionError:
            raise
        except DriverError as exc:
            raise TransactionError(f"failed to begin transaction: {exc}") from exc

    @contextmanager
    def transaction(self) -> Generator[Transaction, None, None]:
        with deadline(self.timeout):
            tx = self.begin()
            try:
                yield tx
            except BaseException:
                if tx.is_open:
                    tx._rollback_quietly()
                raise
            else:
                if tx.is_open:
                    tx.commit()

    def run(self, fn: Callable[[Transaction], T]) -> T:
        """
        Call ``fn`` with an open transaction; commit on return, roll back and
        re-raise on any exception (including KeyboardInterrupt and friends).
        """
        with self.transaction() as tx:
            return fn(tx)

    def run_sequential(self, operations: Sequence[Callable[[Transaction], Any]]) -> list[Any]:
        """
        Run ``operations`` in order inside one transaction; the first failure
        aborts the rest and rolls everything back.
        """
        results: list[Any] = []
        with self.transaction() as tx:
            for index, operation in enumerate(operations):
                self.logger.debug("Running transactional step %s/%s", index + 1, len(operations))
                results.append(operation(tx))
        return results


def begin_transaction(executor: "Executor") -> Transaction:
    return TransactionCoordinator(executor).begin()


@contextmanager
def transaction(
    executor: "Executor", *, timeout: float | None = TRANSACTION_TIMEOUT
) -> Generator[Transaction, None, None]:
    with TransactionCoordinator(executor, timeout=timeout).transaction() as tx:
        yield tx


def execute_transaction(
    executor: "Executor", fn: Callable[[Transaction], T], *, timeout: float | None = TRANSACTION_TIMEOUT
) -> T:
    return TransactionCoordinator(executor, timeout=timeout).run(fn)


def execute_sequential_transactions(
    executor: "Executor",
    operations: Sequence[Callable[[Transaction], Any]],
    *,
    timeout: float | None = TRANSACTION_TIMEOUT,
) -> list[Any]:
    return TransactionCoordinator(executor, timeout=timeout).run_sequential(operations)
