"""
Transaction coordination.
"""

from .transaction import (
    Transaction,
    TransactionCoordinator,
    TransactionError,
    begin_transaction,
    execute_sequential_transactions,
    execute_transaction,
    transaction,
)

__all__ = [
    "Transaction",
    "TransactionCoordinator",
    "TransactionError",
    "begin_transaction",
    "execute_sequential_transactions",
    "execute_transaction",
    "transaction",
]
