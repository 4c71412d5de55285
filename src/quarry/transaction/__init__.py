"""
Transaction control for Quarry: handles that are committed or rolled back
from outside the scope that opened them, and retries for transactions that
lose a write conflict.
"""

from .controller import TransactionController, TransactionHandle
from .interfaces import TransactionError, TransactionState
from .retry import BackoffConfig, is_write_conflict, run_with_retry

__all__ = [
    "BackoffConfig",
    "TransactionController",
    "TransactionError",
    "TransactionHandle",
    "TransactionState",
    "is_write_conflict",
    "run_with_retry",
]
