from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

from quarry.transaction.controller import (
    TransactionController,
    TransactionHandle,
)
from quarry.transaction.retry import (
    BackoffConfig,
    Classifier,
    is_write_conflict,
    run_with_retry,
)

from .base import capability

R = TypeVar("R")


@capability()
async def begin_transaction(client) -> TransactionHandle:
    """Open a transaction that is committed or rolled back through the
    returned handle"""
    return await TransactionController(client).begin()


@capability()
async def with_retry(
    client,
    callback: Callable[[Any], Awaitable[R]],
    config: Optional[BackoffConfig] = None,
    classifier: Optional[Classifier] = None,
    **overrides: Any,
) -> R:
    """Run `callback` in a transaction, retrying it from scratch when the
    transaction loses a write conflict or a deadlock

    Args:
        callback (Callable[[Any], Awaitable[R]]): Receives the client bound
            to the transaction
        config (BackoffConfig, optional): The backoff schedule. Defaults
            to the executor's `backoff`.
        classifier (Classifier, optional): Which failures are retried.
            Defaults to `is_write_conflict`.
        **overrides: Replace individual fields of the schedule

    Returns:
        R: Whatever the callback returns
    """
    return await run_with_retry(
        lambda: client.run_transaction(callback),
        classifier or is_write_conflict,
        config or getattr(client, "backoff", None),
        **overrides,
    )
