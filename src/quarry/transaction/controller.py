"""
Externally controlled transactions.

`run_transaction` only offers a scoped transaction: the work has to happen
inside a callback. The controller keeps that callback suspended on a
decision future so the transaction stays open until whoever holds the
handle calls `commit()` or `rollback()`.

A handle that is never decided keeps its transaction, and the connection
and locks behind it, open indefinitely. Prefer `async with handle:` when
the decision can be made in one place.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from quarry.exception import UnsupportedOperation

from .interfaces import TransactionError, TransactionState

logger = logging.getLogger(__name__)


class _Rollback(Exception):
    """Deliberate rollback of a single handle. Never leaves this module."""


class TransactionHandle:
    """Exclusive control over the outcome of one open transaction

    Attribute access is forwarded to the client bound to the transaction,
    so the handle can be used wherever that client could:

    ```python
    handle = await executor.capabilities.begin_transaction()
    await handle.create({"name": "foo"})
    await handle.commit()
    ```

    Exactly one of `commit()` or `rollback()` may be called. A second
    decision raises `TransactionError`, as does using the handle after the
    decision was made.
    """

    def __init__(
        self,
        transaction_id: str,
        client: Any,
        decision: asyncio.Future,
        completion: asyncio.Task,
        sentinel: _Rollback,
    ) -> None:
        self._transaction_id = transaction_id
        self._client = client
        self._decision = decision
        self._completion = completion
        self._sentinel = sentinel
        self._state = TransactionState.ACTIVE
        completion.add_done_callback(self._settled)

    def __str__(self) -> str:
        return f"<TransactionHandle {self._transaction_id} {self.state.value}>"

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.client, name)

    @property
    def client(self) -> Any:
        """The client bound to the transaction"""
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction {self._transaction_id} already finalized"
            )
        return self._client

    @property
    def transaction_id(self) -> str:
        return self._transaction_id

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def is_committed(self) -> bool:
        return self._state is TransactionState.COMMITTED

    @property
    def is_rolled_back(self) -> bool:
        return self._state is TransactionState.ROLLED_BACK

    @property
    def completion(self) -> asyncio.Task:
        """Resolves once the underlying transaction has finished"""
        return self._completion

    def commit(self) -> asyncio.Task:
        """Commit the transaction

        Returns immediately. Await the returned task to wait for the
        commit to finish and to receive any error it raised.

        Raises:
            TransactionError: If a decision was already made

        Returns:
            asyncio.Task: Tracks the completion of the transaction
        """
        self._decide(TransactionState.COMMITTED)
        self._decision.set_result(None)
        return self._completion

    def rollback(self) -> asyncio.Task:
        """Roll back the transaction

        Returns immediately. Awaiting the returned task never raises
        because of the rollback itself.

        Raises:
            TransactionError: If a decision was already made

        Returns:
            asyncio.Task: Tracks the completion of the transaction
        """
        self._decide(TransactionState.ROLLED_BACK)
        self._decision.set_exception(self._sentinel)
        return self._completion

    def _decide(self, state: TransactionState) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction {self._transaction_id} already finalized "
                f"({self._state.value})"
            )
        logger.debug(
            "Transaction %s decided: %s", self._transaction_id, state.value
        )
        self._state = state

    def _settled(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self._state = TransactionState.FAILED
            logger.warning("Transaction %s cancelled", self._transaction_id)
            return
        exc = task.exception()
        if exc is not None:
            self._state = TransactionState.FAILED
            logger.error(
                "Transaction %s failed: %s", self._transaction_id, exc
            )
        else:
            logger.info(
                "Transaction %s %s", self._transaction_id, self._state.value
            )

    async def __aenter__(self) -> TransactionHandle:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._state is not TransactionState.ACTIVE:
            return False
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        except Exception as e:
            logger.error(
                "Error in context manager exit for %s: %s",
                self._transaction_id,
                e,
            )
            if exc_type is None:
                raise
        return False


class TransactionController:
    """Turns the scoped `run_transaction` of a client into transactions
    that are committed or rolled back from anywhere"""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def begin(self) -> TransactionHandle:
        """Open a transaction and return the handle controlling it

        Suspends until the transaction has started.

        Raises:
            UnsupportedOperation: If the client cannot run transactions
            Exception: Whatever prevented the transaction from starting

        Returns:
            TransactionHandle: The handle
        """
        run_transaction: Optional[Callable[..., Awaitable[Any]]] = getattr(
            self._client, "run_transaction", None
        )
        if not callable(run_transaction) or not getattr(
            self._client, "supports_transactions", True
        ):
            raise UnsupportedOperation(
                f"{self._client} does not support transactions"
            )

        transaction_id = f"txn_{uuid4().hex[:8]}"
        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        decision: asyncio.Future = loop.create_future()
        sentinel = _Rollback(transaction_id)

        async def scope(client: Any) -> Any:
            if not ready.done():
                ready.set_result(client)
            return await decision

        async def complete() -> Any:
            try:
                return await run_transaction(scope)
            except _Rollback as e:
                if e is not sentinel:
                    raise
                return None

        logger.debug("Beginning transaction %s", transaction_id)
        completion = loop.create_task(complete())
        try:
            await asyncio.wait(
                {ready, completion}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            if ready.done() and not decision.done():
                decision.set_exception(sentinel)
            else:
                completion.cancel()
            raise

        if not ready.done():
            ready.cancel()
            completion.result()
            raise TransactionError(
                f"Transaction {transaction_id} finished before it started"
            )

        return TransactionHandle(
            transaction_id, ready.result(), decision, completion, sentinel
        )
