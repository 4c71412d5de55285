from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Optional,
    Set,
    Type,
)
from urllib.parse import urlparse

from quarry.exception import QuarryError
from quarry.registry import InterfaceRegistry


class BaseInterface(ABC):
    """Connection source for a single database

    Subclasses only need to say how a connection is taken from the
    underlying driver pool. The interface then keeps track of which
    connection belongs to the transaction running in the current task, so
    every executor sharing the pool runs on that connection until the
    transaction finishes.
    """

    scheme = "dummy"
    registered_interfaces: Set[Type[BaseInterface]] = set()

    def __init_subclass__(cls) -> None:
        BaseInterface.registered_interfaces.add(cls)

    def __init__(
        self,
        dsn: str = "",
        min_size: int = 1,
        max_size: Optional[int] = None,
    ) -> None:
        """
        Args:
            dsn (str, optional): Where to connect. Defaults to `""`.
            min_size (int, optional): Minimum number of pooled
                connections. Defaults to `1`.
            max_size (int, optional): Maximum number of pooled
                connections. Defaults to `None`.

        Raises:
            QuarryError: If the pool sizing is inconsistent
        """
        if min_size < 0 or (max_size is not None and max_size < min_size):
            raise QuarryError(
                f"Invalid pool size: min_size={min_size}, max_size={max_size}"
            )
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._connection: ContextVar[Any] = ContextVar(
            "connection", default=None
        )
        self._transaction: ContextVar[bool] = ContextVar(
            "transaction", default=False
        )
        self._setup_pool()
        InterfaceRegistry.add(self)

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.redacted_dsn}>"

    @abstractmethod
    def _setup_pool(self): ...

    @abstractmethod
    async def open(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    def _acquire(
        self, timeout: Optional[float] = None
    ) -> AsyncContextManager[Any]:
        """Take a connection from the driver for regular queries"""

    def _dedicated(
        self, timeout: Optional[float] = None
    ) -> AsyncContextManager[Any]:
        """Take a connection from the driver that nothing else will use
        while a transaction runs on it"""
        return self._acquire(timeout)

    @property
    def dsn(self) -> str:
        return self._dsn

    @property
    def redacted_dsn(self) -> str:
        parts = urlparse(self._dsn)
        if not parts.password:
            return self._dsn
        netloc = parts.netloc.replace(f":{parts.password}@", ":...@", 1)
        return parts._replace(netloc=netloc).geturl()

    @property
    def min_size(self) -> int:
        return self._min_size

    @property
    def max_size(self) -> Optional[int]:
        return self._max_size

    def existing_connection(self) -> Any:
        return self._connection.get()

    def in_transaction(self) -> bool:
        return self._transaction.get()

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[Any]:
        """Obtain a connection to the database

        Inside a transaction, this is the connection of the transaction.

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Yields:
            Any: A database connection
        """
        existing = self.existing_connection()
        if existing is not None:
            yield existing
            return
        async with self._acquire(timeout) as conn:
            yield conn

    @asynccontextmanager
    async def transaction_connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[Any]:
        """Obtain a dedicated connection for one transaction, and make it
        the connection of this interface for the current task until the
        block exits

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Raises:
            QuarryError: If a transaction is already running on this
                interface in the current task

        Yields:
            Any: A database connection
        """
        if self.in_transaction():
            raise QuarryError(f"{self} is already running a transaction")
        async with self._dedicated(timeout) as conn:
            connection_token = self._connection.set(conn)
            transaction_token = self._transaction.set(True)
            try:
                yield conn
            finally:
                self._transaction.reset(transaction_token)
                self._connection.reset(connection_token)
