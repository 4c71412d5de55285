from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from copy import copy
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from quarry.base.hydrator import Hydrator
from quarry.base.interface import BaseInterface
from quarry.convert import convert_sql_params
from quarry.exception import (
    QuarryError,
    RecordNotFound,
    UnsupportedOperation,
    WriteConflict,
)
from quarry.lazy.interface import LazyPool
from quarry.registry import Registry
from quarry.sql.filter import (
    FilterCompiler,
    OrderBy,
    Where,
    compile_order,
    validate_identifier,
)
from quarry.sql.query import SQLQuery

if TYPE_CHECKING:
    from quarry.capability import Capabilities
    from quarry.transaction.retry import BackoffConfig

logger = logging.getLogger(__name__)

R = TypeVar("R")
CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class ModelExecutor:
    """
    Base class for the executors that give access to the records of one
    model. Likely you will want to create a subclass from one of the
    database specific subclasses and not directly from this base class.

    Example:

    ```python
    from dataclasses import dataclass
    from quarry import PostgresExecutor

    @dataclass
    class Item:
        id: int
        name: str

    class ItemExecutor(PostgresExecutor):
        model = Item
        table = "items"
    ```
    """

    ENABLED: bool = False
    POSITIONAL_SUB: str = r"%s"
    KEYWORD_SUB: str = r"%(\2)s"
    QUOTE: str = '"'
    NO_LIMIT: str = "LIMIT ALL"
    SUPPORTS_RETURNING: bool = True

    model: Type[object] = dict
    """`Type[object]`: The class rows are hydrated into. Defaults to `dict`"""
    table: str = ""
    """`str`: The table name. Defaults to the snake case model name"""
    primary_key: str = "id"
    """`str`: The column that uniquely identifies a record"""
    page_size: int = 10
    """`int`: Number of records in a page when none is requested"""
    backoff: Optional[BackoffConfig] = None
    """`Optional[BackoffConfig]`: Retry schedule for `with_retry`"""

    _fallback_hydrator: Optional[Hydrator] = None
    _fallback_pool: Optional[BaseInterface] = None

    def __init__(
        self,
        pool: Optional[BaseInterface] = None,
        hydrator: Optional[Hydrator] = None,
    ) -> None:
        """Base class for creating model executors

        Args:
            pool (BaseInterface, optional): An interface used
                for a specific executor to override a global pool.
                Defaults to `None`.
            hydrator (Hydrator, optional): A hydrator used
                for a specific executor to override a global hydrator.
                Defaults to `None`.

        Raises:
            QuarryError: If a dependency is missing
        """
        if not self.ENABLED:
            raise QuarryError(
                f"Cannot instantiate {self.__class__.__name__}. "
                "Perhaps you have a missing dependency?"
            )
        pool = pool or getattr(self.__class__, "_fallback_pool", None)
        if not pool:
            pool = LazyPool()
        self._pool = pool
        self._hydrator = hydrator
        self._bound: Any = None
        Registry().register(self)

    def __str__(self) -> str:
        state = " bound" if self.is_bound else ""
        return f"<{self.__class__.__name__} {self.get_table()}{state}>"

    @property
    def hydrator(self) -> Hydrator:
        """The assigned hydrator. Will return an instance specific hydrator
        if one was assigned.

        Returns:
            Hydrator: The hydrator
        """
        if self._hydrator:
            return self._hydrator
        return self._fallback_hydrator or Hydrator()

    @property
    def pool(self) -> BaseInterface:
        """The assigned pool. Will return an instance specific pool
        if one was assigned.

        Returns:
            BaseInterface: The pool interface
        """
        return self._pool

    @property
    def is_bound(self) -> bool:
        """Whether this executor is pinned to the connection of an open
        transaction"""
        return self._bound is not None

    @property
    def supports_transactions(self) -> bool:
        """Whether `begin()` can open a transaction of its own. Not while
        bound, nor while a transaction runs on the pool in this task"""
        return not self.is_bound and not self.pool.in_transaction()

    @property
    def capabilities(self) -> Capabilities:
        """The registered capabilities bound to this executor"""
        from quarry.capability import Capabilities

        return Capabilities(self)

    @classmethod
    def get_model_name(cls) -> str:
        if cls.model is dict:
            return cls.get_table()
        return cls.model.__name__

    @classmethod
    def get_table(cls) -> str:
        if cls.table:
            return validate_identifier(cls.table)
        if cls.model is dict:
            raise QuarryError(
                f"{cls.__name__} must define either a table or a model"
            )
        return CAMEL_BOUNDARY.sub("_", cls.model.__name__).lower()

    def bind(self, connection: Any) -> ModelExecutor:
        """Create a copy of this executor that runs every query on the
        given connection

        Args:
            connection (Any): A driver connection

        Returns:
            ModelExecutor: The bound executor
        """
        bound = copy(self)
        bound._bound = connection
        return bound

    def quote(self, identifier: str) -> str:
        validate_identifier(identifier)
        return ".".join(
            f"{self.QUOTE}{part}{self.QUOTE}"
            for part in identifier.split(".")
        )

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Any]:
        if self._bound is not None:
            yield self._bound
            return
        async with self.pool.connection() as conn:
            yield conn

    async def run(
        self,
        query: SQLQuery,
        as_list: bool = False,
        no_result: bool = False,
        connection: Any = None,
    ):
        """Low-level API to execute a compiled query and return the raw
        rows

        Args:
            query (SQLQuery): The query to be executed
            as_list (bool, optional): Whether to fetch every row.
                Defaults to `False`.
            no_result (bool, optional): Whether to skip fetching.
                Defaults to `False`.
            connection (Any, optional): A connection that is already
                acquired. Defaults to `None`.
        """
        text = convert_sql_params(
            query.text, self.POSITIONAL_SUB, self.KEYWORD_SUB
        )
        logger.debug("Running <%s> %s", query.name, text)
        try:
            if connection is not None:
                return await self._run_sql(
                    connection, text, query.params, as_list, no_result
                )
            async with self._acquire() as conn:
                return await self._run_sql(
                    conn, text, query.params, as_list, no_result
                )
        except QuarryError:
            raise
        except Exception as e:
            conflict = self._translate_error(e)
            if conflict is not None:
                raise conflict from e
            raise

    async def _run_sql(
        self,
        connection: Any,
        query: str,
        params: Dict[str, Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        raise NotImplementedError(
            f"{self.__class__.__name__} does not define _run_sql"
        )

    def _translate_error(
        self, exc: BaseException
    ) -> Optional[WriteConflict]:
        """Map a driver error onto a `WriteConflict` when it was caused by
        contention between transactions"""
        return None

    def _hydrate(self, raw: Any, select: Optional[Sequence[str]]) -> Any:
        if select:
            model = dict
        else:
            model = self.model
        if isinstance(raw, list):
            return self.hydrator.hydrate_many(raw, model)
        return self.hydrator.hydrate(raw, model)

    def _select(
        self,
        name: str,
        where: Optional[Where] = None,
        select: Optional[Sequence[str]] = None,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> SQLQuery:
        columns = ", ".join(map(self.quote, select)) if select else "*"
        compiler = FilterCompiler(self.quote)
        query = SQLQuery(
            name, f"SELECT {columns} FROM {self.quote(self.get_table())}"
        ) + self._where(compiler, where)
        query.text += compile_order(order_by, self.quote)
        query.text += self._window(skip, take)
        return query

    @staticmethod
    def _where(compiler: FilterCompiler, where: Optional[Where]) -> SQLQuery:
        query = compiler.compile(where)
        if query.text:
            query.text = f" WHERE {query.text}"
        return query

    def _window(self, skip: int = 0, take: Optional[int] = None) -> str:
        skip = max(0, int(skip or 0))
        window = ""
        if take is not None:
            window += f" LIMIT {max(0, int(take))}"
        if skip:
            if take is None:
                window += f" {self.NO_LIMIT}"
            window += f" OFFSET {skip}"
        return window

    def _by_key(self, name: str, key: Any) -> SQLQuery:
        return self._select(name, where={self.primary_key: key}, take=1)

    async def count(self, where: Optional[Where] = None) -> int:
        """Count the records matching a filter

        Args:
            where (Where, optional): The filter. Defaults to `None`.

        Returns:
            int: The number of matching records
        """
        compiler = FilterCompiler(self.quote)
        query = SQLQuery(
            "count",
            f"SELECT COUNT(*) AS total FROM {self.quote(self.get_table())}",
        ) + self._where(compiler, where)
        row = await self.run(query)
        return int(row["total"]) if row else 0

    async def find_first(
        self,
        where: Optional[Where] = None,
        select: Optional[Sequence[str]] = None,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
    ):
        """Fetch the first matching record after skipping `skip` matches

        Args:
            where (Where, optional): The filter. Defaults to `None`.
            select (Sequence[str], optional): Columns to fetch. When
                passed, plain dicts are returned instead of models.
                Defaults to `None`.
            order_by (OrderBy, optional): The ordering. Defaults to `None`.
            skip (int, optional): Matches to skip. Defaults to `0`.

        Returns:
            Optional[Any]: The record, or `None`
        """
        query = self._select(
            "find_first", where, select, order_by, skip=skip, take=1
        )
        raw = await self.run(query)
        if not raw:
            return None
        return self._hydrate(raw, select)

    async def find_many(
        self,
        where: Optional[Where] = None,
        select: Optional[Sequence[str]] = None,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> List[Any]:
        """Fetch the matching records inside a window

        Args:
            where (Where, optional): The filter. Defaults to `None`.
            select (Sequence[str], optional): Columns to fetch.
                Defaults to `None`.
            order_by (OrderBy, optional): The ordering. Defaults to `None`.
            skip (int, optional): Matches to skip. Defaults to `0`.
            take (int, optional): Maximum number of records.
                Defaults to `None`.

        Returns:
            List[Any]: The records
        """
        query = self._select("find_many", where, select, order_by, skip, take)
        raw = await self.run(query, as_list=True)
        if not raw:
            return []
        return self._hydrate(list(raw), select)

    def _insert(self, data: Mapping[str, Any]) -> SQLQuery:
        if not data:
            raise QuarryError("Cannot create a record without data")
        compiler = FilterCompiler(self.quote, prefix="v")
        columns = ", ".join(map(self.quote, data))
        values = ", ".join(compiler.bind(value) for value in data.values())
        text = (
            f"INSERT INTO {self.quote(self.get_table())} "
            f"({columns}) VALUES ({values})"
        )
        if self.SUPPORTS_RETURNING:
            text += " RETURNING *"
        return SQLQuery("create", text, compiler.params)

    async def create(self, data: Mapping[str, Any]):
        """Insert a record

        Args:
            data (Mapping[str, Any]): Column values

        Returns:
            Any: The inserted record
        """
        raw = await self.run(self._insert(data))
        return self._hydrate(raw, None)

    async def update(self, where: Where, data: Mapping[str, Any]):
        """Update the first record matching a filter

        Args:
            where (Where): The filter identifying the record
            data (Mapping[str, Any]): Column values to set

        Raises:
            RecordNotFound: When no record matches

        Returns:
            Any: The updated record
        """
        async with self._acquire() as conn:
            key = await self._locate(conn, "update", where)
            if data:
                compiler = FilterCompiler(self.quote, prefix="v")
                assignments = ", ".join(
                    f"{self.quote(column)} = {compiler.bind(value)}"
                    for column, value in data.items()
                )
                query = SQLQuery(
                    "update",
                    f"UPDATE {self.quote(self.get_table())} "
                    f"SET {assignments}",
                ) + self._where(compiler, {self.primary_key: key})
                await self.run(query, no_result=True, connection=conn)
            key = data.get(self.primary_key, key)
            raw = await self.run(self._by_key("update", key), connection=conn)
        return self._hydrate(raw, None)

    async def delete(self, where: Where):
        """Delete the first record matching a filter

        Args:
            where (Where): The filter identifying the record

        Raises:
            RecordNotFound: When no record matches

        Returns:
            Any: The deleted record
        """
        async with self._acquire() as conn:
            raw = await self.run(
                self._select("delete", where, take=1), connection=conn
            )
            if not raw:
                raise RecordNotFound(
                    f"No record in {self.get_table()} to delete using {where}"
                )
            key = raw[self.primary_key]
            compiler = FilterCompiler(self.quote)
            query = SQLQuery(
                "delete", f"DELETE FROM {self.quote(self.get_table())}"
            ) + self._where(compiler, {self.primary_key: key})
            await self.run(query, no_result=True, connection=conn)
        return self._hydrate(raw, None)

    async def _locate(self, conn: Any, name: str, where: Where) -> Any:
        query = self._select(name, where, [self.primary_key], take=1)
        raw = await self.run(query, connection=conn)
        if not raw:
            raise RecordNotFound(
                f"No record in {self.get_table()} to {name} using {where}"
            )
        return raw[self.primary_key]

    async def run_transaction(
        self,
        callback: Callable[[ModelExecutor], Awaitable[R]],
        timeout: Optional[float] = None,
    ) -> R:
        """Run a callback atomically on a dedicated connection

        The callback receives a copy of this executor bound to the
        transaction's connection. When it returns, the transaction is
        committed and its result is returned. When it raises, the
        transaction is rolled back and the exception propagates. Failures
        caused by write conflicts or deadlocks are raised as
        `WriteConflict`.

        Called while another transaction on the same pool is running in
        the current task, the callback joins that transaction instead.

        Args:
            callback (Callable[[ModelExecutor], Awaitable[R]]): The work
                to run inside the transaction
            timeout (float, optional): Time before an error is raised on
                failure to obtain a connection. Defaults to `None`.

        Raises:
            UnsupportedOperation: If this executor is already bound to a
                transaction

        Returns:
            R: Whatever the callback returns
        """
        if self.is_bound:
            raise UnsupportedOperation(
                f"{self} is already inside a transaction"
            )
        if self.pool.in_transaction():
            return await callback(self.bind(self.pool.existing_connection()))

        async with self.pool.transaction_connection(timeout=timeout) as conn:
            try:
                async with self._transaction_scope(conn):
                    return await callback(self.bind(conn))
            except QuarryError:
                raise
            except Exception as e:
                conflict = self._translate_error(e)
                if conflict is not None:
                    raise conflict from e
                raise

    @asynccontextmanager
    async def _transaction_scope(self, connection: Any):
        await self._begin(connection)
        try:
            yield
        except BaseException:
            logger.debug("Rolling back transaction on %s", self)
            await self._rollback(connection)
            raise
        logger.debug("Committing transaction on %s", self)
        await self._commit(connection)

    async def _begin(self, connection: Any) -> None:
        await connection.execute("BEGIN")

    async def _commit(self, connection: Any) -> None:
        await connection.commit()

    async def _rollback(self, connection: Any) -> None:
        await connection.rollback()
