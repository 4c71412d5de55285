from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from quarry.base.interface import BaseInterface
from quarry.exception import QuarryError

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False

MEMORY = ":memory:"


class SQLitePool(BaseInterface):
    """Interface for connecting to a SQLite database

    Regular queries share a single connection. Every transaction opens a
    dedicated connection so that nothing else can commit or read its
    pending writes, which requires a database file rather than
    `:memory:`.

    `busy_timeout` is how long a connection waits on a database locked by
    another writer before the attempt fails with "database is locked".
    """

    scheme = ""

    def __init__(
        self,
        db_path: str,
        min_size: int = 1,
        max_size: Optional[int] = None,
        busy_timeout: float = 5.0,
    ):
        self._busy_timeout = busy_timeout
        self._shared: Optional[aiosqlite.Connection] = None
        super().__init__(db_path, min_size=min_size, max_size=max_size)

    def _setup_pool(self):
        if not AIOSQLITE_ENABLED:
            raise QuarryError(
                "SQLite driver not found. Try reinstalling Quarry: "
                "pip install quarry[sqlite]"
            )

    @property
    def db_path(self) -> str:
        return self.dsn

    async def _connect(self, timeout: Optional[float] = None):
        return await aiosqlite.connect(
            self.db_path, timeout=timeout or self._busy_timeout
        )

    async def open(self):
        """Open the shared connection"""
        if self._shared is None:
            self._shared = await self._connect()

    async def close(self):
        """Close the shared connection"""
        if self._shared is not None:
            await self._shared.close()
            self._shared = None

    @asynccontextmanager
    async def _acquire(self, timeout: Optional[float] = None):
        opened_here = self._shared is None
        if opened_here:
            await self.open()
        conn = self._shared
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()
        finally:
            if opened_here:
                await self.close()

    @asynccontextmanager
    async def _dedicated(self, timeout: Optional[float] = None):
        if self.db_path == MEMORY:
            async with self._acquire(timeout) as conn:
                yield conn
            return
        conn = await self._connect(timeout)
        try:
            yield conn
        finally:
            await conn.close()
