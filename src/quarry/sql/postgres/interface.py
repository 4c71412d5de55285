from typing import Optional

from quarry.base.interface import BaseInterface
from quarry.exception import QuarryError

try:
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database

    The DSN is handed to psycopg as is. Connections go back to the pool
    committed, or rolled back when the block using them raised.
    """

    scheme = "postgres"

    def _setup_pool(self):
        if not POSTGRES_ENABLED:
            raise QuarryError(
                "Postgres driver not found. Try reinstalling Quarry: "
                "pip install quarry[postgres]"
            )
        self._pool = AsyncConnectionPool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()

    def _acquire(self, timeout: Optional[float] = None):
        return self._pool.connection(timeout=timeout)
