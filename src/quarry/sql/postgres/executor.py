from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from quarry.exception import WriteConflict

from ..executor import ModelExecutor

try:
    from psycopg.rows import dict_row

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False

SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"


class PostgresExecutor(ModelExecutor):
    """Executor for interfacing with a Postgres database"""

    ENABLED = POSTGRES_ENABLED

    async def _run_sql(
        self,
        connection: Any,
        query: str,
        params: Dict[str, Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with connection.cursor(row_factory=dict_row) as cursor:
            await cursor.execute(query, params or None)
            if no_result:
                return None
            if as_list:
                return await cursor.fetchall()
            return await cursor.fetchone()

    def _translate_error(
        self, exc: BaseException
    ) -> Optional[WriteConflict]:
        sqlstate = getattr(exc, "sqlstate", None)
        if sqlstate in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
            return WriteConflict(
                f"Transaction failed due to a write conflict or a "
                f"deadlock ({sqlstate}): {exc}"
            )
        return None

    @asynccontextmanager
    async def _transaction_scope(self, connection: Any):
        async with connection.transaction():
            yield
