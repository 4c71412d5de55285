from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from quarry.exception import WriteConflict
from quarry.sql.query import SQLQuery

from ..executor import ModelExecutor

try:
    from asyncmy.cursors import DictCursor

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False

LOCK_WAIT_TIMEOUT = 1205
DEADLOCK = 1213


class MysqlExecutor(ModelExecutor):
    """Executor for interfacing with a MySQL database"""

    ENABLED = MYSQL_ENABLED
    QUOTE = "`"
    NO_LIMIT = "LIMIT 18446744073709551615"
    SUPPORTS_RETURNING = False

    async def _run_sql(
        self,
        connection: Any,
        query: str,
        params: Dict[str, Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with connection.cursor(cursor=DictCursor) as cursor:
            await cursor.execute(query, params or None)
            if no_result:
                return None
            if as_list:
                return await cursor.fetchall()
            return await cursor.fetchone()

    async def create(self, data: Mapping[str, Any]):
        async with self._acquire() as conn:
            await self.run(self._insert(data), no_result=True, connection=conn)
            key = data.get(self.primary_key)
            if key is None:
                row = await self.run(
                    SQLQuery("create", "SELECT LAST_INSERT_ID() AS pk"),
                    connection=conn,
                )
                key = row["pk"]
            raw = await self.run(self._by_key("create", key), connection=conn)
        return self._hydrate(raw, None)

    def _translate_error(
        self, exc: BaseException
    ) -> Optional[WriteConflict]:
        code = exc.args[0] if exc.args else None
        if code in (LOCK_WAIT_TIMEOUT, DEADLOCK):
            return WriteConflict(
                f"Transaction failed due to a write conflict or a "
                f"deadlock ({code}): {exc}"
            )
        return None

    async def _begin(self, connection: Any) -> None:
        await connection.begin()
