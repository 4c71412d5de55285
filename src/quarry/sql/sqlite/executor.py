from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from quarry.exception import WriteConflict

from ..executor import ModelExecutor

try:
    import aiosqlite  # noqa

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False

CONFLICT_MESSAGES = ("database is locked", "database is busy")


class SQLiteExecutor(ModelExecutor):
    """Executor for interfacing with a SQLite database"""

    ENABLED = AIOSQLITE_ENABLED
    POSITIONAL_SUB = r"?"
    KEYWORD_SUB = r":\2"
    NO_LIMIT = "LIMIT -1"

    async def _run_sql(
        self,
        connection: Any,
        query: str,
        params: Dict[str, Any],
        as_list: bool = False,
        no_result: bool = False,
    ):
        async with connection.execute(query, params) as cursor:
            if no_result:
                return None
            columns = [column[0] for column in cursor.description]
            if as_list:
                rows = await cursor.fetchall()
                return [dict(zip(columns, row)) for row in rows]
            row = await cursor.fetchone()
            return dict(zip(columns, row)) if row is not None else None

    def _translate_error(
        self, exc: BaseException
    ) -> Optional[WriteConflict]:
        if isinstance(exc, sqlite3.OperationalError) and any(
            message in str(exc).lower() for message in CONFLICT_MESSAGES
        ):
            return WriteConflict(
                f"Transaction failed due to a write conflict: {exc}"
            )
        return None
