from __future__ import annotations

from typing import Any, Mapping

from quarry.exception import RecordNotFound
from quarry.sql.filter import Where

from .base import capability


def _is_not_found(exc: Exception) -> bool:
    return getattr(exc, "code", None) == RecordNotFound.code


@capability()
async def update_ignore_on_not_found(
    client, where: Where, data: Mapping[str, Any]
):
    """Update a record, returning `None` instead of raising when it does
    not exist"""
    try:
        return await client.update(where, data)
    except Exception as e:
        if _is_not_found(e):
            return None
        raise


@capability()
async def delete_ignore_on_not_found(client, where: Where):
    """Delete a record, returning `None` instead of raising when it does
    not exist"""
    try:
        return await client.delete(where)
    except Exception as e:
        if _is_not_found(e):
            return None
        raise
