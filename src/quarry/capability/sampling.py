"""
Random sampling over the records matching a filter.

A draw counts the population and fetches the record at a random offset.
No ordering is imposed, so the row at an offset is whatever the database
returns in its natural order.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Any, List, Optional, Sequence

from quarry.sql.filter import OrderBy, Where

from .base import capability

logger = logging.getLogger(__name__)


def random_offset(population: int) -> int:
    """Pick an offset in `[0, population)`, or `0` for an empty
    population"""
    return max(0, math.floor(random.random() * population))


@capability()
async def find_random(
    client,
    where: Optional[Where] = None,
    select: Optional[Sequence[str]] = None,
    order_by: Optional[OrderBy] = None,
):
    """Fetch one random record matching a filter

    Returns `None` when nothing matches.
    """
    population = await client.count(where)
    return await client.find_first(
        where=where,
        select=select,
        order_by=order_by,
        skip=random_offset(population),
    )


@capability()
async def find_many_random(
    client,
    num: int,
    where: Optional[Where] = None,
    select: Optional[Sequence[str]] = None,
) -> List[Any]:
    """Draw up to `num` distinct random records matching a filter

    Every draw excludes the primary keys drawn before it and picks an
    offset within the records that remain. If a draw comes back empty,
    for instance because rows were deleted concurrently, sampling stops
    and the records drawn so far are returned.

    Args:
        num (int): The number of records to draw
        where (Where, optional): The filter. Defaults to `None`.
        select (Sequence[str], optional): Columns to fetch. The primary
            key is always included. Defaults to the primary key only.

    Returns:
        List[Any]: At most `num` records, as dicts
    """
    key = client.primary_key
    columns = list(select) if select else [key]
    if key not in columns:
        columns.append(key)

    rows: List[Any] = []
    drawn: List[Any] = []
    remaining = await client.count(where)

    for _ in range(num):
        if remaining <= 0:
            break
        scoped = {"AND": [where or {}, {key: {"not_in": list(drawn)}}]}
        row = await client.find_first(
            where=scoped, select=columns, skip=random_offset(remaining)
        )
        if not row:
            logger.error("get random row failed. Where clause: %s", scoped)
            break
        rows.append(row)
        drawn.append(row[key])
        remaining -= 1

    return rows


@capability()
async def exists(client, where: Optional[Where] = None) -> bool:
    """Whether any record matches a filter"""
    found = await client.find_first(where=where, select=[client.primary_key])
    return found is not None
