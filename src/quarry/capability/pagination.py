from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, TypeVar, Union

from quarry.sql.filter import OrderBy, Where

from .base import capability

T = TypeVar("T")
DEFAULT_PAGE_SIZE = 10


@dataclass
class Pagination:
    """A window over the matching records"""

    take: Optional[int] = None
    skip: Optional[int] = None


@dataclass
class Page(Generic[T]):
    """The records inside a window and the size of the whole population"""

    data: List[T] = field(default_factory=list)
    total: int = 0


def resolve_window(
    pagination: Union[Pagination, Mapping[str, Any], None],
    take: Optional[int] = None,
    skip: Optional[int] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
):
    """Work out `take` and `skip`. Explicit pagination wins over the
    values of the query, which win over the defaults. Both are clamped to
    zero or more."""

    def pick(name: str) -> Optional[int]:
        if isinstance(pagination, Mapping):
            return pagination.get(name)
        return getattr(pagination, name, None)

    resolved_take = pick("take")
    if resolved_take is None:
        resolved_take = take if take is not None else page_size
    resolved_skip = pick("skip")
    if resolved_skip is None:
        resolved_skip = skip if skip is not None else 0
    return max(0, int(resolved_take)), max(0, int(resolved_skip))


@capability()
async def paginate(
    client,
    where: Optional[Where] = None,
    select: Optional[List[str]] = None,
    order_by: Optional[OrderBy] = None,
    take: Optional[int] = None,
    skip: Optional[int] = None,
    pagination: Union[Pagination, Mapping[str, Any], None] = None,
) -> Page:
    """Fetch a page of records along with the total number of matches

    The page and the count are fetched concurrently, so a write landing
    between them can make them disagree slightly.

    Args:
        where (Where, optional): The filter. Defaults to `None`.
        select (List[str], optional): Columns to fetch. Defaults to `None`.
        order_by (OrderBy, optional): The ordering. Defaults to `None`.
        take (int, optional): Page size of the query. Defaults to `None`.
        skip (int, optional): Offset of the query. Defaults to `None`.
        pagination (Pagination, optional): Overrides `take` and `skip`.
            Defaults to `None`.

    Returns:
        Page: The records and the total
    """
    take, skip = resolve_window(
        pagination,
        take,
        skip,
        getattr(client, "page_size", DEFAULT_PAGE_SIZE),
    )

    def fetch():
        return client.find_many(
            where=where, select=select, order_by=order_by, skip=skip, take=take
        )

    if getattr(client, "is_bound", False):
        data = await fetch()
        total = await client.count(where)
    else:
        data, total = await asyncio.gather(fetch(), client.count(where))
    return Page(data=data, total=total)
