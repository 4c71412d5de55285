from quarry import Page, Pagination
from quarry.capability.pagination import paginate, resolve_window


def test_resolve_window_precedence():
    assert resolve_window(None) == (10, 0)
    assert resolve_window(None, take=3, skip=2) == (3, 2)
    assert resolve_window(Pagination(take=5), take=3, skip=2) == (5, 2)
    assert resolve_window({"skip": 7}, take=3) == (3, 7)
    assert resolve_window(None, page_size=25) == (25, 0)


def test_resolve_window_clamps():
    assert resolve_window(Pagination(take=-1, skip=-5)) == (0, 0)


async def test_first_page(fake_client):
    page = await paginate(fake_client, take=2, skip=0)

    assert isinstance(page, Page)
    assert [row["name"] for row in page.data] == ["alpha", "beta"]
    assert page.total == 5


async def test_last_page(fake_client):
    page = await paginate(fake_client, take=10, skip=4)

    assert [row["name"] for row in page.data] == ["epsilon"]
    assert page.total == 5


async def test_page_beyond_population(fake_client):
    page = await paginate(fake_client, skip=50)

    assert page.data == []
    assert page.total == 5


async def test_default_take_from_client(fake_client):
    fake_client.page_size = 3

    page = await paginate(fake_client)

    assert len(page.data) == 3


async def test_total_ignores_window(fake_client):
    page = await paginate(
        fake_client, where={"score": {"gte": 20}}, pagination={"take": 1}
    )

    assert len(page.data) == 1
    assert page.total == 4


async def test_paginate_against_database(items):
    page = await items.capabilities.paginate(
        where={"category": "tools"}, order_by={"score": "desc"}, take=1
    )

    assert [item.name for item in page.data] == ["beta"]
    assert page.total == 2


async def test_paginate_inside_transaction(items):
    handle = await items.capabilities.begin_transaction()
    await handle.create({"name": "zeta", "category": "tools"})

    page = await handle.capabilities.paginate(where={"category": "tools"})

    assert page.total == 3
    assert len(page.data) == 3
    await handle.rollback()
