import sqlite3

import pytest

from quarry import Quarry, SQLitePool
from quarry.lazy.interface import LazyPool
from quarry.registry import InterfaceRegistry, PoolRegistry, Registry
from quarry.sql.executor import ModelExecutor

from .app.model import ROWS, SCHEMA, FakeClient, ItemExecutor


@pytest.fixture(autouse=True)
def reset_registry():
    Registry().reset()
    InterfaceRegistry().reset()
    PoolRegistry().reset()
    LazyPool.reset()
    ModelExecutor._fallback_pool = None
    ModelExecutor._fallback_hydrator = None
    ModelExecutor.page_size = 10
    ModelExecutor.backoff = None


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "quarry.db"
    connection = sqlite3.connect(path)
    connection.execute(SCHEMA)
    connection.executemany(
        "INSERT INTO items (name, score, category) VALUES (?, ?, ?)", ROWS
    )
    connection.commit()
    connection.close()
    return str(path)


@pytest.fixture
def read_rows(db_path):
    def read(query="SELECT name FROM items ORDER BY id"):
        connection = sqlite3.connect(db_path)
        try:
            return [row[0] for row in connection.execute(query)]
        finally:
            connection.close()

    return read


@pytest.fixture
async def quarry(db_path):
    quarry = Quarry(executors=[ItemExecutor], db_path=db_path)
    await quarry.connect()
    yield quarry
    await quarry.disconnect()


@pytest.fixture
async def impatient_quarry(db_path):
    pool = SQLitePool(db_path, busy_timeout=0.1)
    quarry = Quarry(executors=[ItemExecutor], pool=pool)
    await quarry.connect()
    yield quarry
    await quarry.disconnect()


@pytest.fixture
def items(quarry):
    return Quarry.get(ItemExecutor)


@pytest.fixture
def fake_client():
    return FakeClient(
        {"id": index, "name": name, "score": score}
        for index, (name, score, _) in enumerate(ROWS, start=1)
    )
