import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from quarry import MysqlExecutor, PostgresExecutor, SQLiteExecutor
from quarry.exception import WriteConflict
from quarry.sql.query import SQLQuery


@pytest.fixture
def postgres_executor():
    class ItemExecutor(PostgresExecutor):
        ENABLED = True
        table = "items"

    return ItemExecutor(pool=AsyncMock())


@pytest.fixture
def mysql_executor():
    class ItemExecutor(MysqlExecutor):
        ENABLED = True
        table = "items"

    return ItemExecutor(pool=AsyncMock())


@pytest.fixture
def sqlite_executor():
    class ItemExecutor(SQLiteExecutor):
        table = "items"

    return ItemExecutor(pool=AsyncMock())


class PostgresDriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


@pytest.mark.parametrize("sqlstate", ("40001", "40P01"))
def test_postgres_conflicts(postgres_executor, sqlstate):
    error = PostgresDriverError(sqlstate)

    assert isinstance(postgres_executor._translate_error(error), WriteConflict)


def test_postgres_other_errors(postgres_executor):
    error = PostgresDriverError("23505")

    assert postgres_executor._translate_error(error) is None


@pytest.mark.parametrize("code", (1205, 1213))
def test_mysql_conflicts(mysql_executor, code):
    error = Exception(code, "Deadlock found when trying to get lock")

    assert isinstance(mysql_executor._translate_error(error), WriteConflict)


def test_mysql_other_errors(mysql_executor):
    assert mysql_executor._translate_error(Exception(1062, "Dup")) is None
    assert mysql_executor._translate_error(Exception()) is None


@pytest.mark.parametrize(
    "message", ("database is locked", "database is busy")
)
def test_sqlite_conflicts(sqlite_executor, message):
    error = sqlite3.OperationalError(message)

    assert isinstance(sqlite_executor._translate_error(error), WriteConflict)


def test_sqlite_other_errors(sqlite_executor):
    error = sqlite3.OperationalError("no such table: items")

    assert sqlite_executor._translate_error(error) is None


async def test_run_translates_driver_errors(mysql_executor):
    error = Exception(1213, "Deadlock found")
    mysql_executor._run_sql = AsyncMock(side_effect=error)
    bound = mysql_executor.bind(MagicMock())

    with pytest.raises(WriteConflict) as exc_info:
        await bound.run(SQLQuery("count", "SELECT 1"))

    assert exc_info.value.__cause__ is error


async def test_run_leaves_other_errors(mysql_executor):
    error = Exception(1062, "Duplicate entry")
    mysql_executor._run_sql = AsyncMock(side_effect=error)
    bound = mysql_executor.bind(MagicMock())

    with pytest.raises(Exception) as exc_info:
        await bound.run(SQLQuery("count", "SELECT 1"))

    assert exc_info.value is error


def test_dialect_sql(postgres_executor, mysql_executor, sqlite_executor):
    where = {"name": "foo"}

    postgres = postgres_executor._select("find", where, skip=2)
    mysql = mysql_executor._select("find", where, skip=2)
    sqlite = sqlite_executor._select("find", where, skip=2)

    assert postgres.text == (
        'SELECT * FROM "items" WHERE "name" = $p0 LIMIT ALL OFFSET 2'
    )
    assert mysql.text == (
        "SELECT * FROM `items` WHERE `name` = $p0 "
        "LIMIT 18446744073709551615 OFFSET 2"
    )
    assert sqlite.text == (
        'SELECT * FROM "items" WHERE "name" = $p0 LIMIT -1 OFFSET 2'
    )


def test_insert_returning(postgres_executor, mysql_executor):
    data = {"name": "foo", "score": 1}

    assert postgres_executor._insert(data).text == (
        'INSERT INTO "items" ("name", "score") VALUES ($v0, $v1) '
        "RETURNING *"
    )
    assert mysql_executor._insert(data).text == (
        "INSERT INTO `items` (`name`, `score`) VALUES ($v0, $v1)"
    )


async def test_mysql_create_reads_back_inserted_row(mysql_executor):
    mysql_executor.run = AsyncMock(
        side_effect=[None, {"pk": 7}, {"id": 7, "name": "foo"}]
    )
    bound = mysql_executor.bind(MagicMock())

    created = await bound.create({"name": "foo"})

    assert created == {"id": 7, "name": "foo"}
    last_query = mysql_executor.run.await_args_list[-1].args[0]
    assert last_query.params == {"p0": 7}


async def test_mysql_transaction_scope(mysql_executor):
    connection = AsyncMock()

    async with mysql_executor._transaction_scope(connection):
        pass

    connection.begin.assert_awaited_once()
    connection.commit.assert_awaited_once()
    connection.rollback.assert_not_awaited()


async def test_mysql_transaction_scope_rolls_back(mysql_executor):
    connection = AsyncMock()

    with pytest.raises(ValueError):
        async with mysql_executor._transaction_scope(connection):
            raise ValueError("boom")

    connection.rollback.assert_awaited_once()
    connection.commit.assert_not_awaited()


async def test_postgres_transaction_scope(postgres_executor):
    connection = MagicMock()
    connection.transaction.return_value = AsyncMock()

    async with postgres_executor._transaction_scope(connection):
        pass

    connection.transaction.assert_called_once_with()
    connection.transaction.return_value.__aexit__.assert_awaited_once()
