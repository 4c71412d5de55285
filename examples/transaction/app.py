import asyncio
import sqlite3
from dataclasses import dataclass

from quarry import Quarry, SQLiteExecutor

DB_PATH = "accounts.db"


@dataclass
class Account:
    id: int
    owner: str
    balance: int


class AccountExecutor(SQLiteExecutor):
    model = Account


def setup():
    connection = sqlite3.connect(DB_PATH)
    connection.execute(
        "CREATE TABLE IF NOT EXISTS account "
        "(id INTEGER PRIMARY KEY, owner TEXT, balance INTEGER)"
    )
    connection.execute("DELETE FROM account")
    connection.executemany(
        "INSERT INTO account (owner, balance) VALUES (?, ?)",
        [("ann", 100), ("bob", 0)],
    )
    connection.commit()
    connection.close()


async def transfer(tx, amount):
    source = await tx.find_first({"owner": "ann"})
    await tx.update({"id": source.id}, {"balance": source.balance - amount})
    target = await tx.find_first({"owner": "bob"})
    await tx.update({"id": target.id}, {"balance": target.balance + amount})


async def run():
    setup()
    quarry = Quarry(executors=[AccountExecutor], db_path=DB_PATH)
    await quarry.connect()
    accounts = Quarry.extend(AccountExecutor)

    # Decided elsewhere: the handle outlives the code that opened it
    handle = await accounts.begin_transaction()
    await transfer(handle, 30)
    if (await handle.find_first({"owner": "ann"})).balance >= 0:
        await handle.commit()
    else:
        await handle.rollback()

    # Retried from scratch when it loses a write conflict
    await accounts.with_retry(lambda tx: transfer(tx, 20), num_of_attempts=5)

    print(await Quarry.get(AccountExecutor).find_many(order_by="id"))
    await quarry.disconnect()


asyncio.run(run())
