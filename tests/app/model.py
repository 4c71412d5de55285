from dataclasses import dataclass
from typing import Optional

from quarry import SQLiteExecutor
from quarry.exception import RecordNotFound

SCHEMA = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    score INTEGER NOT NULL DEFAULT 0,
    category TEXT
)
"""
ROWS = [
    ("alpha", 10, "tools"),
    ("beta", 20, "tools"),
    ("gamma", 30, "toys"),
    ("delta", 40, None),
    ("epsilon", 50, "toys"),
]


@dataclass
class Item:
    id: int
    name: str
    score: int
    category: Optional[str]


class ItemExecutor(SQLiteExecutor):
    model = Item
    table = "items"


class FakeClient:
    """In-memory stand-in for an executor, over a list of dict rows"""

    primary_key = "id"
    page_size = 10
    is_bound = False

    def __init__(self, rows=None):
        self.rows = [dict(row) for row in rows or []]
        self.calls = []

    def _match(self, row, where):
        for key, value in (where or {}).items():
            if key == "AND":
                if not all(self._match(row, item) for item in value):
                    return False
            elif isinstance(value, dict):
                if "not_in" in value and row[key] in value["not_in"]:
                    return False
                if "gte" in value and row[key] < value["gte"]:
                    return False
            elif row[key] != value:
                return False
        return True

    def _filter(self, where):
        return [row for row in self.rows if self._match(row, where)]

    async def count(self, where=None):
        self.calls.append(("count", where))
        return len(self._filter(where))

    async def find_first(self, where=None, select=None, order_by=None, skip=0):
        self.calls.append(("find_first", where, skip))
        matches = self._filter(where)[skip:]
        if not matches:
            return None
        row = matches[0]
        return {key: row[key] for key in select} if select else dict(row)

    async def find_many(
        self, where=None, select=None, order_by=None, skip=0, take=None
    ):
        self.calls.append(("find_many", where, skip, take))
        matches = self._filter(where)[skip:]
        return matches[:take] if take is not None else matches

    async def update(self, where, data):
        matches = self._filter(where)
        if not matches:
            raise RecordNotFound("nothing to update")
        matches[0].update(data)
        return dict(matches[0])

    async def delete(self, where):
        matches = self._filter(where)
        if not matches:
            raise RecordNotFound("nothing to delete")
        self.rows.remove(matches[0])
        return matches[0]

