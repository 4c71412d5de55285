from quarry import Hydrator, Quarry

from .app.model import Item, ItemExecutor


class UpperHydrator(Hydrator):
    def hydrate(self, data, model=Item):
        data = dict(data)
        data["name"] = data["name"].upper()
        return super().hydrate(data, model)


def test_hydrate_into_model():
    item = Hydrator().hydrate(
        {"id": 1, "name": "a", "score": 2, "category": None}, Item
    )

    assert item == Item(id=1, name="a", score=2, category=None)


def test_hydrate_fallback_to_dict():
    row = {"id": 1}

    hydrated = Hydrator().hydrate(row)

    assert hydrated == row
    assert hydrated is not row


def test_hydrate_many():
    rows = [{"id": 1}, {"id": 2}]

    assert Hydrator().hydrate_many(rows) == [{"id": 1}, {"id": 2}]


def test_hydrate_drops_undeclared_columns():
    item = Hydrator().hydrate(
        {"id": 1, "name": "a", "score": 2, "category": None, "extra": 0},
        Item,
    )

    assert item == Item(id=1, name="a", score=2, category=None)


def test_hydrate_fallback_on_subclass():
    class ItemHydrator(Hydrator):
        fallback = Item

    item = ItemHydrator().hydrate(
        {"id": 1, "name": "a", "score": 2, "category": None}
    )

    assert isinstance(item, Item)


async def test_executor_hydrator(db_path):
    quarry = Quarry(
        executors=[ItemExecutor(hydrator=UpperHydrator())], db_path=db_path
    )
    await quarry.connect()
    try:
        item = await Quarry.get(ItemExecutor).find_first({"id": 1})
    finally:
        await quarry.disconnect()

    assert item.name == "ALPHA"


async def test_fallback_hydrator(db_path):
    quarry = Quarry(
        executors=[ItemExecutor], db_path=db_path, hydrator=UpperHydrator()
    )
    await quarry.connect()
    try:
        found = await Quarry.get(ItemExecutor).find_many({"score": 20})
    finally:
        await quarry.disconnect()

    assert [item.name for item in found] == ["BETA"]
