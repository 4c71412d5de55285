import pytest

from quarry.convert import convert_sql_params
from quarry.exception import QuarryError


def test_converts_sql_params():
    sql = """
        SELECT *
        FROM items
        WHERE "score" >= $p0
        LIMIT $limit
    """
    expected = """
        SELECT *
        FROM items
        WHERE "score" >= %(p0)s
        LIMIT %(limit)s
    """
    converted = convert_sql_params(sql)

    assert converted == expected


def test_converts_sql_params_for_sqlite():
    converted = convert_sql_params(
        'SELECT * FROM items WHERE "id" = $p0', "?", r":\2"
    )

    assert converted == 'SELECT * FROM items WHERE "id" = :p0'


def test_converts_positional_params():
    assert convert_sql_params("SELECT $1, $2") == "SELECT %s, %s"


def test_mixed_params_are_rejected():
    with pytest.raises(QuarryError):
        convert_sql_params("SELECT $1 WHERE id = $name")
